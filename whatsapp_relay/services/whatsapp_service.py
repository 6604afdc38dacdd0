from typing import Any, Optional

import httpx

from whatsapp_relay.config import Settings
from whatsapp_relay.errors import WhatsAppError
from whatsapp_relay.logging_config import get_logger
from whatsapp_relay.schemas.whatsapp import MediaInfo, OutboundMedia

logger = get_logger("whatsapp_service")


class WhatsAppClient:
    """Stateless wrapper over the WhatsApp Cloud API (Graph API)."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = f"{settings.whatsapp_api_url.rstrip('/')}/{settings.whatsapp_api_version}"
        self.access_token = settings.whatsapp_access_token
        self.timeout = settings.http_timeout_seconds
        self._transport = transport

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"WhatsApp transport error: {method} {path}: {e}")
            raise WhatsAppError(str(e) or e.__class__.__name__, original_error=e) from e

        logger.debug(f"WhatsApp response status: {response.status_code} for {method} {path}")

        if not response.is_success:
            logger.error(f"WhatsApp error: {response.status_code} - {response.text[:500]}")
            raise WhatsAppError(f"{response.status_code} - {response.text[:500]}", code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise WhatsAppError("invalid JSON in response", code=response.status_code, original_error=e) from e

    async def get_media_info(self, media_id: str) -> MediaInfo:
        """Resolve a short-lived media id into its download URL and metadata."""
        data = await self._request("GET", media_id)
        return MediaInfo.model_validate(data)

    async def _send(self, phone_number_id: str, payload: dict) -> str:
        data = await self._request("POST", f"{phone_number_id}/messages", payload)
        messages = data.get("messages") or []
        if not messages or not messages[0].get("id"):
            raise WhatsAppError(f"no message id in send response: {data}")
        return messages[0]["id"]

    async def send_text(self, to: str, text: str, phone_number_id: str) -> str:
        """Send a text message. Returns the platform message id."""
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "text",
            "text": {"body": text},
        }
        message_id = await self._send(phone_number_id, payload)
        logger.info(f"WhatsApp text sent: to={to}, message_id={message_id}")
        return message_id

    async def send_media(self, to: str, media: OutboundMedia, phone_number_id: str) -> str:
        """Send media by link. Caption defaults to an empty string."""
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": media.type,
            media.type: {
                "link": media.url,
                "caption": media.caption or "",
            },
        }
        message_id = await self._send(phone_number_id, payload)
        logger.info(f"WhatsApp {media.type} sent: to={to}, message_id={message_id}")
        return message_id

    async def mark_as_read(self, external_message_id: str, phone_number_id: str) -> dict[str, Any]:
        payload = {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": external_message_id,
        }
        return await self._request("POST", f"{phone_number_id}/messages", payload)
