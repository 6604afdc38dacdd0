from datetime import datetime, timezone
from typing import Any

from whatsapp_relay.logging_config import get_logger
from whatsapp_relay.schemas.message import MediaPayload, MessageRecord, NewMessage, TextPayload
from whatsapp_relay.schemas.whatsapp import OutboundMedia
from whatsapp_relay.services.message_service import MessageStore
from whatsapp_relay.services.state_machine import MessageKind, MessageStatus
from whatsapp_relay.services.whatsapp_service import WhatsAppClient

logger = get_logger("outbound_service")


def outbound_mime_type(media_type: str) -> str:
    # stored rows only distinguish documents from everything else
    return "application/pdf" if media_type == "document" else "image/jpeg"


class OutboundService:
    """Gateway sends paired with the bot_answer row that records them."""

    def __init__(self, whatsapp: WhatsAppClient, messages: MessageStore):
        self.whatsapp = whatsapp
        self.messages = messages

    async def send_text(self, to: str, text: str, phone_number_id: str, conversation_id: str) -> MessageRecord:
        external_id = await self.whatsapp.send_text(to, text, phone_number_id)
        return self.messages.create_message(
            NewMessage(
                conversation_id=conversation_id,
                kind=MessageKind.BOT_ANSWER,
                payload=TextPayload(body=text),
                external_message_id=external_id,
                timestamp=datetime.now(timezone.utc),
                channel_origin_id=phone_number_id,
                status=MessageStatus.SENT,
            )
        )

    async def send_media(
        self,
        to: str,
        media: OutboundMedia,
        phone_number_id: str,
        conversation_id: str,
    ) -> MessageRecord:
        external_id = await self.whatsapp.send_media(to, media, phone_number_id)
        return self.messages.create_message(
            NewMessage(
                conversation_id=conversation_id,
                kind=MessageKind.BOT_ANSWER,
                payload=MediaPayload(
                    url=media.url,
                    mime_type=outbound_mime_type(media.type),
                    caption=media.caption or "",
                ),
                external_message_id=external_id,
                timestamp=datetime.now(timezone.utc),
                channel_origin_id=phone_number_id,
                status=MessageStatus.SENT,
            )
        )

    async def mark_as_read(self, external_message_id: str, phone_number_id: str) -> dict[str, Any]:
        response = await self.whatsapp.mark_as_read(external_message_id, phone_number_id)

        local = self.messages.find_message_by_external_id(external_message_id)
        if local is None:
            logger.warning(
                "Read receipt for unknown message",
                extra={"context": {"external_message_id": external_message_id}},
            )
            return response

        self.messages.update_message_status(local.id, MessageStatus.READ)
        return response
