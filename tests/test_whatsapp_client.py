import json

import httpx
import pytest

from whatsapp_relay.errors import RemoteServiceError, WhatsAppError
from whatsapp_relay.schemas.whatsapp import OutboundMedia
from whatsapp_relay.services.whatsapp_service import WhatsAppClient


def _client(settings, handler):
    return WhatsAppClient(settings, transport=httpx.MockTransport(handler))


def _recording_handler(requests, response_json=None, status_code=200):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json=response_json if response_json is not None else {})

    return handler


class TestSend:
    @pytest.mark.asyncio
    async def test_send_text(self, settings):
        requests = []
        client = _client(settings, _recording_handler(requests, {"messages": [{"id": "wamid.OUT"}]}))

        message_id = await client.send_text("15550001111", "Hello", "PNID-1")

        assert message_id == "wamid.OUT"
        request = requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v18.0/PNID-1/messages"
        assert request.headers["Authorization"] == "Bearer wa-token"
        body = json.loads(request.content)
        assert body == {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": "15550001111",
            "type": "text",
            "text": {"body": "Hello"},
        }

    @pytest.mark.asyncio
    async def test_send_media_defaults_caption_to_empty(self, settings):
        requests = []
        client = _client(settings, _recording_handler(requests, {"messages": [{"id": "wamid.VID"}]}))

        await client.send_media("15550001111", OutboundMedia(type="video", url="https://cdn/v.mp4"), "PNID-1")

        body = json.loads(requests[0].content)
        assert body["type"] == "video"
        assert body["video"] == {"link": "https://cdn/v.mp4", "caption": ""}

    @pytest.mark.asyncio
    async def test_send_without_message_id_fails(self, settings):
        client = _client(settings, _recording_handler([], {"messages": []}))

        with pytest.raises(WhatsAppError):
            await client.send_text("1", "x", "PNID-1")

    @pytest.mark.asyncio
    async def test_mark_as_read(self, settings):
        requests = []
        client = _client(settings, _recording_handler(requests, {"success": True}))

        response = await client.mark_as_read("wamid.IN1", "PNID-1")

        assert response == {"success": True}
        assert json.loads(requests[0].content) == {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": "wamid.IN1",
        }


class TestMediaInfo:
    @pytest.mark.asyncio
    async def test_get_media_info(self, settings):
        requests = []
        payload = {
            "id": "MEDIA-1",
            "url": "https://lookaside.fbsbx.com/MEDIA-1",
            "mime_type": "image/jpeg",
            "sha256": "abc",
            "file_size": 1234,
            "messaging_product": "whatsapp",
        }
        client = _client(settings, _recording_handler(requests, payload))

        info = await client.get_media_info("MEDIA-1")

        assert requests[0].method == "GET"
        assert requests[0].url.path == "/v18.0/MEDIA-1"
        assert info.url == "https://lookaside.fbsbx.com/MEDIA-1"
        assert info.file_size == 1234


class TestErrors:
    @pytest.mark.asyncio
    async def test_non_2xx(self, settings):
        client = _client(settings, _recording_handler([], {"error": {"message": "bad token"}}, status_code=401))

        with pytest.raises(WhatsAppError) as exc_info:
            await client.send_text("1", "x", "PNID-1")

        error = exc_info.value
        assert isinstance(error, RemoteServiceError)
        assert error.status_code == 503
        assert error.code == 401
        assert error.message.startswith("WhatsApp API error: ")

    @pytest.mark.asyncio
    async def test_transport_failure(self, settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(settings, handler)

        with pytest.raises(WhatsAppError) as exc_info:
            await client.get_media_info("MEDIA-1")

        assert isinstance(exc_info.value.original_error, httpx.ConnectError)
