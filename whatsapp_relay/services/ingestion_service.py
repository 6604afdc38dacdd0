from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from whatsapp_relay.errors import ValidationError
from whatsapp_relay.logging_config import ContextAdapter, get_logger
from whatsapp_relay.schemas.conversation import ConversationRecord, NewConversation
from whatsapp_relay.schemas.message import (
    ContactPayload,
    LocationPayload,
    MediaPayload,
    MessagePayload,
    NewMessage,
    TextPayload,
)
from whatsapp_relay.schemas.whatsapp import InboundMessage
from whatsapp_relay.services.conversation_service import ConversationStore
from whatsapp_relay.services.message_service import MessageStore
from whatsapp_relay.services.result import Result
from whatsapp_relay.services.state_machine import (
    MEDIA_KINDS,
    ConversationKind,
    ConversationStatus,
    MessageKind,
    MessageStatus,
)
from whatsapp_relay.services.whatsapp_service import WhatsAppClient

logger = get_logger("ingestion_service")

MEDIA_TYPES = frozenset(kind.value for kind in MEDIA_KINDS)


def parse_timestamp(raw: Optional[Union[str, int]]) -> datetime:
    """Epoch seconds from the webhook; now when missing or unparseable."""
    if raw:
        try:
            return datetime.fromtimestamp(int(raw), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            logger.warning(f"Unparseable message timestamp: {raw!r}")
    return datetime.now(timezone.utc)


class WebhookIngestionService:
    """Turns a Cloud API webhook envelope into conversation and message rows."""

    def __init__(self, conversations: ConversationStore, messages: MessageStore, whatsapp: WhatsAppClient):
        self.conversations = conversations
        self.messages = messages
        self.whatsapp = whatsapp

    async def process_webhook(self, envelope: Any) -> Result[int]:
        """Ingest every message in the envelope.

        Returns the number of rows created. A malformed envelope is reported as
        a failed Result; errors while processing a message propagate.
        """
        if not isinstance(envelope, dict) or not isinstance(envelope.get("entry"), list):
            logger.warning("Invalid webhook data", extra={"context": {"type": type(envelope).__name__}})
            return Result.failure("Invalid webhook data", "invalid_webhook")

        created = 0
        for entry in envelope["entry"]:
            for change in (entry or {}).get("changes") or []:
                if change.get("field") != "messages":
                    continue
                created += await self._process_change_value(change.get("value") or {})

        return Result.success(created)

    async def _process_change_value(self, value: dict) -> int:
        raw_messages = value.get("messages") or []
        if not raw_messages:
            logger.info(
                "Webhook change without messages",
                extra={"context": {"has_statuses": bool(value.get("statuses"))}},
            )
            return 0

        channel_origin_id = (value.get("metadata") or {}).get("phone_number_id")
        created = 0
        for raw_message in raw_messages:
            try:
                message = InboundMessage.model_validate(raw_message)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid inbound message: {e.errors()[0]['msg']}") from e
            if await self._process_message(message, value, channel_origin_id):
                created += 1
        return created

    async def _process_message(self, message: InboundMessage, value: dict, channel_origin_id: Optional[str]) -> bool:
        log = ContextAdapter(logger, {"external_message_id": message.id, "type": message.type})

        conversation = self._get_or_create_conversation(message.from_user)

        built = await self._build_payload(message)
        if built is None:
            log.info("Unsupported message type skipped")
            return False
        kind, payload = built

        record = self.messages.create_message(
            NewMessage(
                conversation_id=conversation.id,
                kind=kind,
                payload=payload,
                external_message_id=message.id,
                timestamp=parse_timestamp(message.timestamp),
                in_reply_to_external_id=message.context.id if message.context else None,
                channel_origin_id=channel_origin_id,
                raw_payload=value,
                status=MessageStatus.RECEIVED,
            )
        )
        log.info("Inbound message stored", context={"message_id": record.id, "conversation_id": conversation.id})
        return True

    def _get_or_create_conversation(self, external_contact_id: str) -> ConversationRecord:
        conversation = self.conversations.find_conversation_by_external_contact_id(external_contact_id)
        if conversation:
            return conversation
        return self.conversations.create_conversation(
            NewConversation(
                external_contact_id=external_contact_id,
                kind=ConversationKind.USER_INITIATED,
                status=ConversationStatus.NEW,
            )
        )

    async def _build_payload(self, message: InboundMessage) -> Optional[tuple[MessageKind, MessagePayload]]:
        if message.type == "text":
            if message.text is None:
                raise ValidationError("Text message without body")
            return MessageKind.TEXT, TextPayload(body=message.text.body)

        if message.type in MEDIA_TYPES:
            ref = message.media_ref()
            if ref is None or not ref.id:
                raise ValidationError(f"Missing media id for {message.type} message")
            info = await self.whatsapp.get_media_info(ref.id)
            return MessageKind(message.type), MediaPayload(
                url=info.url,
                mime_type=info.mime_type or ref.mime_type,
                filename=info.filename or ref.filename,
                checksum=info.sha256 or ref.sha256,
                size=info.file_size,
                caption=ref.caption,
            )

        if message.type == "location":
            return MessageKind.LOCATION, LocationPayload(location=message.location or {})

        if message.type == "contacts":
            return MessageKind.CONTACT, ContactPayload(contacts=message.contacts or [])

        return None
