from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from whatsapp_relay.database import session_scope
from whatsapp_relay.errors import NotFoundError
from whatsapp_relay.logging_config import get_logger
from whatsapp_relay.models import Message
from whatsapp_relay.schemas.message import (
    ContactPayload,
    LocationPayload,
    MediaPayload,
    MessagePayload,
    MessageRecord,
    NewMessage,
    TextPayload,
)
from whatsapp_relay.services.state_machine import MessageKind, MessageStatus

logger = get_logger("message_service")


def _payload_columns(payload: Optional[MessagePayload]) -> dict:
    """Map the payload onto its column; the other three stay NULL."""
    columns = {"text": None, "media": None, "location": None, "contact": None}
    if isinstance(payload, TextPayload):
        columns["text"] = payload.body
    elif isinstance(payload, MediaPayload):
        columns["media"] = payload.model_dump(exclude={"type"}, exclude_none=True)
    elif isinstance(payload, LocationPayload):
        columns["location"] = payload.location
    elif isinstance(payload, ContactPayload):
        columns["contact"] = payload.contacts
    return columns


def _payload_from_row(message: Message) -> Optional[MessagePayload]:
    if message.text is not None:
        return TextPayload(body=message.text)
    if message.media is not None:
        return MediaPayload(**message.media)
    if message.location is not None:
        return LocationPayload(location=message.location)
    if message.contact is not None:
        return ContactPayload(contacts=message.contact)
    return None


def to_record(message: Message) -> MessageRecord:
    return MessageRecord(
        id=message.id,
        conversation_id=message.conversation_id,
        kind=message.kind,
        external_message_id=message.external_message_id or "",
        timestamp=message.timestamp,
        in_reply_to_external_id=message.in_reply_to_external_id,
        channel_origin_id=message.channel_origin_id,
        raw_payload=message.raw_payload,
        payload=_payload_from_row(message),
        status=message.status,
        created_at=message.created_at,
        updated_at=message.updated_at,
    )


class MessageStore:
    """Message persistence. Every call runs in its own session."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create_message(self, data: NewMessage) -> MessageRecord:
        now = datetime.now(timezone.utc)
        with session_scope(self.session_factory) as db:
            message = Message(
                conversation_id=data.conversation_id,
                kind=data.kind.value,
                external_message_id=data.external_message_id or "",
                timestamp=data.timestamp or now,
                in_reply_to_external_id=data.in_reply_to_external_id,
                channel_origin_id=data.channel_origin_id,
                raw_payload=data.raw_payload,
                status=data.status.value,
                created_at=now,
                updated_at=now,
                **_payload_columns(data.payload),
            )
            db.add(message)
            db.flush()
            record = to_record(message)
        logger.info(
            "Message stored",
            extra={
                "context": {
                    "message_id": record.id,
                    "conversation_id": record.conversation_id,
                    "kind": record.kind.value,
                    "status": record.status.value,
                }
            },
        )
        return record

    def find_message_by_id(self, message_id: str) -> Optional[MessageRecord]:
        with session_scope(self.session_factory) as db:
            message = db.query(Message).filter(Message.id == message_id).first()
            return to_record(message) if message else None

    def find_message_by_external_id(self, external_message_id: str) -> Optional[MessageRecord]:
        if not external_message_id:
            return None
        with session_scope(self.session_factory) as db:
            message = (
                db.query(Message)
                .filter(Message.external_message_id == external_message_id)
                .order_by(Message.created_at.desc())
                .first()
            )
            return to_record(message) if message else None

    def find_messages_by_conversation(
        self,
        conversation_id: str,
        kind: Optional[MessageKind] = None,
        status: Optional[MessageStatus] = None,
    ) -> list[MessageRecord]:
        with session_scope(self.session_factory) as db:
            query = db.query(Message).filter(Message.conversation_id == conversation_id)
            if kind:
                query = query.filter(Message.kind == MessageKind(kind).value)
            if status:
                query = query.filter(Message.status == MessageStatus(status).value)
            rows = query.order_by(Message.created_at.asc()).all()
            return [to_record(row) for row in rows]

    def update_message_status(self, message_id: str, status: MessageStatus) -> MessageRecord:
        with session_scope(self.session_factory) as db:
            message = self._get_or_raise(db, message_id)
            # forward-only ordering is not enforced
            message.status = MessageStatus(status).value
            message.updated_at = datetime.now(timezone.utc)
            db.flush()
            return to_record(message)

    @staticmethod
    def _get_or_raise(db: Session, message_id: str) -> Message:
        message = db.query(Message).filter(Message.id == message_id).first()
        if not message:
            raise NotFoundError(f"Message with ID {message_id} not found")
        return message
