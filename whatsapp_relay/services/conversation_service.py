from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session, sessionmaker

from whatsapp_relay.database import session_scope
from whatsapp_relay.errors import NotFoundError
from whatsapp_relay.logging_config import get_logger
from whatsapp_relay.models import Conversation
from whatsapp_relay.schemas.conversation import ConversationRecord, NewConversation
from whatsapp_relay.services.state_machine import ConversationStatus

logger = get_logger("conversation_service")


def merge_config(existing: Optional[dict], incoming: dict[str, Any]) -> dict[str, Any]:
    """Shallow merge: incoming keys win, existing keys are never dropped."""
    return {**(existing or {}), **incoming}


class ConversationStore:
    """Conversation persistence. Every call runs in its own session."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create_conversation(self, data: NewConversation) -> ConversationRecord:
        now = datetime.now(timezone.utc)
        with session_scope(self.session_factory) as db:
            conversation = Conversation(
                external_contact_id=data.external_contact_id,
                owner_user_id=data.owner_user_id,
                subject_id=data.subject_id,
                kind=data.kind.value,
                status=data.status.value,
                config=dict(data.config),
                created_at=data.created_at or now,
                updated_at=now,
            )
            db.add(conversation)
            db.flush()
            record = ConversationRecord.model_validate(conversation)
        logger.info(
            "Conversation created",
            extra={"context": {"conversation_id": record.id, "external_contact_id": record.external_contact_id}},
        )
        return record

    def find_conversation_by_id(self, conversation_id: str) -> Optional[ConversationRecord]:
        with session_scope(self.session_factory) as db:
            conversation = db.query(Conversation).filter(Conversation.id == conversation_id).first()
            return ConversationRecord.model_validate(conversation) if conversation else None

    def find_conversation_by_external_contact_id(self, external_contact_id: str) -> Optional[ConversationRecord]:
        """Most recently created conversation for the contact, if any."""
        with session_scope(self.session_factory) as db:
            conversation = (
                db.query(Conversation)
                .filter(Conversation.external_contact_id == external_contact_id)
                .order_by(Conversation.created_at.desc())
                .first()
            )
            return ConversationRecord.model_validate(conversation) if conversation else None

    def update_conversation_status(self, conversation_id: str, status: ConversationStatus) -> ConversationRecord:
        with session_scope(self.session_factory) as db:
            conversation = self._get_or_raise(db, conversation_id)
            conversation.status = ConversationStatus(status).value
            conversation.updated_at = datetime.now(timezone.utc)
            db.flush()
            return ConversationRecord.model_validate(conversation)

    def merge_conversation_config(self, conversation_id: str, partial_config: dict[str, Any]) -> ConversationRecord:
        with session_scope(self.session_factory) as db:
            conversation = self._get_or_raise(db, conversation_id)
            # new dict so the JSON column is flagged dirty
            conversation.config = merge_config(conversation.config, partial_config)
            conversation.updated_at = datetime.now(timezone.utc)
            db.flush()
            record = ConversationRecord.model_validate(conversation)
        logger.debug(
            "Conversation config merged",
            extra={"context": {"conversation_id": conversation_id, "keys": sorted(partial_config)}},
        )
        return record

    @staticmethod
    def _get_or_raise(db: Session, conversation_id: str) -> Conversation:
        conversation = db.query(Conversation).filter(Conversation.id == conversation_id).first()
        if not conversation:
            raise NotFoundError(f"Conversation with ID {conversation_id} not found")
        return conversation
