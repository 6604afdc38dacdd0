from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from whatsapp_relay.services.state_machine import ConversationKind, ConversationStatus


class ConversationConfig(BaseModel):
    """Typed view over the known integration keys of ``conversation.config``.

    Unknown keys are kept as extras; the stored map itself is never validated.
    """

    model_config = ConfigDict(extra="allow")

    thread_id: Optional[str] = None
    run_id: Optional[str] = None
    assistant_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("assistant_id", "assistant_openai_id"),
    )


class NewConversation(BaseModel):
    external_contact_id: str
    owner_user_id: Optional[str] = None
    subject_id: Optional[str] = None
    kind: ConversationKind = ConversationKind.USER_INITIATED
    status: ConversationStatus = ConversationStatus.NEW
    config: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class ConversationRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    external_contact_id: str
    owner_user_id: Optional[str] = None
    subject_id: Optional[str] = None
    kind: ConversationKind
    status: ConversationStatus
    config: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    @property
    def typed_config(self) -> ConversationConfig:
        return ConversationConfig.model_validate(self.config or {})
