from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from whatsapp_relay.services.state_machine import MEDIA_KINDS, MessageKind, MessageStatus


class TextPayload(BaseModel):
    type: Literal["text"] = "text"
    body: str


class MediaPayload(BaseModel):
    type: Literal["media"] = "media"
    url: Optional[str] = None
    mime_type: Optional[str] = None
    filename: Optional[str] = None
    checksum: Optional[str] = None
    size: Optional[int] = None
    caption: Optional[str] = None


class LocationPayload(BaseModel):
    type: Literal["location"] = "location"
    location: dict[str, Any]


class ContactPayload(BaseModel):
    type: Literal["contact"] = "contact"
    contacts: list[dict[str, Any]]


MessagePayload = Annotated[
    Union[TextPayload, MediaPayload, LocationPayload, ContactPayload],
    Field(discriminator="type"),
]

# payload type allowed for each message kind
_PAYLOAD_TYPES_BY_KIND: dict[MessageKind, frozenset[str]] = {
    MessageKind.TEXT: frozenset({"text"}),
    MessageKind.LOCATION: frozenset({"location"}),
    MessageKind.CONTACT: frozenset({"contact"}),
    MessageKind.BOT_ANSWER: frozenset({"text", "media"}),
    **{kind: frozenset({"media"}) for kind in MEDIA_KINDS},
}


class NewMessage(BaseModel):
    conversation_id: str
    kind: MessageKind
    payload: Optional[MessagePayload] = None
    external_message_id: str = ""
    timestamp: Optional[datetime] = None
    in_reply_to_external_id: Optional[str] = None
    channel_origin_id: Optional[str] = None
    raw_payload: Optional[Any] = None
    status: MessageStatus = MessageStatus.PENDING

    @model_validator(mode="after")
    def _payload_matches_kind(self) -> "NewMessage":
        if self.payload is not None and self.payload.type not in _PAYLOAD_TYPES_BY_KIND[self.kind]:
            raise ValueError(f"{self.payload.type} payload is not valid for a {self.kind.value} message")
        return self


class MessageRecord(BaseModel):
    id: str
    conversation_id: str
    kind: MessageKind
    external_message_id: str = ""
    timestamp: datetime
    in_reply_to_external_id: Optional[str] = None
    channel_origin_id: Optional[str] = None
    raw_payload: Optional[Any] = None
    payload: Optional[MessagePayload] = None
    status: MessageStatus
    created_at: datetime
    updated_at: datetime

    @property
    def text(self) -> Optional[str]:
        if isinstance(self.payload, TextPayload):
            return self.payload.body
        return None
