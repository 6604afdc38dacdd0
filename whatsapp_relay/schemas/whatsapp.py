from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from whatsapp_relay.schemas.message import MessageRecord

# Inbound webhook payloads (Cloud API "messages" change value)


class WebhookMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    display_phone_number: Optional[str] = None
    phone_number_id: Optional[str] = None


class InboundText(BaseModel):
    body: str


class InboundContext(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    from_user: Optional[str] = Field(default=None, alias="from")


class InboundMediaRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    mime_type: Optional[str] = None
    sha256: Optional[str] = None
    caption: Optional[str] = None
    filename: Optional[str] = None


class InboundMessage(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    from_user: str = Field(alias="from")  # "from" is reserved in Python
    id: str
    timestamp: Optional[Union[str, int]] = None  # epoch seconds, string or number
    type: str
    context: Optional[InboundContext] = None
    text: Optional[InboundText] = None
    image: Optional[InboundMediaRef] = None
    document: Optional[InboundMediaRef] = None
    audio: Optional[InboundMediaRef] = None
    video: Optional[InboundMediaRef] = None
    location: Optional[dict[str, Any]] = None
    contacts: Optional[list[dict[str, Any]]] = None

    def media_ref(self) -> Optional[InboundMediaRef]:
        ref = getattr(self, self.type, None)
        return ref if isinstance(ref, InboundMediaRef) else None


class MediaInfo(BaseModel):
    """Media lookup result from the Graph API."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    url: str
    mime_type: Optional[str] = None
    sha256: Optional[str] = None
    file_size: Optional[int] = None
    filename: Optional[str] = None


# Internal API bodies


class OutboundMedia(BaseModel):
    type: Literal["image", "document", "audio", "video"]
    url: str = Field(min_length=1)
    caption: Optional[str] = None


class SendMessageRequest(BaseModel):
    to: str = Field(min_length=1)
    message: str = Field(min_length=1)
    conversationId: str = Field(min_length=1)
    phoneNumberId: str = Field(min_length=1)


class SendMediaRequest(BaseModel):
    to: str = Field(min_length=1)
    mediaData: OutboundMedia
    conversationId: str = Field(min_length=1)
    phoneNumberId: str = Field(min_length=1)


class MarkAsReadRequest(BaseModel):
    messageId: str = Field(min_length=1)
    phoneNumberId: str = Field(min_length=1)


class ProcessWithAIRequest(BaseModel):
    messageId: str = Field(min_length=1)
    conversationId: str = Field(min_length=1)
    phoneNumberId: str = Field(min_length=1)


class WebhookAck(BaseModel):
    success: bool


class SendResponse(BaseModel):
    success: bool
    messageId: str


class SuccessResponse(BaseModel):
    success: bool


class MessageListResponse(BaseModel):
    success: bool
    count: int
    messages: list[MessageRecord]
