from whatsapp_relay.schemas.conversation import ConversationConfig, ConversationRecord, NewConversation
from whatsapp_relay.schemas.message import (
    ContactPayload,
    LocationPayload,
    MediaPayload,
    MessagePayload,
    MessageRecord,
    NewMessage,
    TextPayload,
)

__all__ = [
    "ConversationConfig",
    "ConversationRecord",
    "NewConversation",
    "ContactPayload",
    "LocationPayload",
    "MediaPayload",
    "MessagePayload",
    "MessageRecord",
    "NewMessage",
    "TextPayload",
]
