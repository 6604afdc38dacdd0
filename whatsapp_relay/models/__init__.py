from whatsapp_relay.models.conversation import Conversation
from whatsapp_relay.models.message import Message

__all__ = [
    "Conversation",
    "Message",
]
