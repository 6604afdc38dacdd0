import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from whatsapp_relay.database import Base
from whatsapp_relay.models.conversation import JSONType


class Message(Base):
    __tablename__ = "messages"

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    conversation_id = Column(Text, ForeignKey("conversations.id"), nullable=False, index=True)
    kind = Column(Text, nullable=False)  # text, image, document, audio, video, location, contact, bot_answer
    external_message_id = Column(Text, nullable=False, default="", index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    in_reply_to_external_id = Column(Text)
    channel_origin_id = Column(Text)
    raw_payload = Column(JSONType)
    # exactly one of the four payload columns is set
    text = Column(Text)
    media = Column(JSONType)
    location = Column(JSONType)
    contact = Column(JSONType)
    status = Column(Text, nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    conversation = relationship("Conversation", back_populates="messages")
