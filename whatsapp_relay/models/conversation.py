import uuid

from sqlalchemy import JSON, Column, DateTime, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from whatsapp_relay.database import Base

# Python None is stored as SQL NULL, not the JSON literal null
JSONType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Text, primary_key=True, default=_new_id)
    external_contact_id = Column(Text, nullable=False, index=True)  # wa_id of the contact
    owner_user_id = Column(Text)
    subject_id = Column(Text)
    kind = Column(Text, nullable=False, default="user_initiated")  # user_initiated, operator_initiated
    status = Column(Text, nullable=False, default="new")  # new, active, pending, closed, taken
    config = Column(JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    messages = relationship("Message", back_populates="conversation")
