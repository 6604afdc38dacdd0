import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import text

from whatsapp_relay.errors import NotFoundError
from whatsapp_relay.schemas.message import (
    ContactPayload,
    LocationPayload,
    MediaPayload,
    NewMessage,
    TextPayload,
)
from whatsapp_relay.services.state_machine import MessageKind, MessageStatus


def _text(conversation_id, body="hi", external_id="", status=MessageStatus.RECEIVED):
    return NewMessage(
        conversation_id=conversation_id,
        kind=MessageKind.TEXT,
        payload=TextPayload(body=body),
        external_message_id=external_id,
        status=status,
    )


class TestCreateMessage:
    def test_text_message(self, message_store, conversation):
        record = message_store.create_message(_text(conversation.id, "Hello", "wamid.1"))

        assert record.id
        assert record.conversation_id == conversation.id
        assert record.kind == MessageKind.TEXT
        assert record.text == "Hello"
        assert record.external_message_id == "wamid.1"
        assert record.status == MessageStatus.RECEIVED
        assert record.timestamp is not None

    def test_only_one_payload_column_is_set(self, message_store, conversation, engine):
        record = message_store.create_message(_text(conversation.id, "Hello"))

        with engine.connect() as connection:
            row = connection.execute(
                text(
                    "SELECT text, media IS NULL, location IS NULL, contact IS NULL, raw_payload IS NULL "
                    "FROM messages WHERE id = :id"
                ),
                {"id": record.id},
            ).one()

        assert tuple(row) == ("Hello", 1, 1, 1, 1)

    def test_media_row_leaves_text_null(self, message_store, conversation, engine):
        record = message_store.create_message(
            NewMessage(
                conversation_id=conversation.id,
                kind=MessageKind.VIDEO,
                payload=MediaPayload(url="https://cdn/v.mp4", mime_type="video/mp4"),
            )
        )

        with engine.connect() as connection:
            row = connection.execute(
                text("SELECT text IS NULL, media IS NULL, location IS NULL FROM messages WHERE id = :id"),
                {"id": record.id},
            ).one()

        assert tuple(row) == (1, 0, 1)

    def test_media_message(self, message_store, conversation):
        record = message_store.create_message(
            NewMessage(
                conversation_id=conversation.id,
                kind=MessageKind.IMAGE,
                payload=MediaPayload(url="https://cdn/x.jpg", mime_type="image/jpeg", checksum="abc", size=42),
            )
        )

        assert isinstance(record.payload, MediaPayload)
        assert record.payload.url == "https://cdn/x.jpg"
        assert record.payload.size == 42
        assert record.text is None

    def test_location_and_contact_are_verbatim(self, message_store, conversation):
        location = {"latitude": 1.5, "longitude": -2.25, "name": "HQ"}
        contacts = [{"name": {"formatted_name": "Ann"}, "phones": [{"phone": "+1"}]}]

        loc = message_store.create_message(
            NewMessage(conversation_id=conversation.id, kind=MessageKind.LOCATION, payload=LocationPayload(location=location))
        )
        con = message_store.create_message(
            NewMessage(conversation_id=conversation.id, kind=MessageKind.CONTACT, payload=ContactPayload(contacts=contacts))
        )

        assert loc.payload.location == location
        assert con.payload.contacts == contacts

    def test_placeholder_without_payload(self, message_store, conversation):
        record = message_store.create_message(NewMessage(conversation_id=conversation.id, kind=MessageKind.BOT_ANSWER))
        assert record.payload is None
        assert record.external_message_id == ""
        assert record.status == MessageStatus.PENDING

    def test_payload_must_match_kind(self, conversation):
        with pytest.raises(PydanticValidationError):
            NewMessage(conversation_id=conversation.id, kind=MessageKind.IMAGE, payload=TextPayload(body="x"))

    def test_duplicate_external_ids_are_allowed(self, message_store, conversation):
        message_store.create_message(_text(conversation.id, external_id="wamid.DUP"))
        message_store.create_message(_text(conversation.id, external_id="wamid.DUP"))

        assert len(message_store.find_messages_by_conversation(conversation.id)) == 2


class TestFindMessages:
    def test_find_by_id(self, message_store, conversation):
        record = message_store.create_message(_text(conversation.id))
        assert message_store.find_message_by_id(record.id).id == record.id
        assert message_store.find_message_by_id("missing") is None

    def test_find_by_external_id(self, message_store, conversation):
        record = message_store.create_message(_text(conversation.id, external_id="wamid.X"))
        assert message_store.find_message_by_external_id("wamid.X").id == record.id
        assert message_store.find_message_by_external_id("wamid.Y") is None
        assert message_store.find_message_by_external_id("") is None

    def test_list_is_ascending_by_creation(self, message_store, conversation):
        first = message_store.create_message(_text(conversation.id, "one"))
        second = message_store.create_message(_text(conversation.id, "two"))

        messages = message_store.find_messages_by_conversation(conversation.id)

        assert [m.id for m in messages] == [first.id, second.id]

    def test_filters(self, message_store, conversation):
        message_store.create_message(_text(conversation.id, "in", status=MessageStatus.RECEIVED))
        message_store.create_message(
            NewMessage(
                conversation_id=conversation.id,
                kind=MessageKind.BOT_ANSWER,
                payload=TextPayload(body="out"),
                status=MessageStatus.SENT,
            )
        )

        bot = message_store.find_messages_by_conversation(conversation.id, kind=MessageKind.BOT_ANSWER)
        received = message_store.find_messages_by_conversation(conversation.id, status=MessageStatus.RECEIVED)
        none = message_store.find_messages_by_conversation(
            conversation.id, kind=MessageKind.TEXT, status=MessageStatus.SENT
        )

        assert [m.text for m in bot] == ["out"]
        assert [m.text for m in received] == ["in"]
        assert none == []


class TestUpdateMessageStatus:
    def test_update(self, message_store, conversation):
        record = message_store.create_message(_text(conversation.id))
        updated = message_store.update_message_status(record.id, MessageStatus.READ)
        assert updated.status == MessageStatus.READ

    def test_regression_is_not_rejected(self, message_store, conversation):
        record = message_store.create_message(_text(conversation.id, status=MessageStatus.READ))
        updated = message_store.update_message_status(record.id, MessageStatus.SENT)
        assert updated.status == MessageStatus.SENT

    def test_unknown(self, message_store):
        with pytest.raises(NotFoundError):
            message_store.update_message_status("missing", MessageStatus.READ)
