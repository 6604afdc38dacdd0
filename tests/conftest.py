from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from whatsapp_relay.config import Settings
from whatsapp_relay.database import Base, build_session_factory
from whatsapp_relay.dependencies import ServiceContainer
from whatsapp_relay.main import create_app
from whatsapp_relay.schemas.conversation import NewConversation
from whatsapp_relay.services.assistant_service import AssistantClient
from whatsapp_relay.services.conversation_service import ConversationStore
from whatsapp_relay.services.ingestion_service import WebhookIngestionService
from whatsapp_relay.services.message_service import MessageStore
from whatsapp_relay.services.orchestration_service import AssistantOrchestrator
from whatsapp_relay.services.outbound_service import OutboundService
from whatsapp_relay.services.whatsapp_service import WhatsAppClient


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        environment="test",
        database_url="sqlite://",
        whatsapp_access_token="wa-token",
        whatsapp_verify_token="verify-me",
        openai_api_key="sk-test",
        openai_assistant_id="asst_default",
        assistant_poll_interval_ms=1000,
        assistant_poll_timeout_ms=5000,
    )


@pytest.fixture
def engine():
    # StaticPool so every session shares the single in-memory database
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    import whatsapp_relay.models  # noqa: F401 - register models

    Base.metadata.create_all(test_engine)
    yield test_engine
    Base.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def conversation_store(session_factory):
    return ConversationStore(session_factory)


@pytest.fixture
def message_store(session_factory):
    return MessageStore(session_factory)


@pytest.fixture
def conversation(conversation_store):
    return conversation_store.create_conversation(NewConversation(external_contact_id="15550001111"))


@pytest.fixture
def mock_whatsapp():
    whatsapp = Mock(spec=WhatsAppClient)
    whatsapp.send_text = AsyncMock(return_value="wamid.OUT1")
    whatsapp.send_media = AsyncMock(return_value="wamid.OUT2")
    whatsapp.mark_as_read = AsyncMock(return_value={"success": True})
    whatsapp.get_media_info = AsyncMock()
    return whatsapp


@pytest.fixture
def mock_assistant():
    assistant = Mock(spec=AssistantClient)
    assistant.create_thread = AsyncMock()
    assistant.create_message = AsyncMock()
    assistant.create_run = AsyncMock()
    assistant.get_run = AsyncMock()
    assistant.list_messages = AsyncMock(return_value=[])
    assistant.upload_file = AsyncMock()
    return assistant


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def orchestrator(mock_assistant, conversation_store, settings, fake_clock):
    return AssistantOrchestrator(
        mock_assistant,
        conversation_store,
        default_assistant_id=settings.openai_assistant_id,
        poll_interval_ms=settings.assistant_poll_interval_ms,
        poll_timeout_ms=settings.assistant_poll_timeout_ms,
        sleep=fake_clock.sleep,
        clock=fake_clock,
    )


@pytest.fixture
def services(settings, conversation_store, message_store, mock_whatsapp, mock_assistant, orchestrator):
    return ServiceContainer(
        settings=settings,
        conversations=conversation_store,
        messages=message_store,
        whatsapp=mock_whatsapp,
        assistant=mock_assistant,
        outbound=OutboundService(mock_whatsapp, message_store),
        ingestion=WebhookIngestionService(conversation_store, message_store, mock_whatsapp),
        orchestrator=orchestrator,
    )


@pytest.fixture
def client(services):
    app = create_app(services=services)
    return TestClient(app, raise_server_exceptions=False)


def make_envelope(*messages, phone_number_id="PNID-1", statuses=None):
    value = {
        "messaging_product": "whatsapp",
        "metadata": {"display_phone_number": "15550009999", "phone_number_id": phone_number_id},
    }
    if messages:
        value["messages"] = list(messages)
    if statuses:
        value["statuses"] = statuses
    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "WABA-1", "changes": [{"field": "messages", "value": value}]}],
    }


def text_message(body="Hello", sender="15550001111", message_id="wamid.IN1", timestamp="1700000000"):
    return {
        "from": sender,
        "id": message_id,
        "timestamp": timestamp,
        "type": "text",
        "text": {"body": body},
    }


@pytest.fixture(name="make_envelope")
def make_envelope_fixture():
    return make_envelope


@pytest.fixture(name="text_message")
def text_message_fixture():
    return text_message
