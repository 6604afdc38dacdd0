import ipaddress
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Depends, Request
from sqlalchemy.orm import sessionmaker

from whatsapp_relay.config import Settings
from whatsapp_relay.errors import ForbiddenError, UnauthorizedError
from whatsapp_relay.logging_config import get_logger
from whatsapp_relay.services.assistant_service import AssistantClient
from whatsapp_relay.services.conversation_service import ConversationStore
from whatsapp_relay.services.ingestion_service import WebhookIngestionService
from whatsapp_relay.services.message_service import MessageStore
from whatsapp_relay.services.orchestration_service import AssistantOrchestrator
from whatsapp_relay.services.outbound_service import OutboundService
from whatsapp_relay.services.whatsapp_service import WhatsAppClient

logger = get_logger("dependencies")


@dataclass
class ServiceContainer:
    settings: Settings
    conversations: ConversationStore
    messages: MessageStore
    whatsapp: WhatsAppClient
    assistant: AssistantClient
    outbound: OutboundService
    ingestion: WebhookIngestionService
    orchestrator: AssistantOrchestrator


def build_services(
    settings: Settings,
    session_factory: sessionmaker,
    whatsapp_transport: Optional[httpx.AsyncBaseTransport] = None,
    assistant_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ServiceContainer:
    """Wire every service once at startup from explicit settings."""
    conversations = ConversationStore(session_factory)
    messages = MessageStore(session_factory)
    whatsapp = WhatsAppClient(settings, transport=whatsapp_transport)
    assistant = AssistantClient(settings, transport=assistant_transport)
    return ServiceContainer(
        settings=settings,
        conversations=conversations,
        messages=messages,
        whatsapp=whatsapp,
        assistant=assistant,
        outbound=OutboundService(whatsapp, messages),
        ingestion=WebhookIngestionService(conversations, messages, whatsapp),
        orchestrator=AssistantOrchestrator(
            assistant,
            conversations,
            default_assistant_id=settings.openai_assistant_id,
            poll_interval_ms=settings.assistant_poll_interval_ms,
            poll_timeout_ms=settings.assistant_poll_timeout_ms,
        ),
    )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_app_settings(services: ServiceContainer = Depends(get_services)) -> Settings:
    return services.settings


def internal_network_only(request: Request, settings: Settings = Depends(get_app_settings)) -> None:
    """Reject callers outside loopback and private ranges."""
    if not settings.internal_auth_enabled:
        return
    host = request.client.host if request.client else ""
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        address = None
    if address is None or not (address.is_loopback or address.is_private):
        logger.warning("Internal route called from outside", extra={"context": {"client": host}})
        raise ForbiddenError("Access denied: internal network only")


def api_key_auth(request: Request, settings: Settings = Depends(get_app_settings)) -> None:
    if not settings.internal_auth_enabled:
        return
    provided = request.headers.get("X-API-Key")
    if not settings.internal_api_key or provided != settings.internal_api_key:
        raise UnauthorizedError("Invalid or missing API key")


INTERNAL_GUARDS = [Depends(internal_network_only), Depends(api_key_auth)]
