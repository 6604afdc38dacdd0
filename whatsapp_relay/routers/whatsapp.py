from typing import Optional

from fastapi import APIRouter, Depends, Query

from whatsapp_relay.dependencies import ServiceContainer, get_services
from whatsapp_relay.errors import ApiError, NotFoundError, ValidationError
from whatsapp_relay.logging_config import get_logger
from whatsapp_relay.schemas.conversation import ConversationRecord
from whatsapp_relay.schemas.whatsapp import (
    MarkAsReadRequest,
    MessageListResponse,
    ProcessWithAIRequest,
    SendMediaRequest,
    SendMessageRequest,
    SendResponse,
    SuccessResponse,
)
from whatsapp_relay.services.orchestration_service import extract_text
from whatsapp_relay.services.state_machine import MessageKind, MessageStatus

logger = get_logger("whatsapp_router")

router = APIRouter()


def _require_conversation(services: ServiceContainer, conversation_id: str) -> ConversationRecord:
    conversation = services.conversations.find_conversation_by_id(conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation not found")
    return conversation


@router.post("/send", response_model=SendResponse)
async def send_message(request: SendMessageRequest, services: ServiceContainer = Depends(get_services)):
    _require_conversation(services, request.conversationId)
    record = await services.outbound.send_text(
        request.to, request.message, request.phoneNumberId, request.conversationId
    )
    return SendResponse(success=True, messageId=record.id)


@router.post("/sendMedia", response_model=SendResponse)
async def send_media(request: SendMediaRequest, services: ServiceContainer = Depends(get_services)):
    _require_conversation(services, request.conversationId)
    record = await services.outbound.send_media(
        request.to, request.mediaData, request.phoneNumberId, request.conversationId
    )
    return SendResponse(success=True, messageId=record.id)


@router.post("/markAsRead", response_model=SuccessResponse)
async def mark_as_read(request: MarkAsReadRequest, services: ServiceContainer = Depends(get_services)):
    await services.outbound.mark_as_read(request.messageId, request.phoneNumberId)
    return SuccessResponse(success=True)


@router.get("/messages/{conversation_id}", response_model=MessageListResponse)
def list_messages(
    conversation_id: str,
    kind: Optional[MessageKind] = Query(default=None, alias="type"),
    status: Optional[MessageStatus] = Query(default=None),
    services: ServiceContainer = Depends(get_services),
):
    _require_conversation(services, conversation_id)
    messages = services.messages.find_messages_by_conversation(conversation_id, kind=kind, status=status)
    return MessageListResponse(success=True, count=len(messages), messages=messages)


@router.post("/processWithAI", response_model=SendResponse)
async def process_with_ai(request: ProcessWithAIRequest, services: ServiceContainer = Depends(get_services)):
    """Run a stored inbound message through the assistant and send the reply."""
    conversation = _require_conversation(services, request.conversationId)

    message = services.messages.find_message_by_id(request.messageId)
    if message is None:
        raise NotFoundError("Message not found")
    if not message.text:
        raise ValidationError("Message has no text content")

    reply = await services.orchestrator.process_conversation(message.text, conversation)
    text = extract_text(reply)
    if not text:
        logger.warning(
            "Assistant returned no text",
            extra={"context": {"conversation_id": conversation.id, "message_id": message.id}},
        )
        raise ApiError("No response from AI", status_code=500)

    record = await services.outbound.send_text(
        conversation.external_contact_id, text, request.phoneNumberId, conversation.id
    )
    logger.info(
        "Assistant reply sent",
        extra={"context": {"conversation_id": conversation.id, "reply_message_id": record.id}},
    )
    return SendResponse(success=True, messageId=record.id)
