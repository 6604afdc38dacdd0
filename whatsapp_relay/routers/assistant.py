from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from whatsapp_relay.dependencies import ServiceContainer, get_services
from whatsapp_relay.errors import NotFoundError, ValidationError
from whatsapp_relay.logging_config import get_logger
from whatsapp_relay.schemas.assistant import (
    AddThreadMessageRequest,
    CreateRunRequest,
    CreateThreadRequest,
    FileUploadedResponse,
    LastMessageResponse,
    RunCreatedResponse,
    RunStatusResponse,
    ThreadCreatedResponse,
    ThreadMessageCreatedResponse,
    ThreadMessagesResponse,
)

logger = get_logger("assistant_router")

router = APIRouter()


@router.post("/threads", response_model=ThreadCreatedResponse)
async def create_thread(request: CreateThreadRequest, services: ServiceContainer = Depends(get_services)):
    conversation = services.conversations.find_conversation_by_id(request.conversationId)
    if conversation is None:
        raise NotFoundError("Conversation not found")

    thread = await services.assistant.create_thread()
    services.conversations.merge_conversation_config(conversation.id, {"thread_id": thread.id})
    return ThreadCreatedResponse(success=True, threadId=thread.id)


@router.post("/threads/{thread_id}/messages", response_model=ThreadMessageCreatedResponse)
async def add_thread_message(
    thread_id: str,
    request: AddThreadMessageRequest,
    services: ServiceContainer = Depends(get_services),
):
    message = await services.assistant.create_message(thread_id, request.content, request.fileIds)
    return ThreadMessageCreatedResponse(success=True, messageId=message.id)


@router.post("/threads/{thread_id}/runs", response_model=RunCreatedResponse)
async def create_run(
    thread_id: str,
    request: CreateRunRequest,
    services: ServiceContainer = Depends(get_services),
):
    conversation = services.conversations.find_conversation_by_id(request.conversationId)
    if conversation is None:
        raise NotFoundError("Conversation not found")

    options = request.options
    run = await services.assistant.create_run(
        thread_id,
        assistant_id=(options.assistantId if options else None) or conversation.typed_config.assistant_id,
        instructions=options.instructions if options else None,
        model=options.model if options else None,
    )
    services.conversations.merge_conversation_config(conversation.id, {"run_id": run.id})
    return RunCreatedResponse(success=True, runId=run.id)


@router.get("/threads/{thread_id}/runs/{run_id}", response_model=RunStatusResponse)
async def get_run_status(thread_id: str, run_id: str, services: ServiceContainer = Depends(get_services)):
    run = await services.assistant.get_run(thread_id, run_id)
    return RunStatusResponse(success=True, status=run.status, run=run)


@router.get("/threads/{thread_id}/runs/{run_id}/wait", response_model=RunStatusResponse)
async def wait_for_run(
    thread_id: str,
    run_id: str,
    interval: Optional[int] = Query(default=None, ge=1),
    timeout: Optional[int] = Query(default=None, ge=1),
    services: ServiceContainer = Depends(get_services),
):
    run = await services.orchestrator.wait_for_run(thread_id, run_id, interval_ms=interval, timeout_ms=timeout)
    return RunStatusResponse(success=True, status=run.status, run=run)


@router.get("/threads/{thread_id}/messages", response_model=ThreadMessagesResponse)
async def list_thread_messages(thread_id: str, services: ServiceContainer = Depends(get_services)):
    messages = await services.assistant.list_messages(thread_id)
    return ThreadMessagesResponse(success=True, count=len(messages), messages=messages)


@router.get("/threads/{thread_id}/messages/last", response_model=LastMessageResponse)
async def get_last_assistant_message(thread_id: str, services: ServiceContainer = Depends(get_services)):
    message = await services.orchestrator.get_last_assistant_message(thread_id)
    if message is None:
        raise NotFoundError("No assistant messages found in thread")
    return LastMessageResponse(success=True, message=message)


@router.post("/files", response_model=FileUploadedResponse)
async def upload_file(
    file: Optional[UploadFile] = File(default=None),
    purpose: str = Form(default="assistants"),
    services: ServiceContainer = Depends(get_services),
):
    if file is None:
        raise ValidationError("No file uploaded")

    limit = services.settings.max_upload_bytes
    content = await file.read(limit + 1)
    if len(content) > limit:
        raise ValidationError(f"File exceeds the {limit} byte upload limit")
    if not content:
        raise ValidationError("Uploaded file is empty")

    uploaded = await services.assistant.upload_file(file.filename or "upload", content, purpose=purpose)
    logger.info("File forwarded to assistant", extra={"context": {"file_id": uploaded.id, "bytes": len(content)}})
    return FileUploadedResponse(success=True, fileId=uploaded.id, file=uploaded)
