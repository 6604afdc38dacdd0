from typing import Any, Optional, Sequence

import httpx

from whatsapp_relay.config import Settings
from whatsapp_relay.errors import AssistantServiceError
from whatsapp_relay.logging_config import get_logger
from whatsapp_relay.schemas.assistant import AssistantFile, AssistantMessage, AssistantRun, AssistantThread

logger = get_logger("assistant_service")


class AssistantClient:
    """OpenAI Assistants API provider (threads, messages, runs, files)."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.openai_api_key
        self.base_url = settings.openai_api_url.rstrip("/")
        self.default_assistant_id = settings.openai_assistant_id
        self.timeout = settings.http_timeout_seconds
        self._transport = transport

    def _headers(self, json_body: bool = True) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "assistants=v2",
        }
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        files: Optional[dict] = None,
        data: Optional[dict] = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug(f"OpenAI request: {method} {path}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    url,
                    headers=self._headers(json_body=files is None),
                    json=json,
                    params=params,
                    files=files,
                    data=data,
                )
        except httpx.HTTPError as e:
            logger.error(f"OpenAI transport error: {method} {path}: {e}")
            raise AssistantServiceError(str(e) or e.__class__.__name__, original_error=e) from e

        logger.debug(f"OpenAI response status: {response.status_code}")

        if not response.is_success:
            logger.error(f"OpenAI error: {response.text[:500]}")
            raise AssistantServiceError(f"{response.status_code} - {response.text[:500]}", code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise AssistantServiceError("invalid JSON in response", code=response.status_code, original_error=e) from e

    async def create_thread(self) -> AssistantThread:
        thread = AssistantThread.model_validate(await self._request("POST", "threads", json={}))
        logger.info(f"Created new thread: {thread.id}")
        return thread

    async def create_message(
        self,
        thread_id: str,
        content: str,
        file_ids: Sequence[str] = (),
    ) -> AssistantMessage:
        """Append a user message to the thread."""
        payload: dict[str, Any] = {"role": "user", "content": content}
        if file_ids:
            payload["attachments"] = [{"file_id": file_id, "tools": [{"type": "file_search"}]} for file_id in file_ids]
        message = AssistantMessage.model_validate(
            await self._request("POST", f"threads/{thread_id}/messages", json=payload)
        )
        logger.info(f"Created message in thread {thread_id}")
        return message

    async def create_run(
        self,
        thread_id: str,
        assistant_id: Optional[str] = None,
        instructions: Optional[str] = None,
        model: Optional[str] = None,
    ) -> AssistantRun:
        payload: dict[str, Any] = {"assistant_id": assistant_id or self.default_assistant_id}
        if instructions:
            payload["instructions"] = instructions
        if model:
            payload["model"] = model
        run = AssistantRun.model_validate(await self._request("POST", f"threads/{thread_id}/runs", json=payload))
        logger.info(f"Started run {run.id} in thread {thread_id}")
        return run

    async def get_run(self, thread_id: str, run_id: str) -> AssistantRun:
        run = AssistantRun.model_validate(await self._request("GET", f"threads/{thread_id}/runs/{run_id}"))
        logger.debug(f"Run {run_id} status: {run.status}")
        return run

    async def list_messages(self, thread_id: str) -> list[AssistantMessage]:
        data = await self._request("GET", f"threads/{thread_id}/messages", params={"order": "desc", "limit": 100})
        messages = [AssistantMessage.model_validate(item) for item in data.get("data", [])]
        logger.info(f"Retrieved {len(messages)} messages from thread {thread_id}")
        return messages

    async def upload_file(self, filename: str, content: bytes, purpose: str = "assistants") -> AssistantFile:
        if not content:
            raise ValueError("content is empty")
        uploaded = AssistantFile.model_validate(
            await self._request(
                "POST",
                "files",
                files={"file": (filename or "upload", content)},
                data={"purpose": purpose},
            )
        )
        logger.info(f"Uploaded file with ID: {uploaded.id}")
        return uploaded
