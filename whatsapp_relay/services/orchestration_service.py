import asyncio
import time
from typing import Awaitable, Callable, Optional

from whatsapp_relay.errors import RunTimeoutError
from whatsapp_relay.logging_config import get_logger
from whatsapp_relay.schemas.assistant import AssistantMessage, AssistantRun
from whatsapp_relay.schemas.conversation import ConversationRecord
from whatsapp_relay.services.assistant_service import AssistantClient
from whatsapp_relay.services.conversation_service import ConversationStore
from whatsapp_relay.services.state_machine import is_run_completed, is_run_pending

logger = get_logger("orchestration_service")

StatusCallback = Callable[[AssistantRun], None]


def extract_text(message: Optional[AssistantMessage]) -> str:
    if message is None:
        return ""
    return message.text_value()


class AssistantOrchestrator:
    """Thread/run bookkeeping for a conversation and bounded polling of a run.

    Thread and run ids live in ``conversation.config`` and are persisted as soon
    as they are known. Callers serialize work per conversation; nothing here
    takes a lock.
    """

    def __init__(
        self,
        assistant: AssistantClient,
        conversations: ConversationStore,
        default_assistant_id: str = "",
        poll_interval_ms: int = 1000,
        poll_timeout_ms: int = 120000,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.assistant = assistant
        self.conversations = conversations
        self.default_assistant_id = default_assistant_id
        self.poll_interval_ms = poll_interval_ms
        self.poll_timeout_ms = poll_timeout_ms
        self._sleep = sleep
        self._clock = clock

    async def ensure_thread(self, conversation: ConversationRecord) -> str:
        thread_id = conversation.typed_config.thread_id
        if thread_id:
            return thread_id
        thread = await self.assistant.create_thread()
        self.conversations.merge_conversation_config(conversation.id, {"thread_id": thread.id})
        logger.info(
            "Thread attached to conversation",
            extra={"context": {"conversation_id": conversation.id, "thread_id": thread.id}},
        )
        return thread.id

    async def process_conversation(
        self,
        message_text: str,
        conversation: ConversationRecord,
        on_status: Optional[StatusCallback] = None,
    ) -> Optional[AssistantMessage]:
        """Send one user message through the assistant and return its newest reply.

        Returns None when the run ends in any status other than completed, or
        when the thread holds no assistant message after the run.
        """
        thread_id = await self.ensure_thread(conversation)

        await self.assistant.create_message(thread_id, message_text)

        assistant_id = conversation.typed_config.assistant_id or self.default_assistant_id or None
        run = await self.assistant.create_run(thread_id, assistant_id=assistant_id)
        self.conversations.merge_conversation_config(conversation.id, {"run_id": run.id})

        logger.info(
            "Run started for conversation",
            extra={"context": {"conversation_id": conversation.id, "thread_id": thread_id, "run_id": run.id}},
        )

        finished = await self.wait_for_run(thread_id, run.id, on_status=on_status)
        if not is_run_completed(finished.status):
            logger.warning(
                "Run finished without completing",
                extra={"context": {"run_id": run.id, "status": finished.status, "last_error": finished.last_error}},
            )
            # newest assistant message would be the previous turn's reply
            return None

        return await self.get_last_assistant_message(thread_id)

    async def wait_for_run(
        self,
        thread_id: str,
        run_id: str,
        interval_ms: Optional[int] = None,
        timeout_ms: Optional[int] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> AssistantRun:
        """Poll until the run leaves queued/in_progress/cancelling.

        Any terminal status is returned, not raised. Exceeding the timeout
        raises RunTimeoutError without cancelling the remote run.
        """
        interval_ms = self.poll_interval_ms if interval_ms is None else interval_ms
        timeout_ms = self.poll_timeout_ms if timeout_ms is None else timeout_ms
        started = self._clock()

        run = await self.assistant.get_run(thread_id, run_id)
        if on_status:
            on_status(run)

        while is_run_pending(run.status):
            elapsed_ms = (self._clock() - started) * 1000
            if elapsed_ms > timeout_ms:
                logger.warning(
                    "Run polling timed out",
                    extra={"context": {"thread_id": thread_id, "run_id": run_id, "status": run.status}},
                )
                raise RunTimeoutError(run_id, timeout_ms)
            await self._sleep(interval_ms / 1000)
            run = await self.assistant.get_run(thread_id, run_id)
            if on_status:
                on_status(run)

        logger.info(f"Run {run_id} finished with status {run.status}")
        return run

    async def get_last_assistant_message(self, thread_id: str) -> Optional[AssistantMessage]:
        messages = await self.assistant.list_messages(thread_id)
        replies = [message for message in messages if message.role == "assistant"]
        if not replies:
            return None
        return max(replies, key=lambda message: message.created_at)
