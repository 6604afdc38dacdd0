from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# OpenAI Assistants objects, kept permissive so new API fields pass through


class AssistantThread(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    created_at: Optional[int] = None
    metadata: Optional[dict[str, Any]] = None


class AssistantRun(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    thread_id: Optional[str] = None
    assistant_id: Optional[str] = None
    status: str
    created_at: Optional[int] = None
    last_error: Optional[dict[str, Any]] = None


class MessageText(BaseModel):
    model_config = ConfigDict(extra="allow")

    value: str = ""


class MessageContentPart(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    text: Optional[MessageText] = None


class AssistantMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    thread_id: Optional[str] = None
    role: str
    created_at: int = 0
    content: list[MessageContentPart] = Field(default_factory=list)
    run_id: Optional[str] = None

    def text_value(self) -> str:
        """Concatenate every text content part in order."""
        return "".join(part.text.value for part in self.content if part.type == "text" and part.text)


class AssistantFile(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    filename: Optional[str] = None
    purpose: Optional[str] = None
    bytes: Optional[int] = None


# Internal API bodies


class CreateThreadRequest(BaseModel):
    conversationId: str = Field(min_length=1)


class AddThreadMessageRequest(BaseModel):
    content: str = Field(min_length=1)
    fileIds: list[str] = Field(default_factory=list)


class RunOptions(BaseModel):
    assistantId: Optional[str] = None
    instructions: Optional[str] = None
    model: Optional[str] = None


class CreateRunRequest(BaseModel):
    conversationId: str = Field(min_length=1)
    options: Optional[RunOptions] = None


class ThreadCreatedResponse(BaseModel):
    success: bool
    threadId: str


class ThreadMessageCreatedResponse(BaseModel):
    success: bool
    messageId: str


class RunCreatedResponse(BaseModel):
    success: bool
    runId: str


class RunStatusResponse(BaseModel):
    success: bool
    status: str
    run: AssistantRun


class ThreadMessagesResponse(BaseModel):
    success: bool
    count: int
    messages: list[AssistantMessage]


class LastMessageResponse(BaseModel):
    success: bool
    message: AssistantMessage


class FileUploadedResponse(BaseModel):
    success: bool
    fileId: str
    file: AssistantFile
