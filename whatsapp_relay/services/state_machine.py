from enum import Enum


class ConversationKind(str, Enum):
    USER_INITIATED = "user_initiated"
    OPERATOR_INITIATED = "operator_initiated"


class ConversationStatus(str, Enum):
    NEW = "new"
    ACTIVE = "active"
    PENDING = "pending"
    CLOSED = "closed"
    TAKEN = "taken"


class MessageKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    DOCUMENT = "document"
    AUDIO = "audio"
    VIDEO = "video"
    LOCATION = "location"
    CONTACT = "contact"
    BOT_ANSWER = "bot_answer"


MEDIA_KINDS = frozenset({MessageKind.IMAGE, MessageKind.DOCUMENT, MessageKind.AUDIO, MessageKind.VIDEO})


class MessageStatus(str, Enum):
    PENDING = "pending"
    RECEIVED = "received"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


class RunStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    FAILED = "failed"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    EXPIRED = "expired"


# queued -> in_progress -> (completed | failed | cancelled | expired); cancelling ends in cancelled
PENDING_RUN_STATUSES = frozenset({RunStatus.QUEUED.value, RunStatus.IN_PROGRESS.value, RunStatus.CANCELLING.value})


def is_run_pending(status: str) -> bool:
    """True while the poll loop should keep waiting on the run."""
    return status in PENDING_RUN_STATUSES


def is_run_completed(status: str) -> bool:
    """Only a completed run has content worth extracting."""
    return status == RunStatus.COMPLETED.value
