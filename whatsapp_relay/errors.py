"""Error taxonomy shared by services and routers.

Every error carries the HTTP status it maps to. Routers never format error
bodies themselves; they raise and let ``error_handlers`` render the response.
"""

from typing import Optional


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, is_operational: bool = True):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.is_operational = is_operational


class ValidationError(ApiError):
    status_code = 400


class UnauthorizedError(ApiError):
    status_code = 401


class ForbiddenError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class StorageError(ApiError):
    status_code = 500

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.original_error = original_error


class RemoteServiceError(ApiError):
    status_code = 503
    service = "remote"

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.code = code
        self.original_error = original_error


class WhatsAppError(RemoteServiceError):
    service = "whatsapp"

    def __init__(self, message: str, code: Optional[int] = None, original_error: Optional[BaseException] = None):
        super().__init__(f"WhatsApp API error: {message}", code=code, original_error=original_error)


class AssistantServiceError(RemoteServiceError):
    service = "openai"

    def __init__(self, message: str, code: Optional[int] = None, original_error: Optional[BaseException] = None):
        super().__init__(f"OpenAI API error: {message}", code=code, original_error=original_error)


class RunTimeoutError(ApiError):
    status_code = 504

    def __init__(self, run_id: str, timeout_ms: int):
        super().__init__(f"Run {run_id} timeout after {timeout_ms}ms")
        self.run_id = run_id
        self.timeout_ms = timeout_ms


def convert_to_api_error(error: BaseException) -> ApiError:
    """Wrap anything that is not already an ApiError into a non-operational 500."""
    if isinstance(error, ApiError):
        return error
    converted = ApiError(str(error) or error.__class__.__name__, status_code=500, is_operational=False)
    converted.__cause__ = error
    return converted
