import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from whatsapp_relay.config import Settings
from whatsapp_relay.errors import ApiError, convert_to_api_error
from whatsapp_relay.logging_config import get_logger
from whatsapp_relay.services.alert_service import alert_error

logger = get_logger("error_handlers")


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return ", ".join(parts) or "Validation error"


def build_error_response(error: ApiError, request: Request, settings: Settings) -> JSONResponse:
    """Render an ApiError in the single error body shape and log it."""
    context = {
        "status": error.status_code,
        "method": request.method,
        "path": request.url.path,
        "error": error.message,
    }

    if error.is_operational:
        logger.warning("Request failed", extra={"context": context})
    else:
        cause = error.__cause__ or error
        logger.error(
            "Unhandled error",
            exc_info=(type(cause), cause, cause.__traceback__),
            extra={"context": context},
        )
        alert_error("Unhandled API error", context, settings)

    message = error.message
    if settings.is_production and not error.is_operational:
        message = "Internal server error"

    body = {"success": False, "status": error.status_code, "message": message}
    if settings.is_development:
        cause = error.__cause__ or error
        body["stack"] = "".join(traceback.format_exception(type(cause), cause, cause.__traceback__))

    return JSONResponse(status_code=error.status_code, content=body)


def register_error_handlers(app: FastAPI, settings: Settings) -> None:
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        return build_error_response(exc, request, settings)

    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return build_error_response(ApiError(_validation_message(exc), status_code=400), request, settings)

    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404 and exc.detail == "Not Found":
            message = f"Route {request.url.path} not found"
        else:
            message = str(exc.detail)
        return build_error_response(ApiError(message, status_code=exc.status_code), request, settings)

    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        return build_error_response(convert_to_api_error(exc), request, settings)

    app.add_exception_handler(ApiError, handle_api_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected)
