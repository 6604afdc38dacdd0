from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from whatsapp_relay.dependencies import ServiceContainer, get_services
from whatsapp_relay.errors import ForbiddenError, ValidationError
from whatsapp_relay.logging_config import get_logger
from whatsapp_relay.schemas.whatsapp import WebhookAck

logger = get_logger("webhook")

router = APIRouter()


def _query_param(request: Request, name: str):
    params = request.query_params
    return params.get(f"hub.{name}") or params.get(name)


@router.get("/webhook", response_class=PlainTextResponse)
def verify_webhook(request: Request, services: ServiceContainer = Depends(get_services)):
    """Cloud API subscription handshake: echo the challenge when the token matches."""
    mode = _query_param(request, "mode")
    token = _query_param(request, "verify_token")
    challenge = _query_param(request, "challenge") or ""

    if not mode or not token:
        raise ValidationError("Missing verification parameters")

    if mode == "subscribe" and token == services.settings.whatsapp_verify_token:
        logger.info("Webhook verified")
        return PlainTextResponse(content=challenge, status_code=200)

    logger.warning("Webhook verification failed", extra={"context": {"mode": mode}})
    raise ForbiddenError("Verification failed")


@router.post("/webhook", response_model=WebhookAck)
async def receive_webhook(request: Request, services: ServiceContainer = Depends(get_services)):
    try:
        envelope = await request.json()
    except ValueError as e:
        raise ValidationError("Invalid JSON body") from e

    result = await services.ingestion.process_webhook(envelope)
    if result.ok:
        logger.info("Webhook processed", extra={"context": {"messages_stored": result.value}})
    else:
        logger.warning("Webhook ignored", extra={"context": {"error": result.error, "code": result.error_code}})

    return WebhookAck(success=True)
