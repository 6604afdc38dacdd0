"""JSON logs for the relay.

Every line is one JSON object tagged with the service name and environment
from settings. Configured credentials never reach the output: the access
tokens, API keys and verify token are masked in the rendered line.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from whatsapp_relay.config import Settings

LOGGER_PREFIX = "relay"
MASK = "***"
CLIENT_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    def __init__(self, static_fields: Optional[dict[str, Any]] = None, secrets: Iterable[Optional[str]] = ()):
        super().__init__()
        self.static_fields = dict(static_fields or {})
        # longest first so a secret that contains another is masked whole
        self.secrets = tuple(sorted({secret for secret in secrets if secret}, key=len, reverse=True))

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            **self.static_fields,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        line = json.dumps(log_data, ensure_ascii=False, default=str)
        for secret in self.secrets:
            line = line.replace(secret, MASK)
        return line


def secret_values(settings: Settings) -> list[Optional[str]]:
    return [
        settings.whatsapp_access_token,
        settings.whatsapp_verify_token,
        settings.openai_api_key,
        settings.internal_api_key,
        settings.alert_bot_token,
    ]


def setup_logging(settings: Settings) -> logging.Handler:
    """Replace the root handlers with a single stdout JSON handler.

    The level comes from ``settings.log_level``. HTTP client and access loggers
    stay at WARNING unless the relay itself runs at DEBUG.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JSONFormatter(
            {"service": settings.app_name, "environment": settings.environment},
            secrets=secret_values(settings),
        )
    )
    root_logger.addHandler(handler)

    client_level = logging.DEBUG if level == logging.DEBUG else logging.WARNING
    for name in CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(client_level)

    return handler


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


class ContextAdapter(logging.LoggerAdapter):
    """Carries fixed context (e.g. a message id) into every line it logs.

    A per-call ``context=`` keyword is merged over the fixed one.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        merged = {**(self.extra or {}), **(kwargs.pop("context", None) or {})}
        if merged:
            kwargs["extra"] = {**kwargs.get("extra", {}), "context": merged}
        return msg, kwargs
