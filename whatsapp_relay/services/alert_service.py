"""Operator alerts posted to a Telegram chat."""

from typing import Optional

import httpx

from whatsapp_relay.config import Settings, get_settings
from whatsapp_relay.logging_config import get_logger

logger = get_logger("alert_service")

TELEGRAM_API_URL = "https://api.telegram.org"

LEVEL_EMOJI = {"INFO": "ℹ️", "WARNING": "⚠️", "ERROR": "❌", "CRITICAL": "🔥"}


def send_alert(
    level: str,
    message: str,
    context: Optional[dict] = None,
    settings: Optional[Settings] = None,
) -> bool:
    """Send an alert to the operator chat.

    Args:
        level: INFO, WARNING, ERROR, CRITICAL
        message: Alert message
        context: Optional context dict
        settings: Settings carrying the bot token and chat id

    Returns:
        True if sent successfully. Never raises.
    """
    settings = settings or get_settings()
    if not settings.alert_bot_token or not settings.alert_chat_id:
        logger.warning(f"Alert not configured: {level} - {message}")
        return False

    text = f"{LEVEL_EMOJI.get(level, '📢')} *{level}* [{settings.app_name}]\n\n{message}"

    if context:
        context_str = "\n".join(f"  {k}: {v}" for k, v in context.items())
        text += f"\n\n```\n{context_str}\n```"

    try:
        with httpx.Client(timeout=10) as client:
            response = client.post(
                f"{TELEGRAM_API_URL}/bot{settings.alert_bot_token}/sendMessage",
                json={"chat_id": settings.alert_chat_id, "text": text, "parse_mode": "Markdown"},
            )
            return response.status_code == 200
    except Exception as e:
        logger.error(f"Failed to send alert: {e}")
        return False


def alert_error(message: str, context: Optional[dict] = None, settings: Optional[Settings] = None) -> bool:
    """Shortcut for ERROR level alert."""
    return send_alert("ERROR", message, context, settings)
