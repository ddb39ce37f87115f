"""Startup-time config logging with secrets masked."""

from learnpay.common.config import CommonSettings
from learnpay.common.logging import logger

SECRET_MARKERS = ("key", "secret", "password", "token", "dsn")


def redacted_settings(settings: CommonSettings, fields: list[str]) -> dict[str, str]:
    """Selected settings as strings; secret-looking fields show only whether they are set."""

    view = {}
    for field in fields:
        value = getattr(settings, field)
        if any(marker in field for marker in SECRET_MARKERS) and not field.endswith("_key_id"):
            view[field] = "<redacted>" if value else "<unset>"
        else:
            view[field] = str(value)
    return view


def log_startup_config(settings: CommonSettings, fields: list[str]) -> None:
    """Log the settings an operator most often needs when a deploy misbehaves."""

    logger.info("startup_config=%s", {"service": settings.service_name, **redacted_settings(settings, fields)})
