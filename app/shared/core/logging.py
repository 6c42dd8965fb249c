import logging
import re
import sys
from typing import Any, cast

import structlog

from app.shared.core.config import get_settings

_EMAIL_RE = re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+")
_SENSITIVE_FIELDS = {
    "password",
    "token",
    "secret",
    "authorization",
    "cookie",
    "api_key",
    "apikey",
    "raw_key",
    "hashed_key",
    "access_token",
    "session",
}
_SENSITIVE_SUFFIXES = ("_token", "_secret", "_password", "_key")
_SENSITIVE_FRAGMENTS = ("authorization", "secret", "token", "apikey", "api_key")


def _is_sensitive_key(key: Any) -> bool:
    key_norm = str(key).lower().strip().replace("-", "_")
    if key_norm in _SENSITIVE_FIELDS:
        return True
    if key_norm.endswith(_SENSITIVE_SUFFIXES):
        return True
    return any(fragment in key_norm for fragment in _SENSITIVE_FRAGMENTS)


def _redact(data: Any) -> Any:
    if isinstance(data, dict):
        return {
            k: ("[REDACTED]" if _is_sensitive_key(k) else _redact(v))
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [_redact(item) for item in data]
    if isinstance(data, str):
        return _EMAIL_RE.sub("[EMAIL_REDACTED]", data)
    return data


def pii_redactor(
    _logger: Any, _method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """
    Redact credentials and e-mail addresses before rendering.

    SCIM payloads routinely carry userNames and emails, and the auth layer sees
    raw API keys; none of that may reach log sinks verbatim.
    """
    redacted = _redact(event_dict)
    if isinstance(redacted, dict):
        return cast(dict[str, Any], redacted)
    return {}


def setup_logging() -> None:
    settings = get_settings()

    base_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        pii_redactor,
    ]

    if settings.DEBUG:
        renderer: Any = structlog.dev.ConsoleRenderer()
        processors = base_processors + [renderer]
        min_level = logging.DEBUG
    else:
        renderer = structlog.processors.JSONRenderer()
        processors = base_processors + [structlog.processors.dict_tracebacks, renderer]
        min_level = logging.INFO

    structlog.configure(
        processors=cast(Any, processors),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Route stdlib logging (uvicorn, sqlalchemy) to the same stream.
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=min_level,
    )
