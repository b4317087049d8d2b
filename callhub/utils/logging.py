"""Structured logging configuration using structlog.

Console output for development, JSON for production. Phone numbers and
secrets are masked before rendering.
"""

import re
import sys
from typing import Any

import structlog

_SENSITIVE_KEYS = frozenset({
    "secret",
    "signature",
    "token",
    "api_key",
    "authorization",
    "password",
})

_PHONE_KEYS = frozenset({"phone", "phone_number", "caller", "customer_number"})

_PHONE_RE = re.compile(r"\+?\d[\d\s\-()]{6,}\d")


def _mask_phone(value: str) -> str:
    digits = re.sub(r"\D", "", value)
    if len(digits) <= 4:
        return value
    return "***" + digits[-4:]


def _redact(_logger: Any, _method_name: str, event_dict: dict) -> dict:
    """Mask secrets and phone numbers in log events."""
    for key, value in list(event_dict.items()):
        key_lower = key.lower()
        if key_lower in _SENSITIVE_KEYS and value:
            event_dict[key] = "[REDACTED]"
        elif key_lower in _PHONE_KEYS and isinstance(value, str):
            event_dict[key] = _mask_phone(value)
        elif key != "event" and isinstance(value, str):
            event_dict[key] = _PHONE_RE.sub(lambda m: _mask_phone(m.group()), value)
    return event_dict


_LEVELS = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}


def setup_logging(level: str = "INFO", format: str = "console") -> None:
    """Configure structlog once at startup.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR).
        format: "json" for production, "console" for development.
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _redact,
    ]
    if format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            _LEVELS.get(level.upper(), 20)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound to the given module name."""
    return structlog.get_logger(name)
