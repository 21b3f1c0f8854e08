"""Logging setup with credential redaction.

The library itself only creates module loggers (``logging.getLogger(__name__)``)
and attaches a :class:`logging.NullHandler` to ``port_sdk``; nothing is
printed unless the application configures logging. :func:`configure_logging`
is the opt-in used by :class:`~port_sdk.client.PortClient` and the CLI: it
routes ``port_sdk`` records to a Rich handler on stderr and redacts
credential-like ``extra`` fields before they are rendered.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler

from port_sdk.exceptions import ConfigError

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = (
    "password",
    "secret",
    "token",
    "apikey",
    "api_key",
    "clientid",
    "client_id",
    "authorization",
    "auth",
    "bearer",
    "credentials",
    "private_key",
    "privatekey",
)

_LEVELS = {
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "TRACE": TRACE,
}

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}

_handler: Optional[logging.Handler] = None


def parse_log_level(name: str) -> int:
    """Map a level name (case-insensitive) to a :mod:`logging` level.

    Raises:
        ConfigError: For unknown names.
    """
    try:
        return _LEVELS[name.strip().upper()]
    except KeyError:
        raise ConfigError(
            f"Unknown log level {name!r}",
            details={"allowed": sorted(_LEVELS)},
        ) from None


def is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in SENSITIVE_KEYS)


def sanitize(value: Any) -> Any:
    """Return a copy of *value* with sensitive mapping entries redacted."""
    if isinstance(value, Mapping):
        return {
            k: REDACTED if isinstance(k, str) and is_sensitive_key(k) else sanitize(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [sanitize(v) for v in value]
    return value


class RedactingFilter(logging.Filter):
    """Redact sensitive ``extra`` attributes on records passing through."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in list(vars(record).items()):
            if key in _RECORD_ATTRS:
                continue
            if is_sensitive_key(key):
                setattr(record, key, REDACTED)
            elif isinstance(value, (Mapping, list, tuple)):
                setattr(record, key, sanitize(value))
        return True


class _ExtraRichHandler(RichHandler):
    """RichHandler that appends ``extra`` fields as ``key=value`` pairs."""

    def render_message(self, record: logging.LogRecord, message: str) -> Any:
        extras = {
            k: v for k, v in vars(record).items()
            if k not in _RECORD_ATTRS and not k.startswith("_")
        }
        if extras:
            message = f"{message} " + " ".join(f"{k}={v!r}" for k, v in extras.items())
        return super().render_message(record, message)


def _level_from_env(environ: Mapping[str, str]) -> Optional[int]:
    if environ.get("PORT_VERBOSE", "").lower() in ("1", "true"):
        return logging.DEBUG
    name = environ.get("PORT_LOG_LEVEL")
    return parse_log_level(name) if name else None


def configure_logging(
    level: Optional[str | int] = None,
    verbose: bool = False,
    environ: Optional[Mapping[str, str]] = None,
) -> logging.Logger:
    """Send ``port_sdk`` log records to stderr through Rich.

    The level is taken from *verbose* (DEBUG), then *level*, then the
    ``PORT_VERBOSE`` / ``PORT_LOG_LEVEL`` environment variables, and
    defaults to WARNING. Calling it again replaces the previous handler.

    Returns:
        The ``port_sdk`` logger.
    """
    global _handler

    env = os.environ if environ is None else environ
    if verbose:
        resolved = logging.DEBUG
    elif isinstance(level, int):
        resolved = level
    elif level:
        resolved = parse_log_level(level)
    else:
        resolved = _level_from_env(env) or logging.WARNING

    logger = logging.getLogger("port_sdk")
    if _handler is not None:
        logger.removeHandler(_handler)

    handler = _ExtraRichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
    )
    handler.addFilter(RedactingFilter())
    handler.setLevel(resolved)
    logger.addHandler(handler)
    logger.setLevel(resolved)
    _handler = handler
    return logger
