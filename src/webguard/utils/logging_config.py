"""Structured JSON logging for webguard processes.

Validators only ever log the kind of a rejection. As a second line of defence
the formatter redacts ``extra`` fields whose key is one of a fixed set of
credential and raw-input names (``cookie``, ``token``, ``url``, ``filename``
and similar). Matching is exact, so descriptive keys such as ``auth_url``
in a config dump are kept.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from webguard.utils.config import WebGuardConfig

_HANDLER_ATTR = "_webguard_logging_handlers"
_LOG_FILE_NAME = "webguard.log"
_REDACTED = "[redacted]"

_SENSITIVE_KEYS = frozenset(
    {
        "access_token",
        "api_key",
        "apikey",
        "auth_api_key",
        "authorization",
        "cookie",
        "cookies",
        "filename",
        "password",
        "refresh_token",
        "secret",
        "set_cookie",
        "token",
        "url",
    }
)

_RESERVED_RECORD_KEYS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


def parse_log_level(value: str | None) -> int:
    """Parse a user-provided logging level, defaulting to INFO for invalid values."""

    normalized = (value or "").strip().upper()
    level = logging.getLevelName(normalized) if normalized else None
    return level if isinstance(level, int) else logging.INFO


def _is_sensitive(key: str) -> bool:
    return key.lower().replace("-", "_") in _SENSITIVE_KEYS


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(item) for item in value]
    if isinstance(value, dict):
        return {
            str(k): _REDACTED if _is_sensitive(str(k)) else _json_safe(v)
            for k, v in value.items()
        }
    return str(value)


class StructuredJsonFormatter(logging.Formatter):
    """One JSON object per line: fixed top-level fields plus redacted extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _RESERVED_RECORD_KEYS:
                continue
            payload[key] = _REDACTED if _is_sensitive(key) else _json_safe(value)

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)

        return json.dumps(payload, ensure_ascii=False)


def _remove_owned_handlers(root: logging.Logger) -> None:
    for handler in getattr(root, _HANDLER_ATTR, ()):
        try:
            root.removeHandler(handler)
        finally:
            handler.close()
    setattr(root, _HANDLER_ATTR, ())


def configure_logging(
    *,
    log_level: str | None = "INFO",
    log_dir: str | Path | None = "data/logs",
) -> None:
    """Install JSON handlers on the root logger.

    Safe to call repeatedly: handlers installed by a previous call are
    replaced, handlers installed by anyone else are left alone. Passing
    ``log_dir=None`` logs to stderr only.
    """

    root = logging.getLogger()
    _remove_owned_handlers(root)

    level = parse_log_level(log_level)
    root.setLevel(level)
    formatter = StructuredJsonFormatter()

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path / _LOG_FILE_NAME, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    setattr(root, _HANDLER_ATTR, tuple(handlers))


def configure_logging_from_config(config: WebGuardConfig) -> None:
    configure_logging(log_level=config.log_level, log_dir=config.log_dir)
