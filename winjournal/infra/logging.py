"""Structured logging helpers shared across the journal backend."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Mapping

ROOT_LOGGER_NAME = "winjournal"
DEFAULT_LEVEL = "INFO"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Attributes present on every LogRecord; anything else arrived through `extra`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


class ExtraFieldsFormatter(logging.Formatter):
    """Formatter that appends `extra={...}` fields as a JSON blob."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if not extras:
            return base
        return f"{base} {json.dumps(extras, default=str, sort_keys=True)}"


def get_logger(name: str) -> logging.Logger:
    """Return a module logger nested under the application root logger."""

    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(config: Mapping[str, Any] | None = None) -> logging.Logger:
    """Install a single stream handler on the root application logger.

    Safe to call repeatedly; previously installed handlers are replaced.
    """

    config = dict(config or {})
    level = str(config.get("level", DEFAULT_LEVEL)).upper()
    fmt = str(config.get("format", DEFAULT_FORMAT))

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if getattr(handler, "_winjournal_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ExtraFieldsFormatter(fmt))
    handler._winjournal_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = bool(config.get("propagate", True))
    return root
