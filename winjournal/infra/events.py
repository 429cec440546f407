"""Journal activity events published on every collection change."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Protocol, Union

from .logging import get_logger

logger = get_logger(__name__)


class JournalTopic(str, Enum):
    WIN_ADDED = "win_added"
    WIN_REMOVED = "win_removed"
    WINS_CLEARED = "wins_cleared"
    WINS_REPLACED = "wins_replaced"
    SYNC_DEGRADED = "sync_degraded"
    SYNC_REJECTED = "sync_rejected"


TopicLike = Union[JournalTopic, str]


class EventEmitter(Protocol):  # pragma: no cover - interface only
    def emit(self, topic: TopicLike, payload: Dict[str, Any]) -> None:
        """Publish ``payload`` under one of the :class:`JournalTopic` names."""


@dataclass
class LoggingEventEmitter(EventEmitter):
    """Writes each event to the application log as ``journal.<topic>``.

    Unknown topic names raise ``ValueError`` so a typo cannot silently create
    a new event stream.
    """

    namespace: str = "journal"

    def emit(self, topic: TopicLike, payload: Dict[str, Any]) -> None:
        resolved = JournalTopic(topic)
        logger.info(
            "journal_event",
            extra={
                "topic": f"{self.namespace}.{resolved.value}",
                "session_id": payload.get("session_id"),
                "payload": payload,
            },
        )


_singleton: LoggingEventEmitter | None = None


def get_event_emitter() -> EventEmitter:
    global _singleton
    if _singleton is None:
        _singleton = LoggingEventEmitter()
    return _singleton
