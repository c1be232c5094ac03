"""Fire-and-forget notifier interface.

Safety: payloads hold ids, scores, priorities and due dates only; never a
narrative or reviewer notes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Protocol

from app.core.clock import utcnow

logger = logging.getLogger(__name__)

EVENT_LOW_ACCURACY_DETECTED = "low_accuracy_detected"
EVENT_REVIEW_DUE_SOON = "review_due_soon"
EVENT_REVIEW_RESOLVED = "review_resolved"
EVENT_REVIEW_ESCALATED = "review_escalated"

EventName = Literal["low_accuracy_detected", "review_due_soon", "review_resolved", "review_escalated"]


@dataclass(frozen=True)
class NotificationEvent:
    name: EventName
    organization_id: str
    report_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utcnow)


class Notifier(Protocol):
    def emit(self, event: NotificationEvent) -> None:
        ...


class LoggingNotifier:
    """Default notifier: writes one INFO line per event."""

    def emit(self, event: NotificationEvent) -> None:
        logger.info(
            "Notification %s: organization=%s report=%s payload=%s",
            event.name,
            event.organization_id,
            event.report_id,
            event.payload,
        )


class RecordingNotifier:
    """Keeps emitted events in memory, e.g. for tests or batch delivery."""

    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    def emit(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [e.name for e in self.events]


def safe_emit(notifier: Notifier | None, event: NotificationEvent) -> bool:
    """Emit *event*, logging and swallowing any notifier failure.

    Returns ``True`` when the notifier accepted the event.
    """
    if notifier is None:
        return False
    try:
        notifier.emit(event)
    except Exception:
        logger.exception("Notifier failed for %s on report %s", event.name, event.report_id)
        return False
    return True
