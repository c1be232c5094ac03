"""SLA reminder scan.

Finds open review items that will breach their due date within the
reminder window and emits one ``review_due_soon`` event per item.  Items
already overdue are reported by the statistics aggregator instead.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.core.constants import OPEN_QUEUE_STATUSES, PRIORITY_RANK
from app.db.models import ReviewQueueItem
from app.notification.notifier import EVENT_REVIEW_DUE_SOON, NotificationEvent, Notifier, safe_emit
from app.review.router import ReviewPolicy

logger = logging.getLogger(__name__)


def find_due_soon(
    db_session: Session,
    *,
    now: datetime | None = None,
    window_hours: int | None = None,
    organization_id: UUID | None = None,
) -> list[ReviewQueueItem]:
    """Open items with ``now <= due_date <= now + window_hours``."""
    now = as_utc(now) if now is not None else utcnow()
    if window_hours is None:
        window_hours = ReviewPolicy.from_settings().due_soon_window_hours
    horizon = now + timedelta(hours=window_hours)

    stmt = select(ReviewQueueItem).where(ReviewQueueItem.status.in_(OPEN_QUEUE_STATUSES))
    if organization_id is not None:
        stmt = stmt.where(ReviewQueueItem.organization_id == organization_id)
    items = db_session.execute(stmt).scalars().all()

    due_soon = [i for i in items if now <= as_utc(i.due_date) <= horizon]
    return sorted(due_soon, key=lambda i: (as_utc(i.due_date), PRIORITY_RANK.get(i.priority, 99)))


def send_due_soon_reminders(
    db_session: Session,
    notifier: Notifier,
    *,
    now: datetime | None = None,
    window_hours: int | None = None,
    organization_id: UUID | None = None,
) -> int:
    """Emit a reminder per due-soon item; returns how many were accepted."""
    now = as_utc(now) if now is not None else utcnow()
    items = find_due_soon(
        db_session, now=now, window_hours=window_hours, organization_id=organization_id
    )
    sent = 0
    for item in items:
        due = as_utc(item.due_date)
        accepted = safe_emit(
            notifier,
            NotificationEvent(
                name=EVENT_REVIEW_DUE_SOON,
                organization_id=str(item.organization_id),
                report_id=str(item.report_id),
                payload={
                    "review_item_id": str(item.id),
                    "priority": item.priority,
                    "assigned_to": item.assigned_to,
                    "due_date": due.isoformat(),
                    "hours_remaining": round((due - now).total_seconds() / 3600.0, 1),
                },
            ),
        )
        if accepted:
            sent += 1
    logger.info("Sent %d of %d due-soon reminders", sent, len(items))
    return sent
