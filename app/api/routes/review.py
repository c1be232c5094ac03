"""Review queue routes.

Queue listings and statistics only ever include in-scope items, i.e. those
below the configured accuracy threshold.
"""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_notifier, get_policy, get_queue_manager, get_stats_aggregator
from app.api.serializers import serialize_item, serialize_stats
from app.core.constants import QUEUE_STATUSES
from app.core.exceptions import ConcurrentModificationError, InvalidStateError, NotFoundError
from app.notification.notifier import Notifier
from app.review.queue_manager import QueueManager
from app.review.reminders import send_due_soon_reminders
from app.review.router import ReviewPolicy
from app.review.stats import TriageStatsAggregator

router = APIRouter(prefix="/review", tags=["review"])


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class ActionBody(BaseModel):
    action: str
    actor: str = Field(min_length=1)
    notes: str | None = None


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("/queue", summary="In-scope review items, earliest due first")
def get_queue(
    organization_id: UUID,
    status: str | None = None,
    qm: QueueManager = Depends(get_queue_manager),
):
    if status is not None and status not in QUEUE_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status: {status!r}")
    return [serialize_item(item) for item in qm.get_queue(organization_id, status=status)]


@router.post("/items/{item_id}/actions", summary="Assign, approve, return, edit or escalate")
def act_on_item(
    item_id: UUID,
    body: ActionBody,
    qm: QueueManager = Depends(get_queue_manager),
):
    try:
        item = qm.act(item_id, body.action, notes=body.notes, actor=body.actor)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except (InvalidStateError, ConcurrentModificationError) as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return serialize_item(item)


@router.get("/stats", summary="Triage statistics for an organization")
def get_stats(
    organization_id: UUID,
    aggregator: TriageStatsAggregator = Depends(get_stats_aggregator),
):
    try:
        summary = aggregator.organization_summary(organization_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return serialize_stats(aggregator.queue_stats(organization_id), summary)


@router.post("/reminders", summary="Emit reminders for items due soon")
def post_reminders(
    organization_id: UUID | None = None,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    policy: ReviewPolicy = Depends(get_policy),
):
    sent = send_due_soon_reminders(
        db,
        notifier,
        window_hours=policy.due_soon_window_hours,
        organization_id=organization_id,
    )
    return {"sent": sent}
