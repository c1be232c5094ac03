"""Review queue state machine.

Items move ``pending → in_review → resolved``; ``resolved`` is terminal.
Direct ``pending → resolved`` is allowed so reviewers can act without a
separate claim step.  Resolution side effects on the linked report:

- approved: report approved, accuracy raised to at least the threshold
- returned: report returned and flagged with the reviewer's notes
- edited:   report approved, accuracy set to the edited score
- escalated: report stays pending_review; a follow-up item is opened one
  tier up at high priority

All writes are conditional on the status and version that were read.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from app.audit.audit_log import record_event
from app.audit.events import EVENT_REVIEW_ASSIGNED, EVENT_REVIEW_ESCALATED, EVENT_REVIEW_RESOLVED
from app.core.clock import utcnow
from app.core.constants import (
    ACTION_ASSIGN,
    ACTION_RESOLUTION_MAP,
    DEFAULT_RETURN_REASON,
    OPEN_QUEUE_STATUSES,
    PRIORITY_HIGH,
    QUEUE_IN_REVIEW,
    QUEUE_PENDING,
    QUEUE_RESOLVED,
    REPORT_APPROVED,
    REPORT_RETURNED,
    RESOLUTION_APPROVED,
    RESOLUTION_EDITED,
    RESOLUTION_ESCALATED,
    RESOLUTION_RETURNED,
    RESOLUTIONS,
    VALID_ACTIONS,
)
from app.db.models import ReviewQueueItem
from app.db.repositories import ReportRepository, ReviewQueueItemRepository
from app.notification.notifier import (
    EVENT_REVIEW_ESCALATED as NOTIFY_ESCALATED,
    EVENT_REVIEW_RESOLVED as NOTIFY_RESOLVED,
    NotificationEvent,
    Notifier,
    safe_emit,
)
from app.review.router import ReviewPolicy
from app.review.workflow import ReportWorkflow

logger = logging.getLogger(__name__)


class QueueManager:
    """Assign, resolve and escalate review queue items."""

    def __init__(
        self,
        db_session: Session,
        policy: ReviewPolicy | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.db = db_session
        self.policy = policy or ReviewPolicy.from_settings()
        self.notifier = notifier
        self.items = ReviewQueueItemRepository(db_session)
        self.reports = ReportRepository(db_session)
        self.workflow = ReportWorkflow(db_session)

    # -- assign -------------------------------------------------------------

    def assign(self, item_id: UUID | str, reviewer_id: str) -> ReviewQueueItem:
        """Claim a pending item for *reviewer_id*."""
        if not reviewer_id or not reviewer_id.strip():
            raise ValueError("reviewer_id must be non-empty")

        item = self.items.get_or_raise(item_id)
        self.items.conditional_update(
            item,
            QUEUE_PENDING,
            status=QUEUE_IN_REVIEW,
            assigned_to=reviewer_id,
            assigned_at=utcnow(),
        )
        record_event(
            self.db,
            event_type=EVENT_REVIEW_ASSIGNED,
            actor=reviewer_id,
            subject_id=str(item.report_id),
            organization_id=str(item.organization_id),
        )
        return item

    # -- resolve ------------------------------------------------------------

    def resolve(
        self,
        item_id: UUID | str,
        resolution: str,
        notes: str | None = None,
        actor: str = "system",
    ) -> ReviewQueueItem:
        """Resolve an open item and apply the side effects on its report."""
        if resolution not in RESOLUTIONS:
            raise ValueError(
                f"Invalid resolution {resolution!r}; "
                f"must be one of {sorted(RESOLUTIONS)}"
            )

        item = self.items.get_or_raise(item_id)
        now = utcnow()
        self.items.conditional_update(
            item,
            OPEN_QUEUE_STATUSES,
            status=QUEUE_RESOLVED,
            resolution=resolution,
            resolution_notes=notes,
            resolved_at=now,
            resolved_by=actor,
        )

        report = self.reports.get_or_raise(item.report_id)
        follow_up = None
        if resolution == RESOLUTION_APPROVED:
            self.workflow.transition(
                report,
                REPORT_APPROVED,
                actor,
                rationale=notes,
                decision=resolution,
                accuracy_score=max(report.accuracy_score or 0.0, self.policy.threshold),
                reviewed_at=now,
            )
        elif resolution == RESOLUTION_EDITED:
            self.workflow.transition(
                report,
                REPORT_APPROVED,
                actor,
                rationale=notes,
                decision=resolution,
                accuracy_score=self.policy.edited_score,
                reviewed_at=now,
            )
        elif resolution == RESOLUTION_RETURNED:
            self.workflow.transition(
                report,
                REPORT_RETURNED,
                actor,
                rationale=notes,
                decision=resolution,
                flagged=True,
                flag_reason=notes or DEFAULT_RETURN_REASON,
                reviewed_at=now,
            )
        else:
            record_event(
                self.db,
                event_type=EVENT_REVIEW_RESOLVED,
                actor=actor,
                subject_id=str(report.id),
                organization_id=str(report.organization_id),
                decision=resolution,
                rationale=notes,
            )
            follow_up = self._escalate(item, actor, notes)

        logger.info("Review item %s resolved as %s", item.id, resolution)
        safe_emit(
            self.notifier,
            NotificationEvent(
                name=NOTIFY_RESOLVED,
                organization_id=str(item.organization_id),
                report_id=str(item.report_id),
                payload={
                    "review_item_id": str(item.id),
                    "resolution": resolution,
                    "report_status": report.status,
                    "resolved_by": actor,
                },
            ),
        )
        if follow_up is not None:
            safe_emit(
                self.notifier,
                NotificationEvent(
                    name=NOTIFY_ESCALATED,
                    organization_id=str(item.organization_id),
                    report_id=str(item.report_id),
                    payload={
                        "review_item_id": str(follow_up.id),
                        "escalated_from": str(item.id),
                        "escalation_tier": follow_up.escalation_tier,
                        "due_date": follow_up.due_date.isoformat(),
                    },
                ),
            )
        return item

    def _escalate(self, item: ReviewQueueItem, actor: str, notes: str | None) -> ReviewQueueItem:
        """Open the next-tier item for a report whose review was escalated."""
        now = utcnow()
        follow_up = self.items.create(
            organization_id=item.organization_id,
            report_id=item.report_id,
            accuracy_score=item.accuracy_score,
            priority=PRIORITY_HIGH,
            due_date=now + timedelta(hours=self.policy.sla_hours),
            escalation_tier=item.escalation_tier + 1,
            created_at=now,
        )
        record_event(
            self.db,
            event_type=EVENT_REVIEW_ESCALATED,
            actor=actor,
            subject_id=str(item.report_id),
            organization_id=str(item.organization_id),
            decision=RESOLUTION_ESCALATED,
            rationale=notes,
            metadata={
                "from_item": str(item.id),
                "to_item": str(follow_up.id),
                "escalation_tier": follow_up.escalation_tier,
            },
        )
        logger.info(
            "Report %s escalated to tier %d (item %s)",
            item.report_id,
            follow_up.escalation_tier,
            follow_up.id,
        )
        return follow_up

    # -- act ----------------------------------------------------------------

    def act(
        self,
        item_id: UUID | str,
        action: str,
        notes: str | None = None,
        actor: str = "system",
    ) -> ReviewQueueItem:
        """Dispatch a caller-facing action (assign/approve/return/edit/escalate)."""
        if action not in VALID_ACTIONS:
            raise ValueError(
                f"Invalid action {action!r}; "
                f"must be one of {sorted(VALID_ACTIONS)}"
            )
        if action == ACTION_ASSIGN:
            return self.assign(item_id, actor)
        return self.resolve(item_id, ACTION_RESOLUTION_MAP[action], notes=notes, actor=actor)

    # -- query --------------------------------------------------------------

    def get_queue(
        self,
        organization_id: UUID,
        status: str | None = None,
    ) -> list[ReviewQueueItem]:
        """In-scope items for *organization_id*, earliest due first, high priority first on ties."""
        return self.items.list_for_organization(
            organization_id,
            status=status,
            below_score=self.policy.threshold,
        )
