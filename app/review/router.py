"""Accuracy-based routing of submitted reports.

A report whose accuracy score reaches the threshold is submitted directly;
anything below it goes to ``pending_review`` with a new review queue item.
The threshold lives in one place, :class:`ReviewPolicy`, shared with the
queue manager and the statistics aggregator.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.constants import (
    HIGH_PRIORITY_BELOW,
    NORMAL_PRIORITY_BELOW,
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_NORMAL,
    REPORT_PENDING_REVIEW,
    REPORT_SUBMITTED,
)
from app.core.exceptions import InvalidStateError
from app.core.settings import Settings, get_settings
from app.db.models import Report, ReviewQueueItem
from app.db.repositories import OrganizationRepository, ReviewQueueItemRepository
from app.notification.notifier import (
    EVENT_LOW_ACCURACY_DETECTED,
    NotificationEvent,
    Notifier,
    safe_emit,
)
from app.review.workflow import ReportWorkflow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewPolicy:
    threshold: float = 85.0
    sla_hours: int = 48
    edited_score: float = 95.0
    due_soon_window_hours: int = 24

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ReviewPolicy:
        settings = settings or get_settings()
        return cls(
            threshold=settings.accuracy_threshold,
            sla_hours=settings.review_sla_hours,
            edited_score=settings.edited_accuracy_score,
            due_soon_window_hours=settings.due_soon_window_hours,
        )

    def needs_review(self, accuracy_score: float) -> bool:
        return accuracy_score < self.threshold


def priority_for_score(accuracy_score: float) -> str:
    """``<60`` high, ``[60, 70)`` normal, otherwise low."""
    if accuracy_score < HIGH_PRIORITY_BELOW:
        return PRIORITY_HIGH
    if accuracy_score < NORMAL_PRIORITY_BELOW:
        return PRIORITY_NORMAL
    return PRIORITY_LOW


def check_score(accuracy_score: float) -> float:
    score = float(accuracy_score)
    if not 0.0 <= score <= 100.0:
        raise ValueError(f"accuracy_score must be within [0, 100], got {accuracy_score}")
    return score


@dataclass
class RoutingDecision:
    auto_approve: bool
    accuracy_score: float
    review_item: ReviewQueueItem | None = None


class AccuracyRouter:
    """Route a drafted report by accuracy score."""

    def __init__(
        self,
        db_session: Session,
        policy: ReviewPolicy | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.db = db_session
        self.policy = policy or ReviewPolicy.from_settings()
        self.notifier = notifier
        self.workflow = ReportWorkflow(db_session)
        self.items = ReviewQueueItemRepository(db_session)
        self.organizations = OrganizationRepository(db_session)

    def route(self, report: Report, accuracy_score: float, actor: str = "system") -> RoutingDecision:
        """Submit *report* or enqueue it for review.

        Counter increments share the caller's transaction with the status
        change and item creation; drift is repaired by
        ``OrganizationRepository.reconcile_counters``.
        """
        score = check_score(accuracy_score)
        now = utcnow()
        first_submission = report.submitted_at is None

        if not self.policy.needs_review(score):
            self.workflow.transition(
                report,
                REPORT_SUBMITTED,
                actor,
                rationale=f"accuracy {score:.1f} >= threshold {self.policy.threshold:.1f}",
                accuracy_score=score,
                flagged=False,
                flag_reason=None,
                submitted_at=now,
            )
            if first_submission:
                self.organizations.increment_counters(report.organization_id, reports=1)
            logger.info("Report %s auto-submitted (accuracy=%.1f)", report.id, score)
            return RoutingDecision(auto_approve=True, accuracy_score=score)

        if self.items.get_open_for_report(report.id) is not None:
            raise InvalidStateError(f"Report {report.id} already has an open review item")

        first_review = not self.items.has_first_line_item(report.id)
        self.workflow.transition(
            report,
            REPORT_PENDING_REVIEW,
            actor,
            rationale=f"accuracy {score:.1f} < threshold {self.policy.threshold:.1f}",
            accuracy_score=score,
            flagged=True,
            flag_reason=f"Accuracy score {score:.1f} below threshold {self.policy.threshold:.1f}",
            submitted_at=now,
        )
        item = self.items.create(
            organization_id=report.organization_id,
            report_id=report.id,
            accuracy_score=score,
            priority=priority_for_score(score),
            due_date=now + timedelta(hours=self.policy.sla_hours),
            created_at=now,
        )
        self.organizations.increment_counters(
            report.organization_id,
            reports=1 if first_submission else 0,
            low_accuracy=1 if first_review else 0,
        )
        logger.info(
            "Report %s queued for review (accuracy=%.1f priority=%s)", report.id, score, item.priority
        )

        safe_emit(
            self.notifier,
            NotificationEvent(
                name=EVENT_LOW_ACCURACY_DETECTED,
                organization_id=str(report.organization_id),
                report_id=str(report.id),
                payload={
                    "review_item_id": str(item.id),
                    "accuracy_score": score,
                    "threshold": self.policy.threshold,
                    "priority": item.priority,
                    "due_date": item.due_date.isoformat(),
                },
            ),
        )
        return RoutingDecision(auto_approve=False, accuracy_score=score, review_item=item)
