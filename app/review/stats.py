"""Read-only triage statistics per organization.

"In scope" means ``accuracy_score < threshold`` with the same
:class:`ReviewPolicy` the router uses, so queue counts and routing can
never disagree on what low accuracy is.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.core.constants import PRIORITIES, QUEUE_IN_REVIEW, QUEUE_PENDING, QUEUE_RESOLVED
from app.db.repositories import OrganizationRepository, ReviewQueueItemRepository
from app.review.router import ReviewPolicy


@dataclass
class TriageStats:
    total: int = 0
    pending: int = 0
    in_review: int = 0
    overdue: int = 0
    resolved: int = 0
    average_resolution_hours: float | None = None
    average_accuracy: float | None = None
    by_priority: dict[str, int] = field(default_factory=dict)


@dataclass
class OrganizationSummary:
    organization_id: str
    name: str
    report_count: int
    low_accuracy_count: int
    low_accuracy_rate: float


class TriageStatsAggregator:
    def __init__(self, db_session: Session, policy: ReviewPolicy | None = None) -> None:
        self.db = db_session
        self.policy = policy or ReviewPolicy.from_settings()
        self.items = ReviewQueueItemRepository(db_session)
        self.organizations = OrganizationRepository(db_session)

    def queue_stats(self, organization_id: UUID, now: datetime | None = None) -> TriageStats:
        now = as_utc(now) if now is not None else utcnow()
        items = self.items.list_for_organization(organization_id, below_score=self.policy.threshold)

        stats = TriageStats(total=len(items), by_priority={p: 0 for p in sorted(PRIORITIES)})
        resolution_hours: list[float] = []
        priorities: Counter[str] = Counter()

        for item in items:
            priorities[item.priority] += 1
            if item.status == QUEUE_PENDING:
                stats.pending += 1
            elif item.status == QUEUE_IN_REVIEW:
                stats.in_review += 1
            elif item.status == QUEUE_RESOLVED:
                stats.resolved += 1
                if item.resolved_at is not None:
                    delta = as_utc(item.resolved_at) - as_utc(item.created_at)
                    resolution_hours.append(delta.total_seconds() / 3600.0)

            if item.status != QUEUE_RESOLVED and as_utc(item.due_date) < now:
                stats.overdue += 1

        stats.by_priority.update(priorities)
        if resolution_hours:
            stats.average_resolution_hours = round(sum(resolution_hours) / len(resolution_hours), 2)
        if items:
            stats.average_accuracy = round(sum(i.accuracy_score for i in items) / len(items), 2)
        return stats

    def organization_summary(self, organization_id: UUID) -> OrganizationSummary:
        org = self.organizations.get_or_raise(organization_id)
        rate = org.low_accuracy_count / org.report_count if org.report_count else 0.0
        return OrganizationSummary(
            organization_id=str(org.id),
            name=org.name,
            report_count=org.report_count,
            low_accuracy_count=org.low_accuracy_count,
            low_accuracy_rate=round(rate, 4),
        )

    def list_queue(self, organization_id: UUID, status: str | None = None):
        """In-scope items, earliest due first, high priority first on ties."""
        return self.items.list_for_organization(
            organization_id, status=status, below_score=self.policy.threshold
        )
