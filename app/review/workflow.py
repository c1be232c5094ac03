"""Report workflow state machine.

Manages per-report ``status`` transitions:

    drafted → submitted
            ↘ pending_review → approved
                             ↘ returned → drafted (resubmission)

Every transition is a conditional update on the status and version the
caller read, so two writers racing on the same report cannot both win.
"""
from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.audit.audit_log import record_event
from app.audit.events import (
    EVENT_LOW_ACCURACY_DETECTED,
    EVENT_REPORT_SUBMITTED,
    EVENT_REVIEW_RESOLVED,
)
from app.core.constants import (
    REPORT_APPROVED,
    REPORT_DRAFTED,
    REPORT_PENDING_REVIEW,
    REPORT_RETURNED,
    REPORT_SUBMITTED,
)
from app.core.exceptions import InvalidStateError
from app.db.models import Report
from app.db.repositories import ReportRepository

# Allowed transitions: current_status → {valid target statuses}
_TRANSITIONS: dict[str, set[str]] = {
    REPORT_DRAFTED: {REPORT_SUBMITTED, REPORT_PENDING_REVIEW},
    REPORT_PENDING_REVIEW: {REPORT_APPROVED, REPORT_RETURNED},
    REPORT_RETURNED: {REPORT_DRAFTED},
}

# Map target status → audit event type
_STATUS_EVENT_MAP: dict[str, str] = {
    REPORT_SUBMITTED: EVENT_REPORT_SUBMITTED,
    REPORT_PENDING_REVIEW: EVENT_LOW_ACCURACY_DETECTED,
    REPORT_APPROVED: EVENT_REVIEW_RESOLVED,
    REPORT_RETURNED: EVENT_REVIEW_RESOLVED,
}


class ReportWorkflow:
    """Transition reports through their lifecycle with audit logging."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.reports = ReportRepository(db_session)

    def can_transition(self, current_status: str, to_status: str) -> bool:
        """Return whether *current_status* → *to_status* is allowed."""
        return to_status in _TRANSITIONS.get(current_status, set())

    def transition(
        self,
        report: Report,
        to_status: str,
        actor: str,
        rationale: str | None = None,
        decision: str | None = None,
        **values,
    ) -> Report:
        """Move *report* to *to_status*, applying *values* in the same update.

        Raises
        ------
        InvalidStateError
            The transition is not allowed from the report's status.
        ConcurrentModificationError
            Another writer changed the report since it was read.
        """
        current = report.status
        if not self.can_transition(current, to_status):
            raise InvalidStateError(
                f"Invalid report transition {current!r} → {to_status!r}"
            )

        self.reports.conditional_update(report, current, status=to_status, **values)

        event_type = _STATUS_EVENT_MAP.get(to_status)
        if event_type is not None:
            record_event(
                self.db,
                event_type=event_type,
                actor=actor,
                subject_id=str(report.id),
                organization_id=str(report.organization_id),
                decision=decision or to_status,
                rationale=rationale,
            )

        return report

    def get_reports_by_status(
        self,
        organization_id: UUID,
        status: str,
    ) -> list[Report]:
        """Return *organization_id*'s reports with *status*, oldest first."""
        stmt = (
            select(Report)
            .where(Report.organization_id == organization_id, Report.status == status)
            .order_by(Report.created_at.asc())
        )
        return list(self.db.execute(stmt).scalars().all())
