"""Caller-facing report pipeline.

Ties validation, augmentation, routing and review actions together behind
two entry points: :meth:`ReportPipelineService.submit_narrative` and
:meth:`ReportPipelineService.act_on_queue_item`.  The service never
commits; the caller owns the transaction.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal
from uuid import UUID

from sqlalchemy.orm import Session

from app.audit.audit_log import record_event
from app.audit.events import EVENT_COUNTERS_RECONCILED, EVENT_NARRATIVE_AUGMENTED
from app.core.constants import REPORT_DRAFTED, REPORT_RETURNED
from app.core.exceptions import InvalidStateError, NotFoundError
from app.db.models import Organization, Report, ReviewQueueItem
from app.db.repositories import (
    OrganizationRepository,
    ReportRepository,
    ReportTemplateRepository,
)
from app.llm.client import OllamaClient
from app.llm.extractor import FieldExtractor, OllamaFieldExtractor
from app.narrative.augmenter import NarrativeAugmenter
from app.notification.notifier import LoggingNotifier, Notifier
from app.review.queue_manager import QueueManager
from app.review.router import AccuracyRouter, ReviewPolicy, RoutingDecision
from app.review.workflow import ReportWorkflow
from app.templates.definition import TemplateDefinition
from app.templates.store import to_definition
from app.validation.completeness import (
    CompletenessValidator,
    ValidationResult,
    accuracy_from_validation,
)

logger = logging.getLogger(__name__)

STATUS_COMPLETE = "complete"
STATUS_NEEDS_INFO = "needs_info"


@dataclass
class SubmissionResult:
    status: Literal["complete", "needs_info"]
    validation: ValidationResult
    report: Report
    routing: RoutingDecision | None = None
    applied_fields: list[str] = field(default_factory=list)


class ReportPipelineService:
    """Request-scoped facade over the report pipeline.

    Parameters
    ----------
    db_session:
        Session for the current request.
    extractor:
        Field extraction backend.  Defaults to Ollama with call auditing
        bound to *db_session*.
    notifier:
        Event sink.  Defaults to :class:`LoggingNotifier`.
    policy:
        Threshold and SLA settings.  Defaults to the configured values.
    """

    def __init__(
        self,
        db_session: Session,
        *,
        extractor: FieldExtractor | None = None,
        notifier: Notifier | None = None,
        policy: ReviewPolicy | None = None,
    ) -> None:
        self.db = db_session
        self.policy = policy or ReviewPolicy.from_settings()
        self.notifier = notifier if notifier is not None else LoggingNotifier()
        if extractor is None:
            extractor = OllamaFieldExtractor(OllamaClient(db_session=db_session))
        self.validator = CompletenessValidator(extractor)
        self.augmenter = NarrativeAugmenter(self.validator)
        self.router = AccuracyRouter(db_session, self.policy, self.notifier)
        self.queue = QueueManager(db_session, self.policy, self.notifier)
        self.workflow = ReportWorkflow(db_session)
        self.organizations = OrganizationRepository(db_session)
        self.reports = ReportRepository(db_session)
        self.templates = ReportTemplateRepository(db_session)

    # -- templates ----------------------------------------------------------

    def resolve_template(
        self,
        organization_id: UUID,
        *,
        template_id: UUID | str | None = None,
        report_type: str | None = None,
    ) -> tuple[UUID | None, TemplateDefinition | None]:
        """Find the template a narrative is validated against.

        An explicit *template_id* wins.  Otherwise the organization's own
        template for *report_type* is preferred over the built-in one.
        Returns ``(None, None)`` when no template applies.
        """
        if template_id is not None:
            row = self.templates.get_or_raise(template_id)
            if row.organization_id not in (None, organization_id):
                raise NotFoundError(f"ReportTemplate {template_id} not found")
            return row.id, to_definition(row)

        if report_type is None:
            return None, None

        candidates = [
            row for row in self.templates.list_for_organization(organization_id)
            if row.report_type == report_type
        ]
        if not candidates:
            return None, None
        candidates.sort(key=lambda row: row.organization_id is None)
        return candidates[0].id, to_definition(candidates[0])

    def _required_descriptors(self, report: Report):
        if report.template_id is None:
            return []
        return to_definition(self.templates.get_or_raise(report.template_id)).required_descriptors()

    # -- submission ---------------------------------------------------------

    def submit_narrative(
        self,
        organization_id: UUID | str,
        user_id: str,
        narrative: str,
        *,
        template_id: UUID | str | None = None,
        report_type: str | None = None,
        title: str | None = None,
        accuracy_score: float | None = None,
        report_id: UUID | str | None = None,
    ) -> SubmissionResult:
        """Validate *narrative* and, once complete, route the report.

        A new drafted report is created unless *report_id* names an existing
        drafted or returned report, which is then resubmitted with the new
        narrative.  Incomplete narratives stay ``drafted`` and come back as
        ``needs_info`` with guidance.
        """
        org = self.organizations.get_or_raise(organization_id)

        if report_id is not None:
            report = self.reports.get_or_raise(report_id)
            if report.organization_id != org.id:
                raise NotFoundError(f"Report {report_id} not found")
            if report.status == REPORT_RETURNED:
                self.workflow.transition(report, REPORT_DRAFTED, user_id, rationale="resubmission")
            if report.status != REPORT_DRAFTED:
                raise InvalidStateError(
                    f"Report {report.id} is {report.status!r}; only drafted or returned reports "
                    f"can be resubmitted"
                )
            self.reports.conditional_update(report, REPORT_DRAFTED, narrative=narrative)
            required = self._required_descriptors(report)
        else:
            resolved_id, definition = self.resolve_template(
                org.id, template_id=template_id, report_type=report_type
            )
            report = self.reports.create(
                organization_id=org.id,
                user_id=user_id,
                report_type=report_type or (definition.report_type if definition else "general"),
                template_id=resolved_id,
                title=title,
                narrative=narrative,
            )
            required = definition.required_descriptors() if definition else []

        validation = self.validator.validate(narrative, required, report_id=report.id)
        return self._finish(report, validation, [f.key for f in required], user_id, accuracy_score)

    def augment_report(
        self,
        report_id: UUID | str,
        supplements: Mapping[str, str],
        actor: str,
        *,
        accuracy_score: float | None = None,
    ) -> SubmissionResult:
        """Insert supplementary text for missing fields, then route if complete."""
        report = self.reports.get_or_raise(report_id)
        if report.status == REPORT_RETURNED:
            self.workflow.transition(report, REPORT_DRAFTED, actor, rationale="augmentation")
        if report.status != REPORT_DRAFTED:
            raise InvalidStateError(
                f"Report {report.id} is {report.status!r}; only drafted or returned reports "
                f"can be augmented"
            )

        required = self._required_descriptors(report)
        outcome = self.augmenter.complete(report.narrative, required, supplements, report_id=report.id)

        if outcome.applied_fields:
            self.reports.conditional_update(report, REPORT_DRAFTED, narrative=outcome.narrative)
            record_event(
                self.db,
                event_type=EVENT_NARRATIVE_AUGMENTED,
                actor=actor,
                subject_id=str(report.id),
                organization_id=str(report.organization_id),
                metadata={"fields": outcome.applied_fields, "rounds": outcome.rounds},
            )

        result = self._finish(
            report, outcome.validation, [f.key for f in required], actor, accuracy_score
        )
        result.applied_fields = list(outcome.applied_fields)
        return result

    def _finish(
        self,
        report: Report,
        validation: ValidationResult,
        required_keys: list[str],
        actor: str,
        accuracy_score: float | None,
    ) -> SubmissionResult:
        self.reports.update(report, validated_fields=required_keys)

        if not validation.is_complete:
            logger.info(
                "Report %s needs info: %d of %d required fields missing",
                report.id,
                len(validation.missing_fields),
                len(required_keys),
            )
            return SubmissionResult(STATUS_NEEDS_INFO, validation, report)

        score = accuracy_score if accuracy_score is not None else accuracy_from_validation(validation)
        routing = self.router.route(report, score, actor=actor)
        return SubmissionResult(STATUS_COMPLETE, validation, report, routing)

    # -- review -------------------------------------------------------------

    def act_on_queue_item(
        self,
        item_id: UUID | str,
        action: str,
        notes: str | None = None,
        actor: str = "system",
    ) -> ReviewQueueItem:
        return self.queue.act(item_id, action, notes=notes, actor=actor)

    # -- maintenance --------------------------------------------------------

    def reconcile(self, organization_id: UUID | str, actor: str = "system") -> Organization:
        """Recompute the organization's counters and audit the correction."""
        org = self.organizations.get_or_raise(organization_id)
        self.db.refresh(org)
        before = (org.report_count, org.low_accuracy_count)
        org = self.organizations.reconcile_counters(org.id)
        after = (org.report_count, org.low_accuracy_count)
        record_event(
            self.db,
            event_type=EVENT_COUNTERS_RECONCILED,
            actor=actor,
            organization_id=str(org.id),
            metadata={
                "report_count": {"before": before[0], "after": after[0]},
                "low_accuracy_count": {"before": before[1], "after": after[1]},
            },
        )
        if before != after:
            logger.warning("Organization %s counters drifted: %s -> %s", org.id, before, after)
        return org
