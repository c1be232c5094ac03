from datetime import timedelta

import pytest
from sqlalchemy import update

from app.core.clock import utcnow
from app.core.exceptions import ConcurrentModificationError, InvalidStateError, NotFoundError
from app.db.models import Report
from app.db.repositories import (
    AuditEventRepository,
    OrganizationRepository,
    ReportRepository,
    ReportTemplateRepository,
    ReviewQueueItemRepository,
)


def test_repository_crud_helpers_cover_all_entities(db_session, org):
    template_repo = ReportTemplateRepository(db_session)
    report_repo = ReportRepository(db_session)
    item_repo = ReviewQueueItemRepository(db_session)
    audit_repo = AuditEventRepository(db_session)

    template = template_repo.create(
        name="Incident Report",
        report_type="incident",
        required_fields=["location"],
        field_definitions={"location": {"label": "Location"}},
    )
    report = report_repo.create(
        organization_id=org.id,
        user_id="officer-17",
        report_type="incident",
        template_id=template.id,
        narrative="Dispatched to 1 Elm St.",
    )
    item = item_repo.create(
        organization_id=org.id,
        report_id=report.id,
        accuracy_score=55.0,
        priority="high",
        due_date=utcnow() + timedelta(hours=48),
    )
    event = audit_repo.create(event_type="report_submitted", actor="system", subject_id=str(report.id))

    assert report_repo.get(report.id).template_id == template.id
    assert item_repo.get_or_raise(str(item.id)) is item
    assert audit_repo.get(event.audit_event_id).immutable is True
    assert len(report_repo.list()) == 1

    report_repo.update(report, title="Disturbance on Elm")
    assert report_repo.get(report.id).title == "Disturbance on Elm"

    with pytest.raises(NotFoundError):
        report_repo.get_or_raise("00000000-0000-0000-0000-000000000000")


def test_defaults(db_session, make_report):
    report = make_report()
    db_session.refresh(report)
    assert report.status == "drafted"
    assert report.version == 1
    assert report.flagged is False


class TestConditionalUpdate:
    def test_success_bumps_version(self, db_session, make_report):
        report = make_report()
        ReportRepository(db_session).conditional_update(report, "drafted", status="submitted")
        assert report.status == "submitted"
        assert report.version == 2

    def test_accepts_a_set_of_statuses(self, db_session, make_report):
        report = make_report(status="returned")
        ReportRepository(db_session).conditional_update(report, {"drafted", "returned"}, title="x")
        assert report.title == "x"

    def test_wrong_status_rejected_before_writing(self, db_session, make_report):
        report = make_report()
        with pytest.raises(InvalidStateError):
            ReportRepository(db_session).conditional_update(report, "pending_review", status="approved")
        assert report.version == 1

    def test_stale_version(self, db_session, make_report):
        report = make_report()
        db_session.execute(
            update(Report)
            .where(Report.id == report.id)
            .values(version=5)
            .execution_options(synchronize_session=False)
        )
        with pytest.raises(ConcurrentModificationError):
            ReportRepository(db_session).conditional_update(report, "drafted", status="submitted")
        assert report.status == "drafted"
        assert report.version == 5


class TestOrganizationCounters:
    def test_increment(self, db_session, org):
        repo = OrganizationRepository(db_session)
        repo.increment_counters(org.id, reports=1, low_accuracy=1)
        repo.increment_counters(org.id, reports=1)
        db_session.refresh(org)
        assert org.report_count == 2
        assert org.low_accuracy_count == 1

    def test_reconcile_recomputes_from_collections(self, db_session, org, make_report):
        item_repo = ReviewQueueItemRepository(db_session)
        submitted = make_report(status="submitted", submitted_at=utcnow())
        reviewed = make_report(status="pending_review", submitted_at=utcnow())
        make_report()  # never routed
        for tier in (0, 1):
            item_repo.create(
                organization_id=org.id,
                report_id=reviewed.id,
                accuracy_score=50.0,
                priority="high",
                due_date=utcnow(),
                escalation_tier=tier,
                status="resolved" if tier == 0 else "pending",
            )
        assert submitted.id != reviewed.id

        org.report_count = 42
        org.low_accuracy_count = 17
        db_session.flush()

        OrganizationRepository(db_session).reconcile_counters(org.id)
        assert org.report_count == 2
        assert org.low_accuracy_count == 1


class TestReviewQueueItemRepository:
    def test_open_item_lookup(self, db_session, org, make_report):
        repo = ReviewQueueItemRepository(db_session)
        report = make_report()
        assert repo.get_open_for_report(report.id) is None
        assert repo.has_first_line_item(report.id) is False

        item = repo.create(
            organization_id=org.id,
            report_id=report.id,
            accuracy_score=50.0,
            priority="high",
            due_date=utcnow(),
        )
        assert repo.get_open_for_report(report.id) is item
        assert repo.has_first_line_item(report.id) is True

        repo.conditional_update(item, "pending", status="resolved", resolution="approved")
        assert repo.get_open_for_report(report.id) is None
        assert repo.has_first_line_item(report.id) is True
