"""Row → JSON helpers shared by the API routes."""
from __future__ import annotations

from dataclasses import asdict

from app.core.clock import as_utc
from app.db.models import Organization, Report, ReportTemplate, ReviewQueueItem
from app.review.router import RoutingDecision
from app.review.stats import OrganizationSummary, TriageStats


def _iso(value):
    value = as_utc(value)
    return value.isoformat() if value else None


def serialize_report(report: Report) -> dict:
    return {
        "id": str(report.id),
        "organization_id": str(report.organization_id),
        "user_id": report.user_id,
        "report_type": report.report_type,
        "template_id": str(report.template_id) if report.template_id else None,
        "title": report.title,
        "narrative": report.narrative,
        "accuracy_score": report.accuracy_score,
        "status": report.status,
        "flagged": report.flagged,
        "flag_reason": report.flag_reason,
        "validated_fields": report.validated_fields,
        "submitted_at": _iso(report.submitted_at),
        "reviewed_at": _iso(report.reviewed_at),
        "version": report.version,
        "created_at": _iso(report.created_at),
    }


def serialize_item(item: ReviewQueueItem) -> dict:
    return {
        "id": str(item.id),
        "organization_id": str(item.organization_id),
        "report_id": str(item.report_id),
        "accuracy_score": item.accuracy_score,
        "status": item.status,
        "priority": item.priority,
        "due_date": _iso(item.due_date),
        "assigned_to": item.assigned_to,
        "assigned_at": _iso(item.assigned_at),
        "resolution": item.resolution,
        "resolution_notes": item.resolution_notes,
        "resolved_at": _iso(item.resolved_at),
        "resolved_by": item.resolved_by,
        "escalation_tier": item.escalation_tier,
        "version": item.version,
        "created_at": _iso(item.created_at),
    }


def serialize_template(row: ReportTemplate) -> dict:
    return {
        "id": str(row.id),
        "organization_id": str(row.organization_id) if row.organization_id else None,
        "name": row.name,
        "report_type": row.report_type,
        "instructions": row.instructions,
        "required_fields": list(row.required_fields or []),
        "field_definitions": dict(row.field_definitions or {}),
    }


def serialize_organization(org: Organization) -> dict:
    return {
        "id": str(org.id),
        "name": org.name,
        "report_count": org.report_count,
        "low_accuracy_count": org.low_accuracy_count,
        "created_at": _iso(org.created_at),
    }


def serialize_routing(decision: RoutingDecision | None) -> dict | None:
    if decision is None:
        return None
    return {
        "auto_approve": decision.auto_approve,
        "accuracy_score": decision.accuracy_score,
        "review_item": serialize_item(decision.review_item) if decision.review_item else None,
    }


def serialize_stats(stats: TriageStats, summary: OrganizationSummary) -> dict:
    return {"queue": asdict(stats), "organization": asdict(summary)}
