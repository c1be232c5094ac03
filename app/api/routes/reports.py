"""Narrative submission and augmentation routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.api.deps import get_pipeline_service
from app.api.serializers import serialize_report, serialize_routing
from app.core.exceptions import (
    ConcurrentModificationError,
    InvalidStateError,
    InvalidTemplateError,
    NotFoundError,
)
from app.pipeline.service import ReportPipelineService, SubmissionResult

router = APIRouter(prefix="/reports", tags=["reports"])


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class SubmitBody(BaseModel):
    organization_id: UUID
    user_id: str = Field(min_length=1)
    narrative: str
    template_id: UUID | None = None
    report_type: str | None = None
    title: str | None = None
    accuracy_score: float | None = Field(default=None, ge=0, le=100)
    report_id: UUID | None = None


class AugmentBody(BaseModel):
    actor: str = Field(min_length=1)
    supplements: dict[str, str]
    accuracy_score: float | None = Field(default=None, ge=0, le=100)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _serialize_submission(result: SubmissionResult) -> dict:
    return {
        "status": result.status,
        "validation": result.validation.model_dump(),
        "report": serialize_report(result.report),
        "routing": serialize_routing(result.routing),
        "applied_fields": result.applied_fields,
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post("", summary="Submit a narrative for validation and routing")
def submit_report(
    body: SubmitBody,
    service: ReportPipelineService = Depends(get_pipeline_service),
):
    try:
        result = service.submit_narrative(
            body.organization_id,
            body.user_id,
            body.narrative,
            template_id=body.template_id,
            report_type=body.report_type,
            title=body.title,
            accuracy_score=body.accuracy_score,
            report_id=body.report_id,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except (InvalidStateError, ConcurrentModificationError) as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except (InvalidTemplateError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _serialize_submission(result)


@router.get("/{report_id}", summary="Fetch a report")
def get_report(
    report_id: UUID,
    service: ReportPipelineService = Depends(get_pipeline_service),
):
    try:
        report = service.reports.get_or_raise(report_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return serialize_report(report)


@router.post("/{report_id}/augment", summary="Insert missing information and re-validate")
def augment_report(
    report_id: UUID,
    body: AugmentBody,
    service: ReportPipelineService = Depends(get_pipeline_service),
):
    try:
        result = service.augment_report(
            report_id, body.supplements, body.actor, accuracy_score=body.accuracy_score
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except (InvalidStateError, ConcurrentModificationError) as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _serialize_submission(result)
