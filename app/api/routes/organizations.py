"""Organization routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_pipeline_service
from app.api.serializers import serialize_organization
from app.core.exceptions import NotFoundError
from app.db.repositories import OrganizationRepository
from app.pipeline.service import ReportPipelineService

router = APIRouter(prefix="/organizations", tags=["organizations"])


class OrganizationBody(BaseModel):
    name: str = Field(min_length=1)


class ReconcileBody(BaseModel):
    actor: str = "system"


@router.post("", status_code=201, summary="Create an organization")
def create_organization(body: OrganizationBody, db: Session = Depends(get_db)):
    org = OrganizationRepository(db).create(name=body.name)
    return serialize_organization(org)


@router.get("/{organization_id}", summary="Fetch an organization and its counters")
def get_organization(organization_id: UUID, db: Session = Depends(get_db)):
    try:
        org = OrganizationRepository(db).get_or_raise(organization_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return serialize_organization(org)


@router.post("/{organization_id}/reconcile", summary="Recompute drifted counters")
def reconcile_organization(
    organization_id: UUID,
    body: ReconcileBody | None = None,
    service: ReportPipelineService = Depends(get_pipeline_service),
):
    actor = body.actor if body is not None else "system"
    try:
        org = service.reconcile(organization_id, actor=actor)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return serialize_organization(org)
