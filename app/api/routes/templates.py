"""Report template routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.api.serializers import serialize_template
from app.core.exceptions import InvalidTemplateError, NotFoundError
from app.db.repositories import OrganizationRepository, ReportTemplateRepository
from app.templates.store import create_template

router = APIRouter(prefix="/templates", tags=["templates"])


class TemplateBody(BaseModel):
    organization_id: UUID | None = None
    name: str = Field(min_length=1)
    report_type: str = Field(min_length=1)
    instructions: str = ""
    required_fields: list[str] = Field(default_factory=list)
    field_definitions: dict[str, dict] = Field(default_factory=dict)


@router.get("", summary="Built-in templates plus an organization's own")
def list_templates(organization_id: UUID | None = None, db: Session = Depends(get_db)):
    rows = ReportTemplateRepository(db).list_for_organization(organization_id)
    return [serialize_template(row) for row in rows]


@router.post("", status_code=201, summary="Create a template")
def post_template(body: TemplateBody, db: Session = Depends(get_db)):
    try:
        if body.organization_id is not None:
            OrganizationRepository(db).get_or_raise(body.organization_id)
        row = create_template(
            db,
            body.model_dump(exclude={"organization_id"}),
            organization_id=body.organization_id,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except InvalidTemplateError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return serialize_template(row)
