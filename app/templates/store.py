"""Persistence helpers between ``TemplateDefinition`` and ``ReportTemplate`` rows."""
from __future__ import annotations

import logging
from uuid import UUID, uuid5

from sqlalchemy.orm import Session

from app.db.models import ReportTemplate
from app.db.repositories import ReportTemplateRepository
from app.templates.definition import TemplateDefinition
from app.templates.loader import parse_template
from app.templates.registry import TemplateRegistry

logger = logging.getLogger(__name__)

# Stable ids for built-in templates so re-syncing never duplicates rows
_BUILTIN_NAMESPACE = UUID("6f1c1f1e-8a52-4c38-9a57-2d0b4c1f9e11")


def builtin_template_uuid(template_id: str) -> UUID:
    return uuid5(_BUILTIN_NAMESPACE, template_id)


def to_definition(row: ReportTemplate) -> TemplateDefinition:
    return parse_template(
        {
            "template_id": str(row.id),
            "name": row.name,
            "report_type": row.report_type,
            "instructions": row.instructions or "",
            "required_fields": list(row.required_fields or []),
            "field_definitions": dict(row.field_definitions or {}),
        },
        source=f"report_templates/{row.id}",
    )


def create_template(
    db: Session,
    data: dict,
    organization_id: UUID | None = None,
) -> ReportTemplate:
    """Validate *data* and persist it; invalid templates are never stored."""
    definition = parse_template({"template_id": data.get("template_id", "new"), **data})
    return ReportTemplateRepository(db).create(
        organization_id=organization_id,
        name=definition.name,
        report_type=definition.report_type,
        instructions=definition.instructions or None,
        required_fields=list(definition.required_fields),
        field_definitions={
            key: desc.model_dump(exclude={"key"})
            for key, desc in definition.field_definitions.items()
        },
    )


def sync_builtin_templates(db: Session, registry: TemplateRegistry) -> list[ReportTemplate]:
    """Upsert every registry template as an organization-less row."""
    repo = ReportTemplateRepository(db)
    rows: list[ReportTemplate] = []
    for definition in registry.list_all():
        row_id = builtin_template_uuid(definition.template_id)
        values = {
            "name": definition.name,
            "report_type": definition.report_type,
            "instructions": definition.instructions or None,
            "required_fields": list(definition.required_fields),
            "field_definitions": {
                key: desc.model_dump(exclude={"key"})
                for key, desc in definition.field_definitions.items()
            },
        }
        row = repo.get(row_id)
        if row is None:
            row = repo.create(id=row_id, organization_id=None, **values)
        else:
            repo.update(row, **values)
        rows.append(row)
    logger.info("Synced %d built-in templates", len(rows))
    return rows
