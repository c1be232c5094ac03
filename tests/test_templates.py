"""Tests for report templates: definitions, YAML loading, registry, store."""
from __future__ import annotations

from pathlib import Path
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidTemplateError
from app.db.models import ReportTemplate
from app.db.repositories import ReportTemplateRepository
from app.templates.definition import FieldDescriptor, TemplateDefinition
from app.templates.loader import load_all_templates, load_template, parse_template
from app.templates.registry import TemplateRegistry
from app.templates.store import (
    builtin_template_uuid,
    create_template,
    sync_builtin_templates,
    to_definition,
)

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "config" / "templates"


def _template_data(**overrides) -> dict:
    data = {
        "template_id": "t1",
        "name": "Test",
        "report_type": "incident",
        "required_fields": ["location", "incident_time"],
        "field_definitions": {
            "location": {"label": "Location"},
            "incident_time": {"label": "Time", "type": "datetime"},
        },
    }
    data.update(overrides)
    return data


# ===========================================================================
# Definitions
# ===========================================================================


class TestTemplateDefinition:
    def test_descriptor_keys_filled_from_mapping(self) -> None:
        t = parse_template(_template_data())
        assert t.field_definitions["location"].key == "location"

    def test_required_descriptors_keep_declared_order(self) -> None:
        t = parse_template(_template_data())
        assert [d.key for d in t.required_descriptors()] == ["location", "incident_time"]

    def test_undefined_required_field_rejected(self) -> None:
        with pytest.raises(InvalidTemplateError, match="no field definition"):
            parse_template(_template_data(required_fields=["location", "suspect"]))

    def test_duplicate_required_field_rejected(self) -> None:
        with pytest.raises(InvalidTemplateError, match="unique"):
            parse_template(_template_data(required_fields=["location", "location"]))

    def test_missing_keys_rejected(self) -> None:
        data = _template_data()
        del data["report_type"]
        with pytest.raises(InvalidTemplateError, match="report_type"):
            parse_template(data)

    def test_bad_field_type_rejected(self) -> None:
        data = _template_data(field_definitions={
            "location": {"type": "colour"},
            "incident_time": {},
        })
        with pytest.raises(InvalidTemplateError):
            parse_template(data)

    def test_empty_required_list_is_valid(self) -> None:
        t = parse_template(_template_data(required_fields=[], field_definitions={}))
        assert t.required_descriptors() == []

    def test_display_name_falls_back_to_key(self) -> None:
        assert FieldDescriptor(key="victim_information").display_name == "victim information"
        assert FieldDescriptor(key="x", label="Victim").display_name == "Victim"


# ===========================================================================
# Loader / registry
# ===========================================================================


class TestLoader:
    def test_builtin_templates_load(self) -> None:
        templates = load_all_templates(TEMPLATES_DIR)
        ids = {t.template_id for t in templates}
        assert ids == {"incident_report", "arrest_report", "accident_report", "witness_statement"}

    def test_optional_field_not_required(self) -> None:
        incident = load_template(TEMPLATES_DIR / "incident.yaml")
        assert "property_details" in incident.field_definitions
        assert "property_details" not in incident.required_fields
        assert incident.field_definitions["property_details"].required is False

    def test_missing_directory_yields_empty_list(self, tmp_path: Path) -> None:
        assert load_all_templates(tmp_path / "nope") == []

    def test_invalid_yaml_template_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "bad.yaml").write_text(
            "template_id: bad\nname: Bad\nreport_type: x\n"
            "required_fields: [ghost]\nfield_definitions: {}\n",
            encoding="utf-8",
        )
        with pytest.raises(InvalidTemplateError, match="ghost"):
            load_all_templates(tmp_path)


class TestRegistry:
    def test_get_and_for_report_type(self) -> None:
        registry = TemplateRegistry(load_all_templates(TEMPLATES_DIR))
        assert registry.get("arrest_report").report_type == "arrest"
        assert registry.for_report_type("witness").template_id == "witness_statement"
        assert registry.for_report_type("traffic") is None

    def test_get_unknown_raises_key_error(self) -> None:
        with pytest.raises(KeyError):
            TemplateRegistry().get("nope")

    def test_register_replaces(self) -> None:
        registry = TemplateRegistry()
        registry.register(parse_template(_template_data(name="One")))
        registry.register(parse_template(_template_data(name="Two")))
        assert [t.name for t in registry.list_all()] == ["Two"]


# ===========================================================================
# Store
# ===========================================================================


class TestStore:
    def test_sync_is_idempotent(self, db_session: Session) -> None:
        registry = TemplateRegistry(load_all_templates(TEMPLATES_DIR))
        sync_builtin_templates(db_session, registry)
        sync_builtin_templates(db_session, registry)

        rows = ReportTemplateRepository(db_session).list_for_organization(None)
        assert len(rows) == 4
        assert db_session.get(ReportTemplate, builtin_template_uuid("incident_report")) is not None

    def test_create_template_round_trips_definition(self, db_session: Session, org) -> None:
        row = create_template(db_session, _template_data(), organization_id=org.id)
        definition = to_definition(row)
        assert isinstance(definition, TemplateDefinition)
        assert definition.required_fields == ("location", "incident_time")
        assert definition.field_definitions["incident_time"].type == "datetime"

    def test_invalid_template_never_stored(self, db_session: Session) -> None:
        with pytest.raises(InvalidTemplateError):
            create_template(db_session, _template_data(required_fields=["ghost"]))
        assert ReportTemplateRepository(db_session).list_for_organization(None) == []

    def test_org_templates_visible_only_to_owner(self, db_session: Session, org) -> None:
        create_template(db_session, _template_data(name="Org only"), organization_id=org.id)
        assert ReportTemplateRepository(db_session).list_for_organization(uuid4()) == []
        assert len(ReportTemplateRepository(db_session).list_for_organization(org.id)) == 1
