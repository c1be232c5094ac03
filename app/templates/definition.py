"""Template and field descriptor models.

A template is immutable once reports reference it, except for
administrative edits, which never alter already-validated reports: each
report keeps a snapshot of the field keys it was validated against.
"""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.core.exceptions import InvalidTemplateError

FieldType = Literal["text", "datetime", "number", "array", "boolean"]


class FieldDescriptor(BaseModel):
    """One declared piece of information a narrative must carry."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    label: str = ""
    description: str = ""
    required: bool = True
    type: FieldType = "text"

    @property
    def display_name(self) -> str:
        return self.label or self.key.replace("_", " ")


class TemplateDefinition(BaseModel):
    """Ordered required-field list plus the descriptor for every field."""

    model_config = ConfigDict(frozen=True)

    template_id: str
    name: str
    report_type: str
    instructions: str = ""
    required_fields: tuple[str, ...] = ()
    field_definitions: dict[str, FieldDescriptor] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fill_descriptor_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        defs = data.get("field_definitions") or {}
        filled = {}
        for key, value in defs.items():
            if isinstance(value, dict):
                filled[key] = {"key": key, **value}
            else:
                filled[key] = value
        return {**data, "field_definitions": filled}

    @model_validator(mode="after")
    def _required_fields_are_defined(self) -> TemplateDefinition:
        undefined = [k for k in self.required_fields if k not in self.field_definitions]
        if undefined:
            raise InvalidTemplateError(
                f"Template {self.template_id!r}: required fields {undefined} "
                f"have no field definition"
            )
        if len(set(self.required_fields)) != len(self.required_fields):
            raise InvalidTemplateError(
                f"Template {self.template_id!r}: required fields must be unique"
            )
        return self

    def required_descriptors(self) -> list[FieldDescriptor]:
        """Descriptors for ``required_fields``, in declared order."""
        return [self.field_definitions[key] for key in self.required_fields]
