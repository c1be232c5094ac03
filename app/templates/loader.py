"""Template YAML loader.

Loads template definitions from ``config/templates/*.yaml`` files and
returns ``TemplateDefinition`` instances.
"""
from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from app.core.exceptions import InvalidTemplateError
from app.templates.definition import TemplateDefinition

_REQUIRED_KEYS: frozenset[str] = frozenset({
    "template_id",
    "name",
    "report_type",
    "required_fields",
    "field_definitions",
})


def parse_template(data: dict, source: str = "<template>") -> TemplateDefinition:
    """Build a ``TemplateDefinition`` from a plain mapping.

    Raises
    ------
    InvalidTemplateError
        If keys are missing, a descriptor is malformed, or a required field
        has no definition.
    """
    if not isinstance(data, dict):
        raise InvalidTemplateError(f"{source}: expected a mapping, got {type(data).__name__}")

    missing = _REQUIRED_KEYS - data.keys()
    if missing:
        raise InvalidTemplateError(f"{source}: missing required keys: {sorted(missing)}")

    try:
        return TemplateDefinition.model_validate(data)
    except ValidationError as exc:
        raise InvalidTemplateError(f"{source}: {exc}") from exc


def load_template(path: str | Path) -> TemplateDefinition:
    """Load a single template from a YAML file."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return parse_template(data, source=str(path))


def load_all_templates(directory: str | Path = "config/templates") -> list[TemplateDefinition]:
    """Load all ``*.yaml`` template files from *directory*.

    A missing directory yields an empty list.
    """
    directory = Path(directory)
    if not directory.is_dir():
        return []
    templates: list[TemplateDefinition] = []
    for path in sorted(directory.iterdir()):
        if path.suffix not in (".yaml", ".yml"):
            continue
        templates.append(load_template(path))
    return templates
