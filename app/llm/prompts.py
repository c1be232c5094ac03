"""Prompt templates for LLM-assisted field validation.

Each template uses Python string ``.format()`` placeholders and instructs
the LLM to respond in structured JSON.  The model only judges which of the
listed fields the narrative supports; completeness is decided by
:mod:`app.validation.completeness`.
"""
from __future__ import annotations

from collections.abc import Sequence

from app.templates.definition import FieldDescriptor

# ---------------------------------------------------------------------------
# System prompt shared by all validation calls
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = (
    "You are a police report field validator.  "
    "You ONLY output valid JSON.  No prose, no markdown fences, no commentary.  "
    "Only judge the fields you are given and never invent new ones."
)

# ---------------------------------------------------------------------------
# VALIDATE_REQUIRED_FIELDS
# ---------------------------------------------------------------------------

VALIDATE_REQUIRED_FIELDS = (
    "Check whether the narrative below contains information for EACH of the "
    "required fields.\n"
    "\n"
    "Required fields:\n"
    "{field_lines}\n"
    "\n"
    "Narrative:\n"
    "```\n"
    "{narrative}\n"
    "```\n"
    "\n"
    "A field is present if the narrative mentions something relevant to it.  "
    "Be reasonable: \"123 Main Street\" counts for a location field, "
    "\"2:30 PM\" counts for a time field, \"Officer Johnson assisted\" counts "
    "for an officer name field.\n"
    "\n"
    "Respond with a JSON object containing exactly these keys:\n"
    "  - \"present_fields\": keys from the list above the narrative supports\n"
    "  - \"missing_fields\": keys from the list above the narrative lacks\n"
    "  - \"confidence_score\": your confidence in this assessment (0.0 to 1.0)\n"
    "  - \"guidance\": one short sentence asking only for the missing fields\n"
    "\n"
    "Respond ONLY with valid JSON.  No additional text."
)

USE_CASE_VALIDATE_FIELDS = "validate_required_fields"

PROMPT_TEMPLATES: dict[str, str] = {
    USE_CASE_VALIDATE_FIELDS: VALIDATE_REQUIRED_FIELDS,
}


def format_field_lines(fields: Sequence[FieldDescriptor]) -> str:
    """One ``- key: label - description`` line per field."""
    lines = []
    for f in fields:
        description = f.description or "No description"
        lines.append(f"- {f.key}: {f.display_name} - {description}")
    return "\n".join(lines)


def build_validation_prompt(narrative: str, fields: Sequence[FieldDescriptor]) -> str:
    return VALIDATE_REQUIRED_FIELDS.format(
        field_lines=format_field_lines(fields),
        narrative=narrative,
    )
