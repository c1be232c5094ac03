"""Structured-field extraction at the client boundary.

``FieldExtractor`` is the narrow interface the completeness validator
depends on.  ``OllamaFieldExtractor`` is the default implementation: it
prompts the model, then parses and validates the loosely-structured reply
into an ``ExtractionResult`` so no unchecked shape flows past this module.
"""
from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from typing import Any, Protocol
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from app.core.exceptions import ExtractionServiceError
from app.llm.client import OllamaClient
from app.llm.prompts import SYSTEM_PROMPT, USE_CASE_VALIDATE_FIELDS, build_validation_prompt
from app.templates.definition import FieldDescriptor

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


class ExtractionResult(BaseModel):
    """Validated extractor output.

    Field lists are taken as reported; filtering against the template's
    required set is the validator's job.
    """

    present_fields: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("present_fields", "presentFields"),
    )
    missing_fields: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("missing_fields", "missingFields"),
    )
    confidence_score: float = Field(
        ge=0.0,
        le=1.0,
        validation_alias=AliasChoices("confidence_score", "confidenceScore", "confidence"),
    )
    guidance: str = Field(
        default="",
        validation_alias=AliasChoices("guidance", "promptForMissingInfo", "guidance_text"),
    )

    @field_validator("present_fields", "missing_fields")
    @classmethod
    def _strip_keys(cls, value: list[str]) -> list[str]:
        return [v.strip() for v in value if isinstance(v, str) and v.strip()]


class FieldExtractor(Protocol):
    """Anything that can judge which declared fields a narrative supports."""

    def extract(
        self,
        narrative: str,
        fields: Sequence[FieldDescriptor],
        *,
        report_id: UUID | None = None,
    ) -> ExtractionResult:
        ...


def _load_json_object(raw: str) -> Any:
    """Parse JSON from a model reply, tolerating fences and surrounding prose."""
    raw = (raw or "").strip()
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        pass

    fence = _FENCE_RE.search(raw)
    if fence:
        try:
            return json.loads(fence.group(1))
        except json.JSONDecodeError:
            pass

    first = raw.find("{")
    last = raw.rfind("}")
    if first != -1 and last > first:
        try:
            return json.loads(raw[first:last + 1])
        except json.JSONDecodeError:
            pass

    raise ExtractionServiceError("Model output is not valid JSON")


def parse_extraction_payload(raw: str) -> ExtractionResult:
    """Turn a raw model reply into an ``ExtractionResult``.

    Raises
    ------
    ExtractionServiceError
        If the reply is not a JSON object of the expected shape.
    """
    data = _load_json_object(raw)
    if not isinstance(data, dict):
        raise ExtractionServiceError(
            f"Expected a JSON object from the extractor, got {type(data).__name__}"
        )
    try:
        return ExtractionResult.model_validate(data)
    except ValidationError as exc:
        raise ExtractionServiceError(f"Malformed extraction payload: {exc.error_count()} errors") from exc


class OllamaFieldExtractor:
    """``FieldExtractor`` backed by a local Ollama model."""

    def __init__(self, client: OllamaClient | None = None) -> None:
        self.client = client or OllamaClient()

    def extract(
        self,
        narrative: str,
        fields: Sequence[FieldDescriptor],
        *,
        report_id: UUID | None = None,
    ) -> ExtractionResult:
        prompt = build_validation_prompt(narrative, fields)
        raw = self.client.generate(
            prompt,
            system=SYSTEM_PROMPT,
            use_case=USE_CASE_VALIDATE_FIELDS,
            report_id=report_id,
            json_mode=True,
        )
        result = parse_extraction_payload(raw)
        logger.info(
            "Extractor reported %d present / %d missing of %d fields (confidence=%.2f)",
            len(result.present_fields),
            len(result.missing_fields),
            len(fields),
            result.confidence_score,
        )
        return result
