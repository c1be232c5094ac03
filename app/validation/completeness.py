"""Field-completeness validation for report narratives.

The validator asks a :class:`~app.llm.extractor.FieldExtractor` which of a
template's required fields a narrative supports, then enforces the result
against the declared required set:

- an empty required list is complete by definition and never calls out;
- any extraction failure fails closed (every field missing);
- fields the extractor mentions outside the required set are discarded;
- a field not reported present (or reported both ways) counts as missing.

Guidance text is generated here from the field labels and never copied from
the extractor, so it cannot mention foreign fields.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from uuid import UUID

import httpx
from pydantic import BaseModel, Field

from app.core.exceptions import ExtractionServiceError
from app.core.settings import get_settings
from app.llm.extractor import FieldExtractor
from app.templates.definition import FieldDescriptor, TemplateDefinition

logger = logging.getLogger(__name__)

# Transport failures from any backend fail closed like service errors do.
_EXTRACTION_FAILURES = (ExtractionServiceError, httpx.HTTPError, OSError)


class ValidationResult(BaseModel):
    """Outcome of one validation call.  Not persisted."""

    is_complete: bool
    missing_fields: list[str] = Field(default_factory=list)
    present_fields: list[str] = Field(default_factory=list)
    confidence_score: float = Field(ge=0.0, le=1.0)
    guidance_text: str = ""
    extraction_failed: bool = False


def build_guidance(missing: Sequence[FieldDescriptor]) -> str:
    """Ask for exactly the *missing* fields, by label."""
    if not missing:
        return "All required information is present."
    names = [f.display_name for f in missing]
    if len(names) == 1:
        listed = names[0]
    else:
        listed = ", ".join(names[:-1]) + f" and {names[-1]}"
    return f"Please add the following information to the narrative: {listed}."


class CompletenessValidator:
    """Decide which required fields a narrative is missing.

    Parameters
    ----------
    extractor:
        Structured-field extraction backend.
    failure_confidence:
        Confidence reported when extraction fails.  Defaults to
        ``settings.validation_failure_confidence``.
    """

    def __init__(
        self,
        extractor: FieldExtractor,
        *,
        failure_confidence: float | None = None,
    ) -> None:
        self.extractor = extractor
        if failure_confidence is None:
            failure_confidence = get_settings().validation_failure_confidence
        self.failure_confidence = failure_confidence

    def validate(
        self,
        narrative: str,
        required_fields: Sequence[FieldDescriptor],
        *,
        report_id: UUID | None = None,
    ) -> ValidationResult:
        if not required_fields:
            return ValidationResult(is_complete=True, confidence_score=1.0)

        # Deduplicate while keeping declared order
        descriptors: dict[str, FieldDescriptor] = {}
        for descriptor in required_fields:
            descriptors.setdefault(descriptor.key, descriptor)
        declared = list(descriptors.values())

        try:
            extraction = self.extractor.extract(narrative, declared, report_id=report_id)
        except _EXTRACTION_FAILURES as exc:
            logger.warning(
                "Field extraction failed (%s); treating all %d required fields as missing",
                type(exc).__name__,
                len(declared),
            )
            return self._fail_closed(declared)

        reported_present = set(extraction.present_fields)
        reported_missing = set(extraction.missing_fields)
        foreign = (reported_present | reported_missing) - descriptors.keys()
        if foreign:
            logger.info("Discarding %d field(s) outside the required set", len(foreign))

        present = [
            key for key in descriptors
            if key in reported_present and key not in reported_missing
        ]
        missing = [key for key in descriptors if key not in present]

        return ValidationResult(
            is_complete=not missing,
            missing_fields=missing,
            present_fields=present,
            confidence_score=extraction.confidence_score,
            guidance_text=build_guidance([descriptors[k] for k in missing]),
        )

    def validate_template(
        self,
        narrative: str,
        template: TemplateDefinition,
        *,
        report_id: UUID | None = None,
    ) -> ValidationResult:
        """Validate against *template*'s required fields."""
        return self.validate(narrative, template.required_descriptors(), report_id=report_id)

    def _fail_closed(self, declared: list[FieldDescriptor]) -> ValidationResult:
        return ValidationResult(
            is_complete=False,
            missing_fields=[f.key for f in declared],
            present_fields=[],
            confidence_score=self.failure_confidence,
            guidance_text=build_guidance(declared),
            extraction_failed=True,
        )


def accuracy_from_validation(result: ValidationResult) -> float:
    """Derive a 0-100 accuracy score from a validation result.

    The share of required fields present, weighted by the extractor's
    confidence.  A template with no requirements scores 100.
    """
    total = len(result.present_fields) + len(result.missing_fields)
    if total == 0:
        return 100.0
    ratio = len(result.present_fields) / total
    return round(ratio * result.confidence_score * 100.0, 2)
