"""Insert-then-revalidate loop for completing a narrative."""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from uuid import UUID

from app.core.settings import get_settings
from app.narrative.formatter import apply_insertion
from app.narrative.planner import plan_insertion
from app.templates.definition import FieldDescriptor
from app.validation.completeness import CompletenessValidator, ValidationResult

logger = logging.getLogger(__name__)


@dataclass
class AugmentationResult:
    narrative: str
    validation: ValidationResult
    applied_fields: list[str] = field(default_factory=list)
    rounds: int = 0


class NarrativeAugmenter:
    """Fill missing fields from caller-supplied text, one insertion per round.

    Each round inserts the first still-missing field that has supplementary
    text, re-planning against the current narrative, then re-validates.
    The loop stops when the narrative is complete, when nothing is left to
    insert, or after ``max_rounds``.  A fail-closed validation stops the loop
    before any further edit.
    """

    def __init__(self, validator: CompletenessValidator, *, max_rounds: int | None = None) -> None:
        self.validator = validator
        self.max_rounds = max_rounds if max_rounds is not None else get_settings().max_augmentation_rounds

    def complete(
        self,
        narrative: str,
        required_fields: Sequence[FieldDescriptor],
        supplements: Mapping[str, str],
        *,
        report_id: UUID | None = None,
    ) -> AugmentationResult:
        result = AugmentationResult(
            narrative=narrative,
            validation=self.validator.validate(narrative, required_fields, report_id=report_id),
        )

        while not result.validation.is_complete and result.rounds < self.max_rounds:
            if result.validation.extraction_failed:
                logger.warning("Validation failed closed; narrative left unmodified after %d rounds", result.rounds)
                break

            candidates = [
                key for key in result.validation.missing_fields
                if key not in result.applied_fields and (supplements.get(key) or "").strip()
            ]
            if not candidates:
                break

            key = candidates[0]
            point = plan_insertion(result.narrative, key)
            result.narrative = apply_insertion(result.narrative, point, supplements[key])
            result.applied_fields.append(key)
            result.rounds += 1
            logger.debug("Inserted %s at offset %d (%s)", key, point.offset, point.anchor_reason)

            result.validation = self.validator.validate(result.narrative, required_fields, report_id=report_id)

        return result
