"""Tests for app/validation/completeness.py."""
from __future__ import annotations

import httpx
import pytest

from app.core.exceptions import ExtractionServiceError
from app.llm.client import LLMTimeoutError
from app.llm.extractor import ExtractionResult
from app.templates.loader import parse_template
from app.validation.completeness import (
    CompletenessValidator,
    ValidationResult,
    accuracy_from_validation,
    build_guidance,
)
from conftest import FailingExtractor, ScriptedExtractor, descriptors


def _result(present=(), missing=(), confidence=0.9, guidance="") -> ExtractionResult:
    return ExtractionResult(
        present_fields=list(present),
        missing_fields=list(missing),
        confidence_score=confidence,
        guidance=guidance,
    )


class TestEmptyRequirements:
    @pytest.mark.parametrize("narrative", ["", "anything at all", "   "])
    def test_complete_without_calling_extractor(self, narrative: str) -> None:
        extractor = FailingExtractor()
        result = CompletenessValidator(extractor).validate(narrative, [])

        assert result.is_complete is True
        assert result.confidence_score == 1.0
        assert result.missing_fields == []
        assert result.present_fields == []
        assert extractor.calls == 0


class TestAggregation:
    def test_all_present_is_complete(self) -> None:
        extractor = ScriptedExtractor([_result(present=["location", "incident_time"], confidence=0.92)])
        result = CompletenessValidator(extractor).validate("text", descriptors("location", "incident_time"))

        assert result.is_complete is True
        assert result.present_fields == ["location", "incident_time"]
        assert result.missing_fields == []
        assert result.confidence_score == 0.92

    def test_missing_fields_keep_declared_order(self) -> None:
        extractor = ScriptedExtractor([_result(present=["b"], missing=["c", "a"])])
        result = CompletenessValidator(extractor).validate("text", descriptors("a", "b", "c"))

        assert result.is_complete is False
        assert result.missing_fields == ["a", "c"]
        assert result.present_fields == ["b"]

    def test_over_reported_fields_are_discarded(self) -> None:
        extractor = ScriptedExtractor([
            _result(present=["location", "weapon", "officer_name"], missing=["vehicle"]),
        ])
        result = CompletenessValidator(extractor).validate("text", descriptors("location", "incident_time"))

        assert set(result.present_fields) | set(result.missing_fields) <= {"location", "incident_time"}
        assert result.present_fields == ["location"]
        assert result.missing_fields == ["incident_time"]

    def test_unreported_field_counts_as_missing(self) -> None:
        extractor = ScriptedExtractor([_result(present=["a"])])
        result = CompletenessValidator(extractor).validate("text", descriptors("a", "b"))
        assert result.missing_fields == ["b"]

    def test_field_reported_both_ways_counts_as_missing(self) -> None:
        extractor = ScriptedExtractor([_result(present=["a", "b"], missing=["b"])])
        result = CompletenessValidator(extractor).validate("text", descriptors("a", "b"))
        assert result.present_fields == ["a"]
        assert result.missing_fields == ["b"]

    def test_duplicate_descriptors_collapse(self) -> None:
        extractor = ScriptedExtractor([_result(present=["a"])])
        fields = descriptors("a") + descriptors("a")
        result = CompletenessValidator(extractor).validate("text", fields)
        assert result.present_fields == ["a"]
        assert extractor.calls[0][1] == ["a"]

    def test_guidance_never_mentions_foreign_fields(self) -> None:
        extractor = ScriptedExtractor([
            _result(missing=["location", "weapon_type"], guidance="Please add the weapon_type."),
        ])
        result = CompletenessValidator(extractor).validate("text", descriptors("location"))

        assert "weapon" not in result.guidance_text.lower()
        assert "Location" in result.guidance_text


class TestFailClosed:
    @pytest.mark.parametrize(
        "exc",
        [
            ExtractionServiceError("malformed"),
            LLMTimeoutError("timed out"),
            TimeoutError("upstream timed out"),
            ConnectionError("connection refused"),
            OSError("network unreachable"),
            httpx.ReadTimeout("read timed out"),
        ],
    )
    def test_extraction_error_marks_everything_missing(self, exc: Exception) -> None:
        validator = CompletenessValidator(FailingExtractor(exc))
        result = validator.validate("Dispatched to 1 Elm St at 3pm.", descriptors("location", "incident_time"))

        assert result.is_complete is False
        assert result.missing_fields == ["location", "incident_time"]
        assert result.present_fields == []
        assert result.extraction_failed is True
        assert result.confidence_score == 0.0

    def test_failure_confidence_is_configurable(self) -> None:
        validator = CompletenessValidator(FailingExtractor(), failure_confidence=0.25)
        assert validator.validate("text", descriptors("a")).confidence_score == 0.25

    def test_failure_confidence_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from app.core.settings import get_settings

        monkeypatch.setenv("VALIDATION_FAILURE_CONFIDENCE", "0.1")
        get_settings.cache_clear()
        assert CompletenessValidator(FailingExtractor()).failure_confidence == 0.1

    def test_guidance_lists_every_required_field(self) -> None:
        result = CompletenessValidator(FailingExtractor()).validate("text", descriptors("location", "incident_time"))
        assert "Location" in result.guidance_text
        assert "Incident Time" in result.guidance_text

    def test_unexpected_errors_propagate(self) -> None:
        validator = CompletenessValidator(FailingExtractor(RuntimeError("bug")))
        with pytest.raises(RuntimeError):
            validator.validate("text", descriptors("a"))


class TestHelpers:
    def test_validate_template_uses_required_descriptors(self) -> None:
        template = parse_template({
            "template_id": "t",
            "name": "T",
            "report_type": "incident",
            "required_fields": ["location"],
            "field_definitions": {"location": {}, "notes": {"required": False}},
        })
        extractor = ScriptedExtractor()
        CompletenessValidator(extractor).validate_template("text", template)
        assert extractor.calls[0][1] == ["location"]

    def test_build_guidance_joins_labels(self) -> None:
        text = build_guidance(descriptors("a", "b", "c"))
        assert text.endswith("A, B and C.")

    def test_build_guidance_when_nothing_missing(self) -> None:
        assert build_guidance([]) == "All required information is present."

    def test_accuracy_from_validation(self) -> None:
        result = ValidationResult(
            is_complete=False,
            present_fields=["a", "b", "c"],
            missing_fields=["d"],
            confidence_score=0.8,
        )
        assert accuracy_from_validation(result) == 60.0

    def test_accuracy_for_empty_template_is_full(self) -> None:
        result = ValidationResult(is_complete=True, confidence_score=1.0)
        assert accuracy_from_validation(result) == 100.0
