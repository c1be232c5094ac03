"""Tests for app/narrative: insertion planning, formatting and the
insert-then-revalidate loop."""
from __future__ import annotations

import pytest

from app.llm.extractor import ExtractionResult
from app.narrative.augmenter import NarrativeAugmenter
from app.narrative.formatter import apply_insertion, format_insertion
from app.narrative.planner import (
    CATEGORY_GENERIC,
    CATEGORY_LOCATION,
    CATEGORY_OFFENSE,
    CATEGORY_PROPERTY,
    CATEGORY_SUSPECT,
    CATEGORY_TIME,
    CATEGORY_VICTIM,
    InsertionPoint,
    classify_field,
    plan_insertions,
    suggest_phrasings,
)
from app.validation.completeness import CompletenessValidator
from conftest import FailingExtractor, ScriptedExtractor, descriptors


# ===========================================================================
# Planner
# ===========================================================================


class TestClassifyField:
    @pytest.mark.parametrize(
        ("field", "category"),
        [
            ("incident_time", CATEGORY_TIME),
            ("Date of Arrest", CATEGORY_TIME),
            ("location", CATEGORY_LOCATION),
            ("home_address", CATEGORY_LOCATION),
            ("victim_information", CATEGORY_VICTIM),
            ("injured_persons", CATEGORY_VICTIM),
            ("suspect_description", CATEGORY_SUSPECT),
            ("property_details", CATEGORY_PROPERTY),
            ("vehicle_information", CATEGORY_PROPERTY),
            ("offense_description", CATEGORY_OFFENSE),
            ("miranda_advised", CATEGORY_GENERIC),
        ],
    )
    def test_categories(self, field: str, category: str) -> None:
        assert classify_field(field) == category

    def test_ties_follow_priority_order(self) -> None:
        # time beats location, location beats victim
        assert classify_field("scene_time") == CATEGORY_TIME
        assert classify_field("victim_address") == CATEGORY_LOCATION

    def test_case_insensitive(self) -> None:
        assert classify_field("VICTIM") == CATEGORY_VICTIM


class TestPlanInsertions:
    def test_location_anchors_after_dispatch_phrase(self) -> None:
        narrative = "I was dispatched to the store for a theft."
        point = plan_insertions(narrative, ["location"])["location"]
        assert point.offset == narrative.index("dispatched to") + len("dispatched to")
        assert point.category == CATEGORY_LOCATION

    def test_anchor_match_is_case_insensitive(self) -> None:
        narrative = "Officer made Contact With the owner."
        point = plan_insertions(narrative, ["victim_information"])["victim_information"]
        assert point.offset == narrative.lower().index("contact with") + len("contact with")

    def test_temporal_falls_back_to_start(self) -> None:
        point = plan_insertions("Subject was uncooperative.", ["incident_time"])["incident_time"]
        assert point.offset == 0

    def test_other_fields_fall_back_to_end(self) -> None:
        narrative = "Subject was uncooperative during the stop."
        points = plan_insertions(narrative, ["location", "charges", "property_details"])
        assert {p.offset for p in points.values()} == {len(narrative)}

    def test_every_field_gets_exactly_one_point(self) -> None:
        fields = ["location", "incident_time", "charges", "location"]
        points = plan_insertions("text", fields)
        assert set(points) == {"location", "incident_time", "charges"}

    def test_responded_to_is_not_a_location_anchor(self) -> None:
        narrative = "Officer responded to a call."
        point = plan_insertions(narrative, ["location"])["location"]
        assert point.offset == len(narrative)
        assert apply_insertion(narrative, point, "at 123 Main Street") == (
            "Officer responded to a call. at 123 Main Street"
        )

    def test_empty_narrative(self) -> None:
        points = plan_insertions("", ["location", "incident_time"])
        assert points["location"].offset == 0
        assert points["incident_time"].offset == 0

    def test_anchor_reason_names_phrase(self) -> None:
        point = plan_insertions("Call was in reference to noise.", ["offense_description"])["offense_description"]
        assert "in reference to" in point.anchor_reason


class TestSuggestPhrasings:
    def test_location_phrasings(self) -> None:
        assert any("Main Street" in p for p in suggest_phrasings("location"))

    def test_generic_falls_back_to_field_name(self) -> None:
        phrasings = suggest_phrasings("miranda_advised")
        assert len(phrasings) == 4
        assert phrasings[0] == "Additional information regarding miranda advised"
        assert all("miranda advised" in p for p in phrasings)


# ===========================================================================
# Formatter
# ===========================================================================


class TestApplyInsertion:
    def test_offset_zero_capitalizes_and_terminates(self) -> None:
        result = apply_insertion(
            "Officer responded to a call.",
            InsertionPoint(0, "start"),
            "the incident occurred at 3pm",
        )
        assert result == "The incident occurred at 3pm. Officer responded to a call."

    def test_offset_zero_keeps_existing_punctuation(self) -> None:
        result = apply_insertion("Officer arrived.", InsertionPoint(0, "start"), "was it 3pm?")
        assert result == "Was it 3pm? Officer arrived."

    def test_end_after_terminal_punctuation(self) -> None:
        narrative = "Subject fled."
        result = apply_insertion(narrative, InsertionPoint(len(narrative), "end"), "at 12 Oak Lane")
        assert result == "Subject fled. at 12 Oak Lane"

    def test_end_without_terminal_punctuation(self) -> None:
        narrative = "Subject fled"
        result = apply_insertion(narrative, InsertionPoint(len(narrative), "end"), "at 12 Oak Lane")
        assert result == "Subject fled. at 12 Oak Lane"

    def test_interior_prefixes_single_space(self) -> None:
        narrative = "I was dispatched to for a theft."
        offset = narrative.index(" for")
        result = apply_insertion(narrative, InsertionPoint(offset, "anchor"), "the mall")
        assert result == "I was dispatched to the mall for a theft."

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("the incident occurred at 3pm", "The incident occurred at 3pm."),
            ("at 3pm", "At 3pm."),
            ("was it 3pm?", "Was it 3pm?"),
        ],
    )
    def test_empty_narrative_gets_a_full_sentence(self, text: str, expected: str) -> None:
        assert apply_insertion("", InsertionPoint(0, "start"), text) == expected

    @pytest.mark.parametrize("offset", [-1, 100])
    def test_offset_out_of_range(self, offset: int) -> None:
        with pytest.raises(ValueError, match="outside"):
            apply_insertion("short", InsertionPoint(offset, "bad"), "text")

    def test_blank_text_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-empty"):
            apply_insertion("short", InsertionPoint(0, "start"), "   ")

    def test_format_is_deterministic(self) -> None:
        narrative = "Officer responded to a call."
        first = format_insertion(narrative, 0, "at 3pm")
        second = format_insertion(narrative, 0, "at 3pm")
        assert first == second == "At 3pm. "


# ===========================================================================
# Augmenter
# ===========================================================================


class TestNarrativeAugmenter:
    def test_end_to_end_two_insertions(self) -> None:
        fields = descriptors("location", "incident_time")
        narrative = "Subject was uncooperative during the stop."
        extractor = ScriptedExtractor([
            # standalone validation, then the augmenter's own first pass
            ExtractionResult(missing_fields=["location", "incident_time"], confidence_score=0.9),
            ExtractionResult(missing_fields=["location", "incident_time"], confidence_score=0.9),
            ExtractionResult(present_fields=["location"], missing_fields=["incident_time"], confidence_score=0.9),
            ExtractionResult(present_fields=["location", "incident_time"], confidence_score=0.95),
        ])
        validator = CompletenessValidator(extractor)

        first = validator.validate(narrative, fields)
        assert first.is_complete is False
        assert first.missing_fields == ["location", "incident_time"]

        outcome = NarrativeAugmenter(validator, max_rounds=5).complete(
            narrative,
            fields,
            {"location": "at 12 Oak Lane", "incident_time": "the stop occurred at 3pm"},
        )

        assert outcome.validation.is_complete is True
        assert outcome.applied_fields == ["location", "incident_time"]
        assert outcome.rounds == 2
        assert outcome.narrative == (
            "The stop occurred at 3pm. Subject was uncooperative during the stop. at 12 Oak Lane"
        )

    def test_stops_when_no_supplement_available(self) -> None:
        fields = descriptors("location", "charges")
        extractor = ScriptedExtractor([
            ExtractionResult(missing_fields=["location", "charges"], confidence_score=0.9),
            ExtractionResult(present_fields=["location"], missing_fields=["charges"], confidence_score=0.9),
        ])
        outcome = NarrativeAugmenter(CompletenessValidator(extractor), max_rounds=5).complete(
            "Text.", fields, {"location": "at the mall"}
        )

        assert outcome.validation.is_complete is False
        assert outcome.validation.missing_fields == ["charges"]
        assert outcome.applied_fields == ["location"]

    def test_fail_closed_leaves_narrative_unmodified(self) -> None:
        outcome = NarrativeAugmenter(CompletenessValidator(FailingExtractor()), max_rounds=5).complete(
            "Original text.", descriptors("location"), {"location": "at the mall"}
        )
        assert outcome.narrative == "Original text."
        assert outcome.applied_fields == []
        assert outcome.validation.extraction_failed is True

    def test_round_cap(self) -> None:
        fields = descriptors("a_location", "b_location", "c_location")
        extractor = ScriptedExtractor([
            ExtractionResult(missing_fields=["a_location", "b_location", "c_location"], confidence_score=0.9)
            for _ in range(5)
        ])
        outcome = NarrativeAugmenter(CompletenessValidator(extractor), max_rounds=2).complete(
            "Text.", fields, {k.key: "somewhere" for k in fields}
        )
        assert outcome.rounds == 2
        assert outcome.applied_fields == ["a_location", "b_location"]

    def test_already_complete_makes_no_changes(self) -> None:
        outcome = NarrativeAugmenter(CompletenessValidator(ScriptedExtractor()), max_rounds=5).complete(
            "Text.", descriptors("location"), {"location": "at the mall"}
        )
        assert outcome.narrative == "Text."
        assert outcome.rounds == 0
