"""Where in an existing narrative should a missing piece of information go?

Planning is a pure function of the narrative text and the missing field
keys:

1. classify each field into a category by keyword (case-insensitive, first
   match in priority order wins);
2. look for the category's anchor phrase in the narrative, e.g. the
   dispatch sentence for a location;
3. fall back to the start of the text for temporal fields and the end for
   everything else.

Offsets are only valid against the narrative they were planned on; callers
must re-plan after every insertion.
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

CATEGORY_TIME = "time"
CATEGORY_LOCATION = "location"
CATEGORY_VICTIM = "victim"
CATEGORY_SUSPECT = "suspect"
CATEGORY_PROPERTY = "property"
CATEGORY_OFFENSE = "offense"
CATEGORY_GENERIC = "generic"

# Priority order matters: "suspect_description" is a suspect field, not an
# offense description.
_CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (CATEGORY_TIME, ("time", "date", "when", "hour")),
    (CATEGORY_LOCATION, ("location", "address", "place", "where", "scene")),
    (CATEGORY_VICTIM, ("victim", "person", "complainant")),
    (CATEGORY_SUSPECT, ("suspect", "offender", "subject", "perpetrator")),
    (CATEGORY_PROPERTY, ("property", "item", "stolen", "damage", "vehicle")),
    (CATEGORY_OFFENSE, ("offense", "offence", "incident", "crime", "description")),
)

_ANCHORS: dict[str, tuple[str, ...]] = {
    CATEGORY_LOCATION: ("dispatched to",),
    CATEGORY_VICTIM: ("contact with", "spoke with"),
    CATEGORY_SUSPECT: ("observed", "identified"),
    CATEGORY_PROPERTY: ("reported",),
    CATEGORY_OFFENSE: ("in reference to", "regarding"),
}

_PHRASINGS: dict[str, tuple[str, ...]] = {
    CATEGORY_TIME: (
        "On the date of this report at approximately 1400 hours",
        "The incident occurred at approximately 3pm",
    ),
    CATEGORY_LOCATION: (
        "at 123 Main Street in the downtown area",
        "in the parking lot of the shopping center on Oak Avenue",
        "within the residential complex at 456 Elm Street",
    ),
    CATEGORY_VICTIM: (
        "The victim was identified as an adult male, approximately 30 years old",
        "I made contact with a female victim who reported minor injuries",
        "Multiple victims were present at the scene and provided statements",
    ),
    CATEGORY_SUSPECT: (
        "The suspect was described as a male wearing a dark jacket",
        "The suspect fled the scene on foot before officers arrived",
    ),
    CATEGORY_PROPERTY: (
        "The stolen property included electronic devices valued at approximately $500",
        "Damage was observed to the vehicle with an estimated repair cost of $1,200",
        "Missing items consisted of cash in the amount of $250 and personal documents",
    ),
    CATEGORY_OFFENSE: (
        "in reference to a burglary with forcible entry",
        "regarding an assault that resulted in minor injuries",
        "concerning a theft of personal property from a vehicle",
    ),
}

_GENERIC_PHRASINGS = (
    "Additional information regarding {name}",
    "Specific details about {name} were documented",
    "The {name} was thoroughly examined and recorded",
    "Further investigation revealed details about {name}",
)


@dataclass(frozen=True)
class InsertionPoint:
    offset: int
    anchor_reason: str
    category: str = CATEGORY_GENERIC


def classify_field(field: str) -> str:
    """Return the semantic category of *field* (a key or label)."""
    lowered = field.lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return CATEGORY_GENERIC


def _find_anchor(narrative: str, category: str) -> tuple[int, str] | None:
    lowered = narrative.lower()
    for phrase in _ANCHORS.get(category, ()):
        index = lowered.find(phrase)
        if index != -1:
            return index + len(phrase), phrase
    return None


def plan_insertion(narrative: str, field: str) -> InsertionPoint:
    category = classify_field(field)
    anchor = _find_anchor(narrative, category)
    if anchor is not None:
        offset, phrase = anchor
        return InsertionPoint(offset, f"after {phrase!r}", category)
    if category == CATEGORY_TIME:
        return InsertionPoint(0, "temporal field at start of narrative", category)
    return InsertionPoint(len(narrative), "no anchor found; end of narrative", category)


def plan_insertions(narrative: str, missing_fields: Iterable[str]) -> dict[str, InsertionPoint]:
    """One :class:`InsertionPoint` per distinct field in *missing_fields*."""
    return {field: plan_insertion(narrative, field) for field in missing_fields}


def suggest_phrasings(field: str) -> list[str]:
    """Canned example sentences for *field*, for quick insertion in a UI.

    Fields outside every category get sentences built from the field name.
    """
    category = classify_field(field)
    if category in _PHRASINGS:
        return list(_PHRASINGS[category])
    name = field.replace("_", " ").strip().lower()
    return [template.format(name=name) for template in _GENERIC_PHRASINGS]
