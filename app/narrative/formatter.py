"""Formatting and application of narrative insertions.

Both functions are pure.  ``format_insertion`` depends only on the
narrative, the offset and the text, so it yields the same fragment for the
same inputs; the effective offset of a second insertion changes because the
narrative has grown, which is why callers re-plan between insertions.
"""
from __future__ import annotations

from app.narrative.planner import InsertionPoint

_TERMINAL_PUNCTUATION = (".", "!", "?")


def _check(narrative: str, offset: int, text: str) -> str:
    if not 0 <= offset <= len(narrative):
        raise ValueError(f"offset {offset} outside narrative of length {len(narrative)}")
    stripped = text.strip()
    if not stripped:
        raise ValueError("insertion text must be non-empty")
    return stripped


def format_insertion(narrative: str, offset: int, text: str) -> str:
    """Return the fragment that ``apply_insertion`` would splice in at *offset*."""
    fragment = _check(narrative, offset, text)

    if offset == 0:
        fragment = fragment[0].upper() + fragment[1:]
        if not fragment.endswith(_TERMINAL_PUNCTUATION):
            fragment += "."
        # Nothing follows in an empty narrative
        return fragment + " " if narrative else fragment

    if offset == len(narrative):
        if narrative.endswith(_TERMINAL_PUNCTUATION):
            return " " + fragment
        return ". " + fragment

    return " " + fragment


def apply_insertion(narrative: str, point: InsertionPoint, text: str) -> str:
    """Splice *text* into *narrative* at *point*, formatted for its position.

    >>> apply_insertion("Officer responded to a call.", InsertionPoint(0, "start"),
    ...                 "the incident occurred at 3pm")
    'The incident occurred at 3pm. Officer responded to a call.'
    """
    fragment = format_insertion(narrative, point.offset, text)
    return narrative[:point.offset] + fragment + narrative[point.offset:]
