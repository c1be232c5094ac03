"""Canonical status, priority and resolution values.

Report lifecycle
----------------
drafted         — narrative captured, not yet routed
submitted       — accuracy at or above threshold, accepted without review
pending_review  — below threshold, waiting in the review queue
approved        — a reviewer approved or corrected the report
returned        — a reviewer sent the narrative back to be redone

Review queue item lifecycle
---------------------------
pending → in_review → resolved (terminal)
"""
from __future__ import annotations

# ---------------------------------------------------------------------------
# Report status
# ---------------------------------------------------------------------------

REPORT_DRAFTED = "drafted"
REPORT_SUBMITTED = "submitted"
REPORT_PENDING_REVIEW = "pending_review"
REPORT_APPROVED = "approved"
REPORT_RETURNED = "returned"

REPORT_STATUSES: frozenset[str] = frozenset({
    REPORT_DRAFTED,
    REPORT_SUBMITTED,
    REPORT_PENDING_REVIEW,
    REPORT_APPROVED,
    REPORT_RETURNED,
})

# ---------------------------------------------------------------------------
# Review queue item status
# ---------------------------------------------------------------------------

QUEUE_PENDING = "pending"
QUEUE_IN_REVIEW = "in_review"
QUEUE_RESOLVED = "resolved"

QUEUE_STATUSES: frozenset[str] = frozenset({QUEUE_PENDING, QUEUE_IN_REVIEW, QUEUE_RESOLVED})
OPEN_QUEUE_STATUSES: frozenset[str] = frozenset({QUEUE_PENDING, QUEUE_IN_REVIEW})

# ---------------------------------------------------------------------------
# Priority
# ---------------------------------------------------------------------------

PRIORITY_LOW = "low"
PRIORITY_NORMAL = "normal"
PRIORITY_HIGH = "high"

PRIORITIES: frozenset[str] = frozenset({PRIORITY_LOW, PRIORITY_NORMAL, PRIORITY_HIGH})

# Sort key: high first
PRIORITY_RANK: dict[str, int] = {PRIORITY_HIGH: 0, PRIORITY_NORMAL: 1, PRIORITY_LOW: 2}

# Score bands below the threshold
HIGH_PRIORITY_BELOW = 60.0
NORMAL_PRIORITY_BELOW = 70.0

# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

RESOLUTION_APPROVED = "approved"
RESOLUTION_RETURNED = "returned"
RESOLUTION_EDITED = "edited"
RESOLUTION_ESCALATED = "escalated"

RESOLUTIONS: frozenset[str] = frozenset({
    RESOLUTION_APPROVED,
    RESOLUTION_RETURNED,
    RESOLUTION_EDITED,
    RESOLUTION_ESCALATED,
})

# Caller-facing queue actions → resolution (``assign`` has none)
ACTION_ASSIGN = "assign"
ACTION_RESOLUTION_MAP: dict[str, str] = {
    "approve": RESOLUTION_APPROVED,
    "return": RESOLUTION_RETURNED,
    "edit": RESOLUTION_EDITED,
    "escalate": RESOLUTION_ESCALATED,
}
VALID_ACTIONS: frozenset[str] = frozenset({ACTION_ASSIGN, *ACTION_RESOLUTION_MAP})

DEFAULT_RETURN_REASON = "Returned for correction"

# ---------------------------------------------------------------------------
# Template field types
# ---------------------------------------------------------------------------

FIELD_TYPES: frozenset[str] = frozenset({"text", "datetime", "number", "array", "boolean"})
