"""Event type constants.

Canonical event types for the append-only report audit trail.
"""
from __future__ import annotations

EVENT_REPORT_SUBMITTED = "report_submitted"
EVENT_LOW_ACCURACY_DETECTED = "low_accuracy_detected"
EVENT_NARRATIVE_AUGMENTED = "narrative_augmented"
EVENT_REVIEW_ASSIGNED = "review_assigned"
EVENT_REVIEW_RESOLVED = "review_resolved"
EVENT_REVIEW_ESCALATED = "review_escalated"
EVENT_COUNTERS_RECONCILED = "counters_reconciled"

VALID_EVENT_TYPES: frozenset[str] = frozenset({
    EVENT_REPORT_SUBMITTED,
    EVENT_LOW_ACCURACY_DETECTED,
    EVENT_NARRATIVE_AUGMENTED,
    EVENT_REVIEW_ASSIGNED,
    EVENT_REVIEW_RESOLVED,
    EVENT_REVIEW_ESCALATED,
    EVENT_COUNTERS_RECONCILED,
})
