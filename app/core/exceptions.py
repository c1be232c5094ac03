"""Exception hierarchy for the report review pipeline.

Extraction failures are absorbed by the completeness validator (fail closed).
State and concurrency errors propagate to the caller unmodified.
"""
from __future__ import annotations


class ReportPipelineError(Exception):
    """Base exception for all report pipeline errors."""


class ExtractionServiceError(ReportPipelineError):
    """Raised when the field extraction call fails or returns malformed data."""


class InvalidTemplateError(ReportPipelineError):
    """Raised when a template references a required field with no descriptor."""


class InvalidStateError(ReportPipelineError):
    """Raised when a queue item or report transition is not allowed."""


class ConcurrentModificationError(ReportPipelineError):
    """Raised when a conditional update loses an optimistic-lock race.

    Callers must re-read current state before retrying.
    """


class ThresholdConfigurationError(ReportPipelineError):
    """Raised when more than one distinct accuracy threshold is configured."""


class NotFoundError(ReportPipelineError, KeyError):
    """Raised when a report, template, organization or queue item is missing."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
