"""
Exception hierarchy for the queue worker.

The dispatcher turns any of these raised while processing a job into the
job's terminal ``error`` state, using ``str(exc)`` as the failure reason.
"""

from typing import Optional


class FicQueueError(Exception):
    """Base class for all queue worker errors."""


class ResourceError(FicQueueError):
    """The pooled browser could not be launched or handed out."""


class FetchError(FicQueueError):
    """Navigation to a source URL failed or returned an error status."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class PageBlockedError(FetchError):
    """The archive served an interstitial instead of the requested page."""


class ExtractionError(FicQueueError):
    """The rendered document could not be parsed at all."""


class SchemaError(FicQueueError):
    """Extracted metadata failed normalization."""


class InvalidTransitionError(FicQueueError):
    """A job state change is not allowed by the transition table."""
