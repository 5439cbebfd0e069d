"""
Exception taxonomy for the ingestion pipeline.

Per-term and per-record errors are contained by the runner; SessionFailure
and StoreUnavailable abort the current run.
"""

from typing import Optional


class DealerFinderError(Exception):
    """Base class for all pipeline errors."""


class ExtractionError(DealerFinderError):
    """A site adapter could not finish its script for one search term."""

    def __init__(self, message: str, source: Optional[str] = None,
                 term: Optional[str] = None, step: Optional[str] = None):
        super().__init__(message)
        self.source = source
        self.term = term
        self.step = step

    def __str__(self):
        context = ", ".join(
            f"{label}={value}" for label, value in
            (("source", self.source), ("term", self.term), ("step", self.step))
            if value
        )
        message = super().__str__()
        return f"{message} ({context})" if context else message


class ExtractionTimeout(ExtractionError):
    """A required step did not complete within its timeout. Retryable."""


class NavigationError(ExtractionError):
    """Transport or page error while driving the locator. Retryable."""


class SessionFailure(DealerFinderError):
    """The browser session is no longer usable. Fatal for the current run."""


class GeocodeUnavailable(DealerFinderError):
    """Coordinate lookup failed. The record is kept without coordinates."""


class PersistenceConflict(DealerFinderError):
    """Unique-key violation outside the upsert path."""


class StoreUnavailable(DealerFinderError):
    """The dealer store cannot be reached. Fatal for the current run."""


class InvalidRecord(DealerFinderError):
    """A raw tuple lacks the mandatory identity fields."""
