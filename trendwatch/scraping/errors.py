"""
Scraping error taxonomy.

Propagation policy:
- AlreadyRunningError: surfaced to the orchestrator caller as a no-op result
- SubmissionError, PollTimeoutError, FetchError, BrowserError: fatal for
  one source only, recorded in the run's errors and the source's progress
- ExtractionError: fatal for one cascade strategy only
- PersistenceError: fatal for one record only
"""

from __future__ import annotations


class ScrapeError(Exception):
    """Base class for pipeline errors. Carries the wrapped cause, if any."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.original_error = original_error


class AlreadyRunningError(ScrapeError):
    """A scrape session is already in progress."""

    def __init__(self, message: str = "Scraping already in progress"):
        super().__init__(message)


class SubmissionError(ScrapeError):
    """An async job could not be created (transport, auth, or HTTP error)."""


class PollTimeoutError(ScrapeError):
    """An async job did not reach a successful terminal state in time."""


class FetchError(ScrapeError):
    """A direct HTTP fetch failed."""


class BrowserError(ScrapeError):
    """The interactive browser session failed to load a page."""


class ExtractionError(ScrapeError):
    """A single extraction strategy failed."""


class PersistenceError(ScrapeError):
    """A single record could not be persisted."""


class InvalidTransitionError(ScrapeError):
    """A source progress update requested an illegal status transition."""
