"""
Scrape progress tracking.

ProgressTracker is the single writer for run progress. The orchestrator
mutates it through initialize/update/record_error/finish; the reporting
surface reads it through snapshot(), which always returns a deep copy.

One tracker instance is constructed by the caller and shared by reference
between the orchestrator and whatever polls it. There is no module-level
singleton.

Per-source state machine:

    PENDING --update(RUNNING)--> RUNNING --update(COMPLETED|FAILED)--> terminal

RUNNING -> RUNNING updates report intermediate progress. Updates to a
terminal source are accepted as last-write-wins corrections between
terminal states, but a terminal source is never re-opened.
"""

from __future__ import annotations

import copy
import enum
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from trendwatch.scraping.errors import AlreadyRunningError, InvalidTransitionError
from trendwatch.scraping.types import RawRecord

logger = logging.getLogger(__name__)


class SourceStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SourceStatus.COMPLETED, SourceStatus.FAILED)


@dataclass
class SourceProgress:
    """Progress of one configured source within a run."""

    name: str
    status: SourceStatus = SourceStatus.PENDING
    percent: int = 0
    record_count: int = 0
    detail: str | None = "Waiting to start..."
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass
class RunSession:
    """State of the current (or last) scrape run."""

    is_running: bool = False
    sources: list[SourceProgress] = field(default_factory=list)
    aggregate_records: list[RawRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    current_source: str | None = None
    percent: float = 0.0
    started_at: datetime | None = None
    last_update: datetime | None = None

    @property
    def total_sources(self) -> int:
        return len(self.sources)

    @property
    def completed_sources(self) -> int:
        return sum(1 for s in self.sources if s.status.is_terminal)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready view for polling clients."""
        return {
            "is_running": self.is_running,
            "current_source": self.current_source,
            "progress": self.percent,
            "total_sources": self.total_sources,
            "completed_sources": self.completed_sources,
            "trend_count": len(self.aggregate_records),
            "errors": list(self.errors),
            "start_time": self.started_at.isoformat() if self.started_at else None,
            "last_update": self.last_update.isoformat() if self.last_update else None,
            "sources": [
                {
                    "name": s.name,
                    "status": s.status.value,
                    "progress": s.percent,
                    "trends": s.record_count,
                    "details": s.detail,
                    "error": s.error,
                    "start_time": s.started_at.isoformat() if s.started_at else None,
                    "completed_time": s.completed_at.isoformat() if s.completed_at else None,
                }
                for s in self.sources
            ],
        }


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ProgressTracker:
    """
    Single-writer holder of the RunSession.

    Every entry point takes the same lock, so a concurrent snapshot() sees
    either the state before an update or after it, never a mix.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._session = RunSession()

    # -------------------------------------------------------------------------
    # Writers
    # -------------------------------------------------------------------------

    def initialize(self, source_names: list[str]) -> None:
        """
        Reset the session and mark it running.

        Raises:
            AlreadyRunningError: If a session is already running. The check
                and the set happen under one lock.
        """
        with self._lock:
            if self._session.is_running:
                raise AlreadyRunningError()
            now = _now()
            self._session = RunSession(
                is_running=True,
                sources=[SourceProgress(name=name) for name in source_names],
                started_at=now,
                last_update=now,
            )
        logger.info(
            "Scrape session initialized with %d sources: %s",
            len(source_names),
            ", ".join(source_names),
        )

    def update(
        self,
        source_name: str,
        status: SourceStatus,
        percent: int,
        record_count: int,
        detail: str | None = None,
        error: str | None = None,
    ) -> None:
        """
        Record progress for one source.

        Unknown or ambiguous names are logged and ignored.

        Raises:
            InvalidTransitionError: PENDING -> anything but RUNNING, or a
                status update back to PENDING.
        """
        status = SourceStatus(status)
        with self._lock:
            index = self._find_index(source_name)
            if index is None:
                logger.warning("Progress update for unknown source: %s", source_name)
                return

            current = self._session.sources[index]
            if status is SourceStatus.PENDING:
                raise InvalidTransitionError(
                    f"{current.name}: cannot move back to pending"
                )
            if current.status is SourceStatus.PENDING and status is not SourceStatus.RUNNING:
                raise InvalidTransitionError(
                    f"{current.name}: pending -> {status.value} skips running"
                )

            now = _now()
            if current.status.is_terminal and status is SourceStatus.RUNNING:
                # Correction after the fact: keep the terminal status
                logger.warning(
                    "Ignoring reopen of %s source %s",
                    current.status.value,
                    current.name,
                )
                current.detail = detail
                self._session.last_update = now
                return

            if current.status is SourceStatus.PENDING:
                current.started_at = now
            if status.is_terminal:
                current.completed_at = now

            current.status = status
            current.percent = max(0, min(100, int(percent)))
            current.record_count = record_count
            current.detail = detail
            current.error = error

            self._session.current_source = (
                current.name if status is SourceStatus.RUNNING else None
            )
            self._recompute_percent()
            self._session.last_update = now

        logger.info(
            "Progress: %s - %s (%d%%) - %d trends - %s",
            source_name,
            status.value,
            percent,
            record_count,
            detail or "",
        )

    def record_error(self, message: str) -> None:
        with self._lock:
            self._session.errors.append(message)
            self._session.last_update = _now()

    def finish(self, records: list[RawRecord]) -> None:
        """Close the session with the aggregate records."""
        with self._lock:
            self._session.is_running = False
            self._session.current_source = None
            self._session.aggregate_records = list(records)
            self._recompute_percent()
            self._session.last_update = _now()
        logger.info("Scrape session finished with %d total trends", len(records))

    def reset(self) -> None:
        with self._lock:
            self._session = RunSession()

    # -------------------------------------------------------------------------
    # Readers
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._session.is_running

    def snapshot(self) -> RunSession:
        """Return a deep copy of the session. Mutating it has no effect here."""
        with self._lock:
            return copy.deepcopy(self._session)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _recompute_percent(self) -> None:
        total = self._session.total_sources
        if total == 0:
            self._session.percent = 0.0 if self._session.is_running else 100.0
            return
        self._session.percent = 100.0 * self._session.completed_sources / total

    def _find_index(self, source_name: str) -> int | None:
        """
        Exact (case-insensitive) name match first. Falls back to matching the
        first whitespace-delimited token, only when exactly one source has it.
        """
        wanted = source_name.strip().lower()
        for i, progress in enumerate(self._session.sources):
            if progress.name.lower() == wanted:
                return i

        if not wanted:
            return None
        token = wanted.split()[0]
        candidates = [
            i
            for i, progress in enumerate(self._session.sources)
            if progress.name.lower().split()[:1] == [token]
        ]
        if len(candidates) == 1:
            return candidates[0]
        if len(candidates) > 1:
            logger.warning(
                "Ambiguous progress update for %s: %d sources share '%s'",
                source_name,
                len(candidates),
                token,
            )
        return None
