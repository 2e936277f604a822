"""
Core scraping types.

- SourceDescriptor: static definition of one trend source
- RawRecord: one candidate trend observation produced by extraction
- AccessMethod / RateLimit: dispatch and throttling hints

Descriptors are defined once at import time in the source registry and
are referenced (never copied) by the orchestrator.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable


class AccessMethod(str, enum.Enum):
    """How raw content for a source is obtained."""

    INTERACTIVE = "interactive"  # browser-driven: navigate, settle, read DOM
    HTTP = "http"  # single request/response fetch
    ASYNC_JOB = "async_job"  # hosted actor run: submit, poll, fetch dataset


@dataclass(frozen=True)
class RateLimit:
    """Rate-limit hint for a source (requests allowed per window)."""

    requests_per_window: int
    window_s: int


@dataclass(frozen=True)
class RawRecord:
    """
    One candidate trend observation.

    Immutable once created. `attributes` carries source-specific metadata
    (source URL, extraction method, actor run id, original payload).
    """

    tag: str
    platform_name: str
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    popularity_label: str | None = None
    category: str | None = None
    region: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def join_key(self) -> str:
        """Key used to join enrichment annotations back onto records."""
        return f"{self.tag or 'unknown'}_{self.platform_name or 'unknown'}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "tag": self.tag,
            "platform": self.platform_name,
            "popularity": self.popularity_label,
            "category": self.category,
            "region": self.region,
            "captured_at": self.captured_at.isoformat(),
            "attributes": self.attributes,
        }


ExtractFn = Callable[[Any], "list[RawRecord]"]


@dataclass(frozen=True)
class SourceDescriptor:
    """
    Static definition of one trend source.

    Attributes:
        key: Stable identifier used by --platform filters and logs
        name: Display name (also the progress-tracker key)
        platform: Platform the trends belong to (tiktok, instagram, x)
        url: Target URL (page to load, or actor endpoint for async jobs)
        access_method: Which access path the orchestrator dispatches to
        extract: Structured extraction; HTML text for interactive/http
            sources, list of dataset items for async-job sources
        rate_limit: Requests-per-window hint
        wait_selector: CSS selector to wait for on interactive pages
        actor_id: Apify actor for async-job sources
        actor_input: Actor input payload
        dataset_limit: Max dataset items fetched after a run
        poll_interval_s: Override for the poll interval (None = settings)
        max_poll_attempts: Override for the poll budget (None = settings)
    """

    key: str
    name: str
    platform: str
    url: str
    access_method: AccessMethod
    extract: ExtractFn
    rate_limit: RateLimit = RateLimit(requests_per_window=10, window_s=3600)
    wait_selector: str | None = None
    actor_id: str | None = None
    actor_input: dict[str, Any] = field(default_factory=dict)
    dataset_limit: int = 100
    poll_interval_s: float | None = None
    max_poll_attempts: int | None = None

    def matches(self, platform_filter: list[str] | None) -> bool:
        """True if this source is selected by the given platform filter."""
        if not platform_filter:
            return True
        wanted = {value.strip().lower() for value in platform_filter if value.strip()}
        if not wanted:
            return True
        return self.platform.lower() in wanted or self.key.lower() in wanted
