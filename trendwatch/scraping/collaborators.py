"""
Interfaces the orchestrator depends on but does not implement.

EnrichmentService (trendwatch.enrichment.service) and the trend
repositories (trendwatch.trends.persistence) satisfy these structurally.
"""

from __future__ import annotations

from typing import Any, Protocol
from uuid import UUID

from trendwatch.scraping.types import RawRecord


class Enrichment(Protocol):
    def analyze_trends(self, records: list[RawRecord]) -> dict[str, Any]:
        """Annotations keyed by RawRecord.join_key. Must not raise."""
        ...

    def generate_trend_report(self, records: list[RawRecord]) -> str: ...

    def analyze_content(self, prompt: str) -> str | None: ...


class Persistence(Protocol):
    def create(self, record: RawRecord, annotation: Any) -> UUID:
        """Persist one record. Raises PersistenceError on failure."""
        ...
