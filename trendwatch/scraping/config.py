"""
Scraping configuration loaded from Django settings.

Kept as frozen dataclasses so the orchestrator and cascade can be built
in tests without touching settings at all.
"""

from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings


@dataclass(frozen=True)
class CascadeConfig:
    """
    Thresholds for the extraction fallback cascade.

    min_primary: structured hits needed to stop before any fallback
    min_pooled: pooled hits below which the text and URL strategies run
    assisted_below: pooled hits below which the LLM-assisted strategy runs
    max_records: cap on fallback output
    pattern_top_n: per-strategy cap for the pattern strategies
    """

    min_primary: int = 1
    min_pooled: int = 3
    assisted_below: int = 2
    max_records: int = 10
    pattern_top_n: int = 5
    assisted_confidence: float = 0.5
    assisted_max_records: int = 3
    assisted_snippet_chars: int = 50_000

    @classmethod
    def from_settings(cls) -> CascadeConfig:
        return cls(
            min_primary=settings.CASCADE_MIN_PRIMARY,
            min_pooled=settings.CASCADE_MIN_POOLED,
            assisted_below=settings.CASCADE_ASSISTED_BELOW,
            max_records=settings.CASCADE_MAX_RECORDS,
            pattern_top_n=settings.CASCADE_PATTERN_TOP_N,
            assisted_confidence=settings.CASCADE_ASSISTED_CONFIDENCE,
            assisted_max_records=settings.CASCADE_ASSISTED_MAX_RECORDS,
            assisted_snippet_chars=settings.CASCADE_ASSISTED_SNIPPET_CHARS,
        )


@dataclass(frozen=True)
class ScrapeConfig:
    """Access-path and pacing settings for one orchestrator."""

    inter_source_delay_s: tuple[float, float] = (10.0, 30.0)
    poll_interval_s: float = 20.0
    max_poll_attempts: int = 20
    http_timeout_s: float = 30.0
    page_timeout_ms: int = 60_000
    headless: bool = True

    @classmethod
    def from_settings(cls) -> ScrapeConfig:
        low, high = settings.SCRAPE_INTER_SOURCE_DELAY_S
        return cls(
            inter_source_delay_s=(float(low), float(high)),
            poll_interval_s=settings.APIFY_POLL_INTERVAL_S,
            max_poll_attempts=settings.APIFY_MAX_POLL_ATTEMPTS,
            http_timeout_s=settings.SCRAPE_HTTP_TIMEOUT_S,
            page_timeout_ms=settings.SCRAPE_PAGE_TIMEOUT_MS,
            headless=settings.HEADLESS_BROWSER,
        )
