"""
Scrape orchestrator.

Runs every selected source strictly one after another:

    RUNNING -> acquire (browser / http / async job) -> extract
            -> enrich -> persist -> COMPLETED | FAILED
            -> random pause -> next source

then asks for a summary report over everything collected. Failures are
contained per source (and per record for persistence); only a second
concurrent run is turned away, as a soft no-op result.

Interactive and HTTP content goes through the full extraction cascade.
Async-job datasets are already structured, so an empty dataset is final.
"""

from __future__ import annotations

import dataclasses
import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable
from uuid import uuid4

from django.conf import settings

from trendwatch.core.guardrails import is_apify_configured
from trendwatch.enrichment.service import (
    REPORT_UNAVAILABLE,
    EnrichmentService,
    default_annotation,
)
from trendwatch.integrations.apify.client import ApifyClient, ApifyError
from trendwatch.scraping.browser import BrowserSession
from trendwatch.scraping.cascade import ExtractionCascade
from trendwatch.scraping.collaborators import Enrichment, Persistence
from trendwatch.scraping.config import CascadeConfig, ScrapeConfig
from trendwatch.scraping.errors import (
    AlreadyRunningError,
    FetchError,
    PersistenceError,
    PollTimeoutError,
    ScrapeError,
    SubmissionError,
)
from trendwatch.scraping.fetch import HttpFetcher
from trendwatch.scraping.progress import ProgressTracker, SourceStatus
from trendwatch.scraping.sources import DEFAULT_SOURCES
from trendwatch.scraping.types import AccessMethod, RawRecord, SourceDescriptor
from trendwatch.trends.persistence import DjangoTrendRepository

logger = logging.getLogger(__name__)

NO_RECORDS_REPORT = "No trends were collected in this run."


@dataclass
class ScrapeRunResult:
    """Outcome of one run_all() call."""

    records: list[RawRecord] = field(default_factory=list)
    summary_report: str = ""
    errors: list[str] = field(default_factory=list)
    persisted: int = 0
    rejected: bool = False


class ScrapeOrchestrator:
    """
    Sequential multi-source scrape pipeline.

    The tracker is shared by reference with whatever reports progress;
    the orchestrator is its only writer.
    """

    def __init__(
        self,
        tracker: ProgressTracker,
        cascade: ExtractionCascade,
        enrichment: Enrichment,
        persistence: Persistence,
        job_client: ApifyClient | None = None,
        browser: BrowserSession | None = None,
        fetcher: HttpFetcher | None = None,
        sources: list[SourceDescriptor] | None = None,
        config: ScrapeConfig | None = None,
        sleep: Callable[[float], None] | None = None,
        rng: random.Random | None = None,
    ):
        self.tracker = tracker
        self.cascade = cascade
        self.enrichment = enrichment
        self.persistence = persistence
        self.job_client = job_client
        self.config = config or ScrapeConfig()
        self.sources = list(DEFAULT_SOURCES if sources is None else sources)
        self._sleep = sleep or time.sleep
        self._rng = rng or random.Random()
        self.browser = browser or BrowserSession(
            headless=self.config.headless,
            page_timeout_ms=self.config.page_timeout_ms,
            sleep=self._sleep,
            rng=self._rng,
        )
        self.fetcher = fetcher or HttpFetcher(
            timeout_s=self.config.http_timeout_s,
            sleep=self._sleep,
            rng=self._rng,
        )
        self._run_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def run_all(
        self,
        sources: list[SourceDescriptor] | None = None,
        platform_filter: list[str] | None = None,
    ) -> ScrapeRunResult:
        """
        Run the selected sources and return the aggregate.

        A call made while another run is in progress returns immediately
        with rejected=True and no records, leaving the running session
        untouched.
        """
        if not self._run_lock.acquire(blocking=False):
            return self._rejected()
        try:
            candidates = self.sources if sources is None else sources
            selected = [s for s in candidates if s.matches(platform_filter)]
            try:
                self.tracker.initialize([s.name for s in selected])
            except AlreadyRunningError:
                return self._rejected()
            return self._run(selected)
        finally:
            self._run_lock.release()

    def _rejected(self) -> ScrapeRunResult:
        logger.warning("Scraping already in progress, ignoring run request")
        return ScrapeRunResult(
            summary_report=AlreadyRunningError().args[0],
            rejected=True,
        )

    def _run(self, selected: list[SourceDescriptor]) -> ScrapeRunResult:
        run_id = uuid4()
        aggregate: list[RawRecord] = []
        persisted = 0
        logger.info(
            "Starting scrape run: run_id=%s, sources=%d", run_id, len(selected)
        )

        try:
            for index, source in enumerate(selected, start=1):
                logger.info("[%d/%d] Processing %s", index, len(selected), source.name)
                records, saved = self._run_source(source)
                aggregate.extend(records)
                persisted += saved

                if index < len(selected):
                    delay = self._rng.uniform(*self.config.inter_source_delay_s)
                    logger.info("Waiting %.1fs before next source", delay)
                    self._sleep(delay)

            summary = self._summarize(aggregate)
        finally:
            try:
                self._cleanup()
            finally:
                self.tracker.finish(aggregate)

        snapshot = self.tracker.snapshot()
        logger.info(
            "Scrape run complete: run_id=%s, records=%d, persisted=%d, errors=%d",
            run_id,
            len(aggregate),
            persisted,
            len(snapshot.errors),
        )
        return ScrapeRunResult(
            records=aggregate,
            summary_report=summary,
            errors=snapshot.errors,
            persisted=persisted,
        )

    # -------------------------------------------------------------------------
    # Per source
    # -------------------------------------------------------------------------

    def _run_source(self, source: SourceDescriptor) -> tuple[list[RawRecord], int]:
        name = source.name
        logger.info(
            "Source %s via %s (rate limit hint: %d requests / %ds)",
            name,
            source.access_method.value,
            source.rate_limit.requests_per_window,
            source.rate_limit.window_s,
        )
        self.tracker.update(name, SourceStatus.RUNNING, 10, 0, f"Starting {name}...")

        try:
            records = self._acquire(source)
            self.tracker.update(
                name, SourceStatus.RUNNING, 70, len(records), "Running AI analysis..."
            )
            annotations = self._enrich(records)
            self.tracker.update(
                name, SourceStatus.RUNNING, 90, len(records), "Saving trends..."
            )
            saved = self._persist(records, annotations)
        except Exception as e:
            message = f"{name}: {e}"
            logger.error("Source failed: %s", message, exc_info=not isinstance(e, ScrapeError))
            self.tracker.record_error(message)
            self.tracker.update(
                name, SourceStatus.FAILED, 100, 0, "Failed", error=str(e)
            )
            return [], 0

        self.tracker.update(
            name,
            SourceStatus.COMPLETED,
            100,
            len(records),
            f"Completed: {len(records)} trends, {saved} saved",
        )
        return records, saved

    def _acquire(self, source: SourceDescriptor) -> list[RawRecord]:
        if source.access_method is AccessMethod.ASYNC_JOB:
            return self._acquire_async_job(source)
        if source.access_method is AccessMethod.HTTP:
            return self._acquire_http(source)
        return self._acquire_interactive(source)

    def _acquire_interactive(self, source: SourceDescriptor) -> list[RawRecord]:
        with self.browser.page() as page:
            self.tracker.update(source.name, SourceStatus.RUNNING, 30, 0, "Loading page...")
            html = self.browser.load(page, source)
            self.tracker.update(source.name, SourceStatus.RUNNING, 50, 0, "Extracting trends...")
            return self.cascade.run(html, source)

    def _acquire_http(self, source: SourceDescriptor) -> list[RawRecord]:
        self.tracker.update(source.name, SourceStatus.RUNNING, 30, 0, "Fetching page...")
        html = self.fetcher.fetch(source.url)
        self.tracker.update(source.name, SourceStatus.RUNNING, 50, 0, "Extracting trends...")
        return self.cascade.run(html, source)

    def _acquire_async_job(self, source: SourceDescriptor) -> list[RawRecord]:
        client = self.job_client
        if client is None or not source.actor_id:
            raise SubmissionError("Apify is not configured")

        job = client.submit(source.actor_id, source.actor_input)
        self.tracker.update(
            source.name, SourceStatus.RUNNING, 30, 0, f"Actor run {job.id} submitted"
        )
        job = client.await_completion(
            job,
            poll_interval_s=source.poll_interval_s or self.config.poll_interval_s,
            max_attempts=source.max_poll_attempts or self.config.max_poll_attempts,
        )
        if job.poll_exhausted:
            raise PollTimeoutError(
                f"Actor run {job.id} still running after {job.attempt_count} polls"
            )
        if not job.is_success():
            raise PollTimeoutError(
                f"Actor run {job.id} ended with status {job.status.value}"
                + (f": {job.error_message}" if job.error_message else "")
            )

        self.tracker.update(source.name, SourceStatus.RUNNING, 50, 0, "Fetching dataset...")
        try:
            items = client.fetch_results(job, limit=source.dataset_limit)
        except ApifyError as e:
            raise FetchError(f"Dataset fetch failed for run {job.id}: {e}", e) from e

        records = source.extract(items)
        if not records:
            logger.warning("Actor run %s returned no usable records", job.id)
        return [
            dataclasses.replace(
                record, attributes={**record.attributes, "apify_run_id": job.id}
            )
            for record in records
        ]

    def _enrich(self, records: list[RawRecord]) -> dict[str, Any]:
        if not records:
            return {}
        try:
            return self.enrichment.analyze_trends(records) or {}
        except Exception as e:
            logger.warning("Enrichment failed, using default annotations: %s", e)
            return {}

    def _persist(self, records: list[RawRecord], annotations: dict[str, Any]) -> int:
        saved = 0
        for record in records:
            annotation = annotations.get(record.join_key) or default_annotation()
            try:
                self.persistence.create(record, annotation)
            except PersistenceError as e:
                logger.warning("Failed to save trend %s: %s", record.tag, e)
                continue
            except Exception as e:
                logger.warning(
                    "Unexpected error saving trend %s: %s", record.tag, e, exc_info=True
                )
                continue
            saved += 1
        return saved

    # -------------------------------------------------------------------------
    # Run end
    # -------------------------------------------------------------------------

    def _summarize(self, records: list[RawRecord]) -> str:
        if not records:
            return NO_RECORDS_REPORT
        try:
            report = self.enrichment.generate_trend_report(records)
        except Exception as e:
            logger.warning("Trend report generation failed: %s", e)
            return REPORT_UNAVAILABLE
        logger.info("Trend report generated (%d characters)", len(report))
        return report

    def _cleanup(self) -> None:
        try:
            self.browser.close()
        finally:
            self.fetcher.close()
        logger.info("Scrape cleanup completed")


def build_default_orchestrator(
    tracker: ProgressTracker | None = None,
    persistence: Persistence | None = None,
) -> ScrapeOrchestrator:
    """Wire an orchestrator from Django settings."""
    enrichment = EnrichmentService()
    job_client = None
    if is_apify_configured():
        job_client = ApifyClient(
            token=settings.APIFY_TOKEN,
            base_url=settings.APIFY_BASE_URL,
        )

    return ScrapeOrchestrator(
        tracker=tracker or ProgressTracker(),
        cascade=ExtractionCascade(CascadeConfig.from_settings(), analyzer=enrichment),
        enrichment=enrichment,
        persistence=persistence or DjangoTrendRepository(),
        job_client=job_client,
        config=ScrapeConfig.from_settings(),
    )
