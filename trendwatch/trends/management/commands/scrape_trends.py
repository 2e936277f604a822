"""
Management command to run trend scraping.

Usage:
    python manage.py scrape_trends
    python manage.py scrape_trends --platform tiktok --platform x
    python manage.py scrape_trends --interval-hours 6
    python manage.py scrape_trends --list-sources

Options:
    --platform: Platform or source key to include (repeatable; default: all)
    --interval-hours: Repeat the run every N hours until interrupted
    --max-runs: Stop after N runs in interval mode (0 = unlimited)
    --list-sources: Print configured sources and exit
    --dry-run: Scrape and enrich, but keep results in memory only

Apify-backed sources require APIFY_ENABLED=true and APIFY_TOKEN.
LLM enrichment requires OPENAI_API_KEY (or LLM_DISABLED=true).
"""

from __future__ import annotations

import logging
import signal
import time

from django.core.management.base import BaseCommand, CommandError

from trendwatch.scraping.orchestrator import ScrapeRunResult, build_default_orchestrator
from trendwatch.scraping.sources import DEFAULT_SOURCES
from trendwatch.trends.persistence import InMemoryTrendRepository

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Scrape trending topics from configured sources, enrich and store them"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._shutdown_requested = False

    def add_arguments(self, parser):
        parser.add_argument(
            "--platform",
            action="append",
            dest="platforms",
            default=None,
            help="Platform or source key to include (repeatable)",
        )
        parser.add_argument(
            "--interval-hours",
            type=float,
            default=0,
            help="Repeat every N hours until interrupted (0 = run once)",
        )
        parser.add_argument(
            "--max-runs",
            type=int,
            default=0,
            help="Stop after N runs in interval mode (0 = unlimited)",
        )
        parser.add_argument(
            "--list-sources",
            action="store_true",
            help="List configured sources and exit",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Do not write trends to the database",
        )

    def handle(self, *args, **options):
        platforms = options["platforms"]
        interval_hours = options["interval_hours"]
        max_runs = options["max_runs"]

        if options["list_sources"]:
            self._list_sources()
            return

        if interval_hours < 0:
            raise CommandError("--interval-hours must be >= 0")

        selected = [s for s in DEFAULT_SOURCES if s.matches(platforms)]
        if not selected:
            raise CommandError(f"No sources match platform filter: {', '.join(platforms)}")

        persistence = InMemoryTrendRepository() if options["dry_run"] else None
        orchestrator = build_default_orchestrator(persistence=persistence)

        self.stdout.write(f"Scraping {len(selected)} source(s):")
        for source in selected:
            self.stdout.write(f"  - {source.name} [{source.access_method.value}]")
        if options["dry_run"]:
            self.stdout.write(self.style.WARNING("DRY RUN - trends will not be saved"))

        if interval_hours == 0:
            result = orchestrator.run_all(platform_filter=platforms)
            self._report(result)
            return

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)
        self.stdout.write(f"Running every {interval_hours}h (Ctrl+C to stop)")

        runs = 0
        while not self._shutdown_requested:
            result = orchestrator.run_all(platform_filter=platforms)
            self._report(result)
            runs += 1
            if max_runs > 0 and runs >= max_runs:
                self.stdout.write(f"Exiting after {runs} run(s) (--max-runs)")
                break
            self._wait(interval_hours * 3600)

        self.stdout.write(f"Scheduler exiting. Runs completed: {runs}")

    def _list_sources(self) -> None:
        for source in DEFAULT_SOURCES:
            self.stdout.write(
                f"{source.key:<32} {source.platform:<10} "
                f"{source.access_method.value:<12} {source.name}"
            )

    def _report(self, result: ScrapeRunResult) -> None:
        if result.rejected:
            self.stdout.write(self.style.WARNING(result.summary_report))
            return

        self.stdout.write("")
        self.stdout.write(
            self.style.SUCCESS(
                f"Collected {len(result.records)} trends, saved {result.persisted}"
            )
        )
        for error in result.errors:
            self.stdout.write(self.style.ERROR(f"  error: {error}"))
        self.stdout.write("")
        self.stdout.write(result.summary_report)

    def _wait(self, seconds: float) -> None:
        """Sleep in short steps so a shutdown signal is noticed promptly."""
        deadline = time.monotonic() + seconds
        while not self._shutdown_requested:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(remaining, 5))

    def _signal_handler(self, signum, frame):
        sig_name = signal.Signals(signum).name
        self.stdout.write(f"\nReceived {sig_name}, stopping after the current run...")
        self._shutdown_requested = True
