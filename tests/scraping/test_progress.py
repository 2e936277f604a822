"""
Tests for ProgressTracker.

Covers the per-source state machine, percent recomputation, name lookup,
the single-running-session check and snapshot isolation.
"""

import threading

import pytest

from trendwatch.scraping.errors import AlreadyRunningError, InvalidTransitionError
from trendwatch.scraping.progress import ProgressTracker, SourceStatus
from trendwatch.scraping.types import RawRecord

NAMES = ["Apify TikTok Hashtag Trends", "Trends24 (X/Twitter)", "TikTok Creative Center"]


@pytest.fixture
def tracker():
    tracker = ProgressTracker()
    tracker.initialize(NAMES)
    return tracker


def _status(tracker, name):
    return next(s for s in tracker.snapshot().sources if s.name == name).status


class TestInitialize:
    def test_all_sources_pending(self, tracker):
        session = tracker.snapshot()
        assert session.is_running is True
        assert session.total_sources == 3
        assert session.completed_sources == 0
        assert session.percent == 0.0
        assert all(s.status is SourceStatus.PENDING for s in session.sources)

    def test_second_initialize_while_running_raises(self, tracker):
        with pytest.raises(AlreadyRunningError):
            tracker.initialize(["Other"])
        # In-flight session untouched
        assert tracker.snapshot().total_sources == 3

    def test_initialize_after_finish(self, tracker):
        tracker.finish([])
        tracker.initialize(["Only"])
        assert tracker.snapshot().total_sources == 1

    def test_only_one_concurrent_initialize_wins(self):
        tracker = ProgressTracker()
        barrier = threading.Barrier(8)
        outcomes = []

        def attempt():
            barrier.wait()
            try:
                tracker.initialize(["A"])
                outcomes.append("ok")
            except AlreadyRunningError:
                outcomes.append("rejected")

        threads = [threading.Thread(target=attempt) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("rejected") == 7


class TestTransitions:
    def test_pending_running_completed(self, tracker):
        name = NAMES[0]
        tracker.update(name, SourceStatus.RUNNING, 10, 0, "Starting")
        assert _status(tracker, name) is SourceStatus.RUNNING
        tracker.update(name, SourceStatus.COMPLETED, 100, 5, "Done")

        progress = tracker.snapshot().sources[0]
        assert progress.status is SourceStatus.COMPLETED
        assert progress.record_count == 5
        assert progress.started_at is not None
        assert progress.completed_at is not None

    def test_pending_to_terminal_is_rejected(self, tracker):
        with pytest.raises(InvalidTransitionError):
            tracker.update(NAMES[0], SourceStatus.COMPLETED, 100, 1)
        assert _status(tracker, NAMES[0]) is SourceStatus.PENDING

    def test_back_to_pending_is_rejected(self, tracker):
        tracker.update(NAMES[0], SourceStatus.RUNNING, 10, 0)
        with pytest.raises(InvalidTransitionError):
            tracker.update(NAMES[0], SourceStatus.PENDING, 0, 0)

    @pytest.mark.parametrize("terminal", [SourceStatus.COMPLETED, SourceStatus.FAILED])
    def test_terminal_is_never_reopened(self, tracker, terminal):
        name = NAMES[1]
        tracker.update(name, SourceStatus.RUNNING, 10, 0)
        tracker.update(name, terminal, 100, 0)

        tracker.update(name, SourceStatus.RUNNING, 50, 0, "late update")

        progress = tracker.snapshot().sources[1]
        assert progress.status is terminal
        assert progress.detail == "late update"

    def test_terminal_correction_last_write_wins(self, tracker):
        name = NAMES[1]
        tracker.update(name, SourceStatus.RUNNING, 10, 0)
        tracker.update(name, SourceStatus.COMPLETED, 100, 3)
        tracker.update(name, SourceStatus.FAILED, 100, 0, error="late failure")

        progress = tracker.snapshot().sources[1]
        assert progress.status is SourceStatus.FAILED
        assert progress.error == "late failure"

    def test_percent_clamped(self, tracker):
        tracker.update(NAMES[0], SourceStatus.RUNNING, 250, 0)
        assert tracker.snapshot().sources[0].percent == 100


class TestPercent:
    def test_percent_tracks_terminal_sources_after_every_update(self, tracker):
        steps = [
            (NAMES[0], SourceStatus.RUNNING),
            (NAMES[1], SourceStatus.RUNNING),
            (NAMES[0], SourceStatus.COMPLETED),
            (NAMES[2], SourceStatus.RUNNING),
            (NAMES[1], SourceStatus.FAILED),
            (NAMES[2], SourceStatus.COMPLETED),
        ]
        for name, status in steps:
            tracker.update(name, status, 50, 0)
            session = tracker.snapshot()
            assert session.percent == pytest.approx(
                100 * session.completed_sources / session.total_sources
            )

        assert tracker.snapshot().percent == pytest.approx(100.0)

    def test_current_source(self, tracker):
        tracker.update(NAMES[0], SourceStatus.RUNNING, 10, 0)
        assert tracker.snapshot().current_source == NAMES[0]
        tracker.update(NAMES[0], SourceStatus.COMPLETED, 100, 0)
        assert tracker.snapshot().current_source is None


class TestNameLookup:
    def test_exact_match_is_case_insensitive(self, tracker):
        tracker.update("trends24 (x/twitter)", SourceStatus.RUNNING, 10, 0)
        assert _status(tracker, NAMES[1]) is SourceStatus.RUNNING

    def test_unique_first_token_fallback(self, tracker):
        tracker.update("Trends24", SourceStatus.RUNNING, 10, 0)
        assert _status(tracker, NAMES[1]) is SourceStatus.RUNNING

    def test_ambiguous_first_token_is_ignored(self):
        tracker = ProgressTracker()
        tracker.initialize(["TikTok Creative Center", "TikTok Hashtags"])

        tracker.update("TikTok", SourceStatus.RUNNING, 10, 0)

        assert all(s.status is SourceStatus.PENDING for s in tracker.snapshot().sources)

    def test_unknown_name_is_ignored(self, tracker):
        tracker.update("Pinterest", SourceStatus.RUNNING, 10, 0)
        assert tracker.snapshot().completed_sources == 0
        assert all(s.status is SourceStatus.PENDING for s in tracker.snapshot().sources)


class TestSnapshot:
    def test_snapshot_is_a_copy(self, tracker):
        snap = tracker.snapshot()
        snap.sources[0].status = SourceStatus.COMPLETED
        snap.errors.append("mutated")
        snap.is_running = False

        fresh = tracker.snapshot()
        assert fresh.sources[0].status is SourceStatus.PENDING
        assert fresh.errors == []
        assert fresh.is_running is True

    def test_finish_and_errors(self, tracker):
        tracker.record_error("Trends24 (X/Twitter): HTTP 503")
        record = RawRecord(tag="#a", platform_name="x")
        tracker.finish([record])

        session = tracker.snapshot()
        assert session.is_running is False
        assert session.errors == ["Trends24 (X/Twitter): HTTP 503"]
        assert [r.tag for r in session.aggregate_records] == ["#a"]

    def test_to_dict(self, tracker):
        tracker.update(NAMES[0], SourceStatus.RUNNING, 40, 2, "Working")
        data = tracker.snapshot().to_dict()

        assert data["is_running"] is True
        assert data["total_sources"] == 3
        assert data["sources"][0]["status"] == "running"
        assert data["sources"][0]["trends"] == 2
        assert data["current_source"] == NAMES[0]

    def test_reset(self, tracker):
        tracker.reset()
        assert tracker.is_running is False
        assert tracker.snapshot().sources == []
