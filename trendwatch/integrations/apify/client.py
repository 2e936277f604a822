"""
Apify API v2 client.

Drives the submit -> poll -> fetch lifecycle of a hosted actor run:
1. submit(actor_id, input_json) -> AsyncJob
2. await_completion(job, poll_interval_s, max_attempts) -> AsyncJob
3. fetch_results(job, limit) -> list[dict]

Endpoints per Apify API v2 docs (https://docs.apify.com/api/v2):
- POST /v2/acts/{actorId}/runs - start actor run
- GET /v2/actor-runs/{runId} - get run status
- GET /v2/datasets/{datasetId}/items - fetch dataset items

All API calls are guarded by require_apify_enabled() from
trendwatch.core.guardrails. If APIFY_ENABLED=false (default), any API call
raises ApifyDisabledError.

Polling is a bounded loop: at most max_attempts status reads, with the
injected sleep between them. Running out of attempts is a soft outcome:
the job comes back TIMED_OUT with poll_exhausted=True, nothing is raised.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from urllib.parse import quote

import requests

from trendwatch.core.guardrails import require_apify_enabled
from trendwatch.scraping.errors import SubmissionError

logger = logging.getLogger(__name__)


class ApifyError(Exception):
    """Raised when Apify API returns an error response."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        self.status_code = status_code
        self.body = body[:500] if body else None  # Trim body for logging
        super().__init__(message)


class ApifySubmissionError(ApifyError, SubmissionError):
    """Raised when an actor run could not be started."""


class JobStatus(str, enum.Enum):
    """
    Lifecycle of an actor run.

    Apify status vocabulary maps onto it:
    - READY -> SUBMITTED
    - RUNNING -> RUNNING
    - SUCCEEDED -> SUCCEEDED
    - FAILED -> FAILED
    - TIMED-OUT / TIMED_OUT -> TIMED_OUT
    - ABORTING / ABORTED -> ABORTED
    """

    SUBMITTED = "submitted"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (
            JobStatus.SUCCEEDED,
            JobStatus.FAILED,
            JobStatus.TIMED_OUT,
            JobStatus.ABORTED,
        )

    @classmethod
    def from_apify(cls, value: str | None) -> "JobStatus":
        normalized = (value or "").upper().replace("-", "_")
        return _APIFY_STATUS_MAP.get(normalized, cls.RUNNING)


_APIFY_STATUS_MAP = {
    "READY": JobStatus.SUBMITTED,
    "RUNNING": JobStatus.RUNNING,
    "SUCCEEDED": JobStatus.SUCCEEDED,
    "FAILED": JobStatus.FAILED,
    "TIMED_OUT": JobStatus.TIMED_OUT,
    "ABORTING": JobStatus.ABORTED,
    "ABORTED": JobStatus.ABORTED,
}


@dataclass
class AsyncJob:
    """
    One actor run, created by submit() and mutated only by await_completion().

    poll_exhausted is set when the poll budget ran out before the run
    reached a terminal state on Apify's side.
    """

    id: str
    actor_id: str
    status: JobStatus
    dataset_ref: str | None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    attempt_count: int = 0
    error_message: str | None = None
    poll_exhausted: bool = False

    def is_terminal(self) -> bool:
        """Return True if run is in a terminal state."""
        return self.status.is_terminal

    def is_success(self) -> bool:
        """Return True if run succeeded."""
        return self.status is JobStatus.SUCCEEDED


SUBMIT_HTTP_ERRORS = {
    401: "Apify authentication failed (401). The token may be invalid or expired.",
    402: "Apify payment required (402). Apify credits are exhausted.",
    403: "Apify access denied (403). The account may not be allowed to run this actor.",
}


def _transport_failure(error: requests.RequestException) -> tuple[str, str]:
    """(log label, user-facing message) for a request that never got a response."""
    if isinstance(error, requests.exceptions.ConnectionError):
        return "CONNECTION_ERROR", "Could not connect to Apify API. Check the network connection."
    if isinstance(error, requests.exceptions.Timeout):
        return "TIMEOUT", "Connection to Apify API timed out."
    return "ERROR", f"Request failed: {error}"


def _response_data(response: requests.Response) -> dict[str, Any]:
    """
    The "data" object of an Apify response.

    Raises:
        ValueError: Body is not JSON or has no "data" object
    """
    payload = response.json()
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        raise ValueError(f"Unexpected response shape: {response.text[:200]!r}")
    return data


class ApifyClient:
    """
    HTTP client for Apify API v2.

    Authentication via Bearer token (recommended by Apify docs).
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.apify.com",
        sleep: Callable[[float], None] | None = None,
    ):
        """
        Initialize Apify client.

        Args:
            token: Apify API token
            base_url: Base URL for Apify API (default: https://api.apify.com)
            sleep: Wait function used between polls (default: time.sleep)
        """
        if not token:
            raise ValueError("Apify token is required")
        self.token = token
        self.base_url = base_url.rstrip("/")
        self._sleep = sleep or time.sleep
        self._session = requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        })

    def submit(self, actor_id: str, input_json: dict[str, Any]) -> AsyncJob:
        """
        Start an actor run.

        Args:
            actor_id: Actor ID (e.g., "clockworks/tiktok-scraper")
            input_json: Input configuration for the actor

        Returns:
            AsyncJob with initial run status

        Raises:
            ApifyDisabledError: If APIFY_ENABLED=false
            ApifySubmissionError: On transport, auth, or HTTP errors
        """
        require_apify_enabled()

        # Actor ids contain a slash ("user/actor"); encode it so it stays one path segment
        encoded_actor_id = quote(actor_id, safe="")
        url = f"{self.base_url}/v2/acts/{encoded_actor_id}/runs"

        call_start_ms = time.monotonic() * 1000
        logger.info(
            "APIFY_CALL_START actor_id=%s url=%s",
            actor_id,
            url,
        )

        try:
            response = self._session.post(url, json=input_json, timeout=30)
        except requests.RequestException as e:
            label, message = _transport_failure(e)
            logger.error(
                "APIFY_CALL_END actor_id=%s status=%s duration_ms=%d error=%s",
                actor_id,
                label,
                int(time.monotonic() * 1000 - call_start_ms),
                e,
            )
            raise ApifySubmissionError(message) from e
        duration_ms = int(time.monotonic() * 1000 - call_start_ms)

        if not response.ok:
            logger.error(
                "APIFY_CALL_END actor_id=%s status=HTTP_ERROR duration_ms=%d "
                "http_status=%d error=%s",
                actor_id,
                duration_ms,
                response.status_code,
                response.text[:200],
            )
            raise ApifySubmissionError(
                SUBMIT_HTTP_ERRORS.get(
                    response.status_code,
                    f"Failed to start actor run: HTTP {response.status_code}",
                ),
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = _response_data(response)
        except ValueError as e:
            logger.error(
                "APIFY_CALL_END actor_id=%s status=BAD_RESPONSE duration_ms=%d error=%s",
                actor_id,
                duration_ms,
                e,
            )
            raise ApifySubmissionError(
                f"Apify returned an unreadable run response: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e
        job = self._parse_job(data, actor_id)

        logger.info(
            "APIFY_CALL_END actor_id=%s run_id=%s status=STARTED duration_ms=%d apify_status=%s",
            actor_id,
            job.id,
            duration_ms,
            job.status.value,
        )
        return job

    def await_completion(
        self,
        job: AsyncJob,
        poll_interval_s: float = 20,
        max_attempts: int = 20,
    ) -> AsyncJob:
        """
        Poll run status until a terminal state or the attempt budget runs out.

        A failed poll (transport, HTTP or unreadable body) is logged and counts as a
        used attempt. The returned object is the same job, updated in place.

        Args:
            job: Job returned by submit()
            poll_interval_s: Wait between polls (seconds)
            max_attempts: Maximum number of status reads

        Returns:
            The job, terminal or soft-timed-out (status TIMED_OUT,
            poll_exhausted=True)

        Raises:
            ApifyDisabledError: If APIFY_ENABLED=false
        """
        require_apify_enabled()

        url = f"{self.base_url}/v2/actor-runs/{job.id}"
        logger.info(
            "Polling run: run_id=%s, interval_s=%s, max_attempts=%d",
            job.id,
            poll_interval_s,
            max_attempts,
        )

        while job.attempt_count < max_attempts:
            if job.attempt_count > 0:
                self._sleep(poll_interval_s)
            job.attempt_count += 1

            try:
                response = self._session.get(url, timeout=30)
            except requests.RequestException as e:
                logger.warning(
                    "Poll failed: run_id=%s attempt=%d/%d error=%s",
                    job.id,
                    job.attempt_count,
                    max_attempts,
                    str(e),
                )
                continue

            if not response.ok:
                logger.warning(
                    "Poll failed: run_id=%s attempt=%d/%d http_status=%d",
                    job.id,
                    job.attempt_count,
                    max_attempts,
                    response.status_code,
                )
                continue

            try:
                data = _response_data(response)
            except ValueError as e:
                logger.warning(
                    "Poll failed: run_id=%s attempt=%d/%d error=%s",
                    job.id,
                    job.attempt_count,
                    max_attempts,
                    e,
                )
                continue
            self._apply_status(job, data)

            if job.is_terminal():
                logger.info(
                    "Run completed: run_id=%s, status=%s, attempts=%d",
                    job.id,
                    job.status.value,
                    job.attempt_count,
                )
                return job

            logger.debug(
                "Run still in progress: run_id=%s, status=%s, attempt=%d/%d",
                job.id,
                job.status.value,
                job.attempt_count,
                max_attempts,
            )

        logger.warning(
            "Run did not finish within %d polls: run_id=%s, last_status=%s",
            max_attempts,
            job.id,
            job.status.value,
        )
        job.status = JobStatus.TIMED_OUT
        job.poll_exhausted = True
        return job

    def fetch_results(
        self,
        job: AsyncJob,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """
        Fetch dataset items of a succeeded run.

        Args:
            job: A job whose status is SUCCEEDED
            limit: Maximum items to fetch
            offset: Number of items to skip

        Returns:
            List of raw item dictionaries

        Raises:
            ApifyDisabledError: If APIFY_ENABLED=false
            ApifyError: If the job has not succeeded or the API returns an error
        """
        require_apify_enabled()

        if not job.is_success():
            raise ApifyError(
                f"Cannot fetch results for run_id={job.id} with status={job.status.value}"
            )
        if not job.dataset_ref:
            raise ApifyError(f"Run run_id={job.id} has no dataset")

        url = f"{self.base_url}/v2/datasets/{job.dataset_ref}/items"
        params = {"limit": limit, "offset": offset}
        logger.info(
            "Fetching dataset items: dataset_id=%s, limit=%d, offset=%d",
            job.dataset_ref,
            limit,
            offset,
        )

        try:
            response = self._session.get(url, params=params, timeout=60)
        except requests.RequestException as e:
            raise ApifyError(f"Request failed: {e}") from e

        if not response.ok:
            raise ApifyError(
                f"Failed to fetch dataset items: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        # Dataset items endpoint returns array directly, not wrapped in "data"
        try:
            items = response.json()
        except ValueError as e:
            raise ApifyError(
                f"Dataset response is not JSON: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e
        if isinstance(items, dict) and "items" in items:
            items = items["items"]
        if not isinstance(items, list):
            raise ApifyError(
                "Dataset response is not a list of items",
                status_code=response.status_code,
                body=response.text,
            )

        logger.info("Fetched %d items from dataset", len(items))
        return items

    def _parse_job(self, data: dict[str, Any], actor_id: str) -> AsyncJob:
        """Parse a run payload into a fresh AsyncJob."""
        job = AsyncJob(
            id=data.get("id", ""),
            actor_id=actor_id or data.get("actId", ""),
            status=JobStatus.SUBMITTED,
            dataset_ref=data.get("defaultDatasetId"),
        )
        self._apply_status(job, data)
        return job

    def _apply_status(self, job: AsyncJob, data: dict[str, Any]) -> None:
        """Copy status fields from a run payload onto the job."""
        job.status = JobStatus.from_apify(data.get("status"))
        job.dataset_ref = data.get("defaultDatasetId") or job.dataset_ref
        job.started_at = _parse_timestamp(data.get("startedAt")) or job.started_at
        job.finished_at = _parse_timestamp(data.get("finishedAt")) or job.finished_at
        if job.status is JobStatus.FAILED:
            job.error_message = data.get("statusMessage")


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
