"""
HTTP access path: one request/response fetch of a source page.

Requests go out with a rotating desktop user agent and browser-like
headers, and every successful fetch is followed by a short random pause
before the next step touches the network again.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable

import requests

from trendwatch.scraping.errors import FetchError

logger = logging.getLogger(__name__)

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_1) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.1 Safari/605.1.15",
)

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "DNT": "1",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}

POST_FETCH_DELAY_S = (2.0, 5.0)


def random_user_agent(rng: random.Random | None = None) -> str:
    return (rng or random).choice(USER_AGENTS)


class HttpFetcher:
    """
    Fetches page HTML over plain HTTP.

    Args:
        timeout_s: Per-request timeout
        sleep: Sleep function (injected for tests)
        rng: Random source for user agents and pauses
        delay_range: (min, max) pause after each fetch, in seconds
        session: Optional requests.Session (a new one is created if None)
    """

    def __init__(
        self,
        timeout_s: float = 30.0,
        sleep: Callable[[float], None] | None = None,
        rng: random.Random | None = None,
        delay_range: tuple[float, float] = POST_FETCH_DELAY_S,
        session: requests.Session | None = None,
    ):
        self.timeout_s = timeout_s
        self._sleep = sleep or time.sleep
        self._rng = rng or random.Random()
        self.delay_range = delay_range
        self._session = session

    def fetch(self, url: str) -> str:
        """
        GET the URL and return the response body.

        Raises:
            FetchError: On connection, timeout, or HTTP errors
        """
        headers = {"User-Agent": random_user_agent(self._rng), **BROWSER_HEADERS}
        logger.info("FETCH_START url=%s", url)
        start = time.monotonic()

        try:
            response = self._get_session().get(url, headers=headers, timeout=self.timeout_s)
        except requests.Timeout as e:
            raise FetchError(f"Timeout fetching {url}", e) from e
        except requests.RequestException as e:
            raise FetchError(f"Request failed for {url}: {e}", e) from e

        latency_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "FETCH_END url=%s status=%d latency_ms=%d bytes=%d",
            url,
            response.status_code,
            latency_ms,
            len(response.content or b""),
        )

        if not response.ok:
            raise FetchError(f"HTTP {response.status_code} fetching {url}")

        self._sleep(self._rng.uniform(*self.delay_range))
        return response.text

    def close(self) -> None:
        """Release pooled connections. The next fetch opens a new session."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session
