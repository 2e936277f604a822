"""
X (Twitter) trends via trends24.in.

X requires authentication for its own trend pages, so trends are read
from the public Trends24 mirror. The page layout shifts often; selectors
are tried from most to least specific until enough trends are found.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import unquote_plus

from bs4 import BeautifulSoup

from trendwatch.scraping.types import AccessMethod, RateLimit, RawRecord, SourceDescriptor

logger = logging.getLogger(__name__)

URL = "https://trends24.in/"
SOURCE_NAME = "Trends24 (X/Twitter)"

SELECTORS = (
    'a[href*="/trend/"], a[href*="#"]',
    ".trend, .trending, .hashtag",
    "li",
    "span, div, p",
)

ENOUGH = 10
MAX_RECORDS = 20
MAX_ELEMENTS_PER_SELECTOR = 100

CAMEL_CASE_RE = re.compile(r"^[A-Z][a-z]+([A-Z][a-z]+)*$")
DISALLOWED_RE = re.compile(r"[^\w\s#\u4e00-\u9fff]")


def _candidate(element) -> str:
    href = element.get("href") or ""
    if "/trend/" in href:
        return unquote_plus(href.split("/trend/", 1)[1].split("/")[0])
    if "#" in href:
        match = re.search(r"#([^&?]+)", href)
        if match:
            return match.group(1)

    text = element.get_text().strip()
    if text.startswith("#") and 2 < len(text) < 50:
        return text
    if CAMEL_CASE_RE.match(text) and len(text) > 3:
        return text
    return ""


def _is_duplicate(tag: str, records: list[RawRecord]) -> bool:
    lowered = tag.lower()
    return any(
        r.tag.lower() == lowered or lowered[1:] in r.tag.lower() for r in records
    )


def extract(html: str) -> list[RawRecord]:
    soup = BeautifulSoup(html, "html.parser")
    records: list[RawRecord] = []

    for strategy, selector in enumerate(SELECTORS, start=1):
        for index, element in enumerate(soup.select(selector)):
            if len(records) >= MAX_RECORDS or index > MAX_ELEMENTS_PER_SELECTOR:
                break

            candidate = _candidate(element)
            if not 1 < len(candidate) < 60:
                continue
            cleaned = DISALLOWED_RE.sub("", candidate).strip().lstrip("#")
            tag = "#" + re.sub(r"\s+", "", cleaned)
            if len(tag) <= 2 or _is_duplicate(tag, records):
                continue

            records.append(
                RawRecord(
                    tag=tag,
                    platform_name="x",
                    popularity_label="Trending",
                    category="Social",
                    region="Global",
                    attributes={
                        "source_url": URL,
                        "scraped_from": SOURCE_NAME,
                        "selector_used": selector,
                        "extraction_strategy": strategy,
                    },
                )
            )

        if len(records) >= ENOUGH:
            break

    if not records:
        logger.warning("No trends extracted from Trends24")
    else:
        logger.info("Extracted %d trends from Trends24", len(records))
    return records


SOURCE = SourceDescriptor(
    key="trends24",
    name=SOURCE_NAME,
    platform="x",
    url=URL,
    access_method=AccessMethod.HTTP,
    extract=extract,
    rate_limit=RateLimit(requests_per_window=10, window_s=3600),
)
