"""TikTok Creative Center popular-hashtag page, rendered in the browser."""

from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup

from trendwatch.scraping.types import AccessMethod, RateLimit, RawRecord, SourceDescriptor

logger = logging.getLogger(__name__)

URL = "https://ads.tiktok.com/business/creativecenter/inspiration/popular/hashtag/pc/en"
SOURCE_NAME = "TikTok Creative Center"

CARD_SELECTOR = (
    ".trending-hashtag-card, .hashtag-trend-card, [data-testid=\"hashtag-card\"], "
    ".cc-hashtag-item, .trend-card, .hashtag-item"
)
WAIT_SELECTOR = (
    ".trending-hashtag-card, .hashtag-trend-card, [data-testid=\"hashtag-card\"], "
    ".cc-hashtag-item, .trend-card"
)
HASHTAG_SELECTOR = (
    ".hashtag-text, .trend-title, .hashtag-name, h3, .card-title, "
    "[data-testid=\"hashtag-text\"]"
)
POPULARITY_SELECTOR = (
    ".view-count, .popularity-metric, .trend-views, .metric-value, "
    "[data-testid=\"view-count\"]"
)
CATEGORY_SELECTOR = (
    ".category-tag, .trend-category, .hashtag-category, [data-testid=\"category\"]"
)

VIEWS_RE = re.compile(r"[\d.]+[MKB]?\s*views?", re.IGNORECASE)
TAG_RE = re.compile(r"#\w+")


def _text(card, selector: str) -> str:
    node = card.select_one(selector)
    return node.get_text().strip() if node is not None else ""


def extract(html: str) -> list[RawRecord]:
    soup = BeautifulSoup(html, "html.parser")
    records = []

    for card in soup.select(CARD_SELECTOR):
        card_text = card.get_text(" ")

        tag = _text(card, HASHTAG_SELECTOR)
        if not tag:
            match = TAG_RE.search(card_text)
            tag = match.group(0) if match else ""
        if not tag:
            continue

        popularity = _text(card, POPULARITY_SELECTOR)
        if not popularity:
            match = VIEWS_RE.search(card_text)
            popularity = match.group(0) if match else "N/A"

        category = _text(card, CATEGORY_SELECTOR) or card.get("data-category") or "General"

        records.append(
            RawRecord(
                tag=tag if tag.startswith("#") else f"#{tag}",
                platform_name="tiktok",
                popularity_label=popularity,
                category=category,
                region="Global",
                attributes={"source_url": URL, "scraped_from": SOURCE_NAME},
            )
        )

    logger.info("Extracted %d TikTok trends", len(records))
    return records


SOURCE = SourceDescriptor(
    key="tiktok_creative_center",
    name=SOURCE_NAME,
    platform="tiktok",
    url=URL,
    access_method=AccessMethod.INTERACTIVE,
    extract=extract,
    rate_limit=RateLimit(requests_per_window=10, window_s=3600),
    wait_selector=WAIT_SELECTOR,
)
