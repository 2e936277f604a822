"""TikTok trending hashtags via the lexis-solutions Apify actor."""

from __future__ import annotations

import logging
from typing import Any

from trendwatch.scraping.sources.common import (
    TIKTOK_CATEGORY_RULES,
    format_count,
    infer_category,
    normalize_tag,
    to_int,
)
from trendwatch.scraping.types import AccessMethod, RateLimit, RawRecord, SourceDescriptor

logger = logging.getLogger(__name__)

ACTOR_ID = "lexis-solutions~tiktok-trending-hashtags-scraper"
ACTOR_URL = f"https://api.apify.com/v2/acts/{ACTOR_ID}"
SOURCE_NAME = "Apify TikTok Hashtag Trends"


def _popularity(item: dict[str, Any]) -> str:
    views = to_int(item.get("video_views"))
    if views:
        return format_count(views, "views")
    posts = to_int(item.get("publish_cnt"))
    if posts:
        return format_count(posts, "posts")
    if item.get("rank"):
        return f"#{item['rank']} trending"
    return "Trending"


def _category(item: dict[str, Any], tag: str) -> str:
    industry = item.get("industry_info")
    if isinstance(industry, dict) and industry.get("value"):
        return industry["value"]
    return infer_category(tag, TIKTOK_CATEGORY_RULES)


def extract(items: list[dict[str, Any]]) -> list[RawRecord]:
    records = []
    for rank, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            continue
        tag = normalize_tag(item.get("hashtag_name") or item.get("hashtag"))
        if len(tag) <= 1 or "undefined" in tag:
            continue
        records.append(
            RawRecord(
                tag=tag,
                platform_name="tiktok",
                popularity_label=_popularity(item),
                category=_category(item, tag),
                region="United States",
                attributes={
                    "source_url": ACTOR_URL,
                    "scraped_from": SOURCE_NAME,
                    "extraction_method": "apify_hashtag_api",
                    "rank": rank,
                    "original_data": item,
                },
            )
        )
    logger.info("Extracted %d trending hashtags from %s", len(records), SOURCE_NAME)
    return records


SOURCE = SourceDescriptor(
    key="apify_tiktok_hashtags",
    name=SOURCE_NAME,
    platform="tiktok",
    url=ACTOR_URL,
    access_method=AccessMethod.ASYNC_JOB,
    extract=extract,
    rate_limit=RateLimit(requests_per_window=3, window_s=3600),
    actor_id=ACTOR_ID,
    actor_input={
        "country": "US",
        "maxHashtags": 50,
        "sortBy": "trending",
        "includeAnalytics": True,
    },
    dataset_limit=100,
    poll_interval_s=20,
)
