"""
Instagram trending hashtags mined from the apify/instagram-hashtag-stats actor.

The actor is seeded with broad hashtags; the trends are the related hashtags
it reports for each seed, plus any seed that carries its own post count.
Results are sorted by popularity and capped.
"""

from __future__ import annotations

import logging
from typing import Any

from trendwatch.scraping.sources.common import (
    INSTAGRAM_CATEGORY_RULES,
    format_count,
    infer_category,
    normalize_tag,
    popularity_score,
    to_int,
)
from trendwatch.scraping.types import AccessMethod, RateLimit, RawRecord, SourceDescriptor

logger = logging.getLogger(__name__)

ACTOR_ID = "apify~instagram-hashtag-stats"
ACTOR_URL = f"https://api.apify.com/v2/acts/{ACTOR_ID}"
SOURCE_NAME = "Apify Instagram Hashtag Stats"
MAX_RECORDS = 50

SEED_HASHTAGS = [
    "instagram", "viral", "trending", "explore", "fyp",
    "fashion", "style", "ootd", "beauty", "lifestyle",
]


def _related_popularity(related: dict[str, Any]) -> str:
    count = to_int(
        related.get("postsCount") or related.get("posts_count") or related.get("frequency")
    )
    if count:
        return format_count(count, "posts")
    score = related.get("score") or related.get("popularity")
    try:
        return f"{float(score) * 100:.1f}% trending" if score else "Trending"
    except (TypeError, ValueError):
        return "Trending"


def _record(tag: str, popularity: str, category: str, **attributes: Any) -> RawRecord:
    return RawRecord(
        tag=tag,
        platform_name="instagram",
        popularity_label=popularity,
        category=category,
        region="Global",
        attributes={
            "source_url": ACTOR_URL,
            "scraped_from": SOURCE_NAME,
            "extraction_method": "apify_instagram_hashtag_stats",
            **attributes,
        },
    )


def extract(items: list[dict[str, Any]]) -> list[RawRecord]:
    records: list[RawRecord] = []
    seen: set[str] = set()

    for item in items:
        if not isinstance(item, dict):
            continue

        for related in item.get("relatedHashtags") or []:
            if not isinstance(related, dict):
                continue
            name = related.get("hashtag") or related.get("name") or related.get("tag")
            tag = normalize_tag(name)
            if len(tag) <= 1 or tag in seen:
                continue
            seen.add(tag)
            records.append(
                _record(
                    tag,
                    _related_popularity(related),
                    infer_category(tag, INSTAGRAM_CATEGORY_RULES),
                    seed_hashtag=item.get("hashtag") or item.get("originalHashtag"),
                    original_data=related,
                )
            )

        seed_count = to_int(item.get("postsCount"))
        seed_tag = normalize_tag(item.get("hashtag"))
        if seed_tag and seed_count and seed_tag not in seen:
            seen.add(seed_tag)
            records.append(
                _record(
                    seed_tag,
                    format_count(seed_count, "posts"),
                    "General",
                    posts_count=seed_count,
                    is_seed_hashtag=True,
                )
            )

    records.sort(key=lambda r: popularity_score(r.popularity_label), reverse=True)
    records = records[:MAX_RECORDS]
    logger.info("Extracted %d trending hashtags from %s", len(records), SOURCE_NAME)
    return records


SOURCE = SourceDescriptor(
    key="apify_instagram_hashtag_stats",
    name=SOURCE_NAME,
    platform="instagram",
    url=ACTOR_URL,
    access_method=AccessMethod.ASYNC_JOB,
    extract=extract,
    rate_limit=RateLimit(requests_per_window=2, window_s=3600),
    actor_id=ACTOR_ID,
    actor_input={
        "hashtags": SEED_HASHTAGS,
        "maxResults": 100,
        "includeRelatedHashtags": True,
        "includeTopPosts": True,
        "includeRecentPosts": True,
    },
    dataset_limit=100,
    poll_interval_s=15,
)
