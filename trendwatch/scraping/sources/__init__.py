"""
Configured trend sources.

DEFAULT_SOURCES is the run order: hosted Apify actors first (best data),
then the rendered TikTok page, then the Trends24 mirror for X.
"""

from trendwatch.scraping.sources import (
    apify_instagram_hashtag_stats,
    apify_tiktok_hashtags,
    tiktok_creative_center,
    trends24,
)
from trendwatch.scraping.types import SourceDescriptor

DEFAULT_SOURCES: list[SourceDescriptor] = [
    apify_tiktok_hashtags.SOURCE,
    apify_instagram_hashtag_stats.SOURCE,
    tiktok_creative_center.SOURCE,
    trends24.SOURCE,
]

SOURCE_REGISTRY: dict[str, SourceDescriptor] = {
    source.key: source for source in DEFAULT_SOURCES
}

__all__ = ["DEFAULT_SOURCES", "SOURCE_REGISTRY"]
