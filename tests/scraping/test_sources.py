"""
Tests for the configured trend sources and their extraction helpers.
"""

import pytest

from trendwatch.scraping.sources import DEFAULT_SOURCES, SOURCE_REGISTRY
from trendwatch.scraping.sources import (
    apify_instagram_hashtag_stats,
    apify_tiktok_hashtags,
    tiktok_creative_center,
    trends24,
)
from trendwatch.scraping.sources.common import (
    INSTAGRAM_CATEGORY_RULES,
    TIKTOK_CATEGORY_RULES,
    format_count,
    infer_category,
    normalize_tag,
    popularity_score,
    to_int,
)
from trendwatch.scraping.types import AccessMethod


class TestRegistry:
    def test_run_order(self):
        assert [s.key for s in DEFAULT_SOURCES] == [
            "apify_tiktok_hashtags",
            "apify_instagram_hashtag_stats",
            "tiktok_creative_center",
            "trends24",
        ]

    def test_registry_by_key(self):
        assert SOURCE_REGISTRY["trends24"] is trends24.SOURCE
        assert len(SOURCE_REGISTRY) == len(DEFAULT_SOURCES)

    def test_access_methods(self):
        assert apify_tiktok_hashtags.SOURCE.access_method is AccessMethod.ASYNC_JOB
        assert apify_instagram_hashtag_stats.SOURCE.access_method is AccessMethod.ASYNC_JOB
        assert tiktok_creative_center.SOURCE.access_method is AccessMethod.INTERACTIVE
        assert trends24.SOURCE.access_method is AccessMethod.HTTP

    def test_async_sources_have_actors(self):
        for source in DEFAULT_SOURCES:
            if source.access_method is AccessMethod.ASYNC_JOB:
                assert source.actor_id
                assert source.actor_input

    @pytest.mark.parametrize(
        "platform_filter,expected",
        [
            (None, 4),
            ([], 4),
            (["tiktok"], 2),
            (["TikTok", "x"], 3),
            (["trends24"], 1),
            (["pinterest"], 0),
        ],
    )
    def test_matches(self, platform_filter, expected):
        assert sum(1 for s in DEFAULT_SOURCES if s.matches(platform_filter)) == expected


class TestCommonHelpers:
    @pytest.mark.parametrize(
        "count,expected",
        [
            (1_234_567, "1.2M views"),
            (45_300, "45K views"),
            (1_000, "1000 views"),
            (999, "999 views"),
        ],
    )
    def test_format_count(self, count, expected):
        assert format_count(count, "views") == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("1234", 1234),
            (1234.9, 1234),
            ("1,234 posts", 1234),
            ("n/a", None),
            (None, None),
            (True, None),
        ],
    )
    def test_to_int(self, value, expected):
        assert to_int(value) == expected

    def test_normalize_tag(self):
        assert normalize_tag("foo") == "#foo"
        assert normalize_tag(" #foo ") == "#foo"
        assert normalize_tag("") == ""
        assert normalize_tag(None) == ""

    def test_popularity_score_orders_labels(self):
        labels = ["500 posts", "1.5M posts", "Trending", "45K posts", "85.0% trending"]
        ordered = sorted(labels, key=popularity_score, reverse=True)
        assert ordered == ["1.5M posts", "85.0% trending", "45K posts", "500 posts", "Trending"]

    def test_infer_category(self):
        assert infer_category("#cookingtok", TIKTOK_CATEGORY_RULES) == "Food & Beverage"
        assert infer_category("#GymLife", INSTAGRAM_CATEGORY_RULES) == "Health & Fitness"
        assert infer_category("#zzz", TIKTOK_CATEGORY_RULES) == "General"
        assert infer_category("#zzz", TIKTOK_CATEGORY_RULES, default="Other") == "Other"


class TestApifyTikTokHashtags:
    def test_extract(self):
        items = [
            {"hashtag_name": "fitness", "video_views": 2_500_000},
            {"hashtag_name": "recipe", "publish_cnt": 45_300},
            {"hashtag": "undefined"},
            {"hashtag_name": "newthing", "rank": 3},
            {"hashtag_name": "x", "industry_info": {"value": "Games"}},
            "not a dict",
        ]

        records = apify_tiktok_hashtags.extract(items)

        assert [r.tag for r in records] == ["#fitness", "#recipe", "#newthing", "#x"]
        fitness, recipe, newthing, x = records
        assert fitness.popularity_label == "2.5M views"
        assert fitness.category == "Sports & Outdoor"
        assert fitness.platform_name == "tiktok"
        assert fitness.region == "United States"
        assert fitness.attributes["rank"] == 1
        assert fitness.attributes["original_data"] == items[0]
        assert fitness.attributes["scraped_from"] == "Apify TikTok Hashtag Trends"
        assert recipe.popularity_label == "45K posts"
        assert recipe.category == "Food & Beverage"
        assert newthing.popularity_label == "#3 trending"
        assert newthing.category == "General"
        assert x.category == "Games"
        assert x.popularity_label == "Trending"

    def test_empty_dataset(self):
        assert apify_tiktok_hashtags.extract([]) == []


class TestApifyInstagramHashtagStats:
    def test_extract_related_and_seed(self):
        items = [
            {
                "hashtag": "fashion",
                "postsCount": 1_500_000,
                "relatedHashtags": [
                    {"hashtag": "ootdstyle", "postsCount": 45_300},
                    {"name": "#streetwear", "score": 0.85},
                    {"hashtag": ""},
                ],
            },
            {
                "hashtag": "viral",
                "relatedHashtags": [{"hashtag": "ootdstyle", "postsCount": 1}],
            },
        ]

        records = apify_instagram_hashtag_stats.extract(items)

        assert [r.tag for r in records] == ["#fashion", "#streetwear", "#ootdstyle"]
        seed, streetwear, ootd = records
        assert seed.popularity_label == "1.5M posts"
        assert seed.attributes["is_seed_hashtag"] is True
        assert streetwear.popularity_label == "85.0% trending"
        assert ootd.popularity_label == "45K posts"
        assert ootd.category == "Fashion"
        assert ootd.attributes["seed_hashtag"] == "fashion"
        assert all(r.platform_name == "instagram" for r in records)

    def test_capped(self):
        related = [{"hashtag": f"tag{i}", "postsCount": 100 + i} for i in range(80)]

        items = [{"hashtag": "seed", "relatedHashtags": related}]

        records = apify_instagram_hashtag_stats.extract(items)

        assert len(records) == apify_instagram_hashtag_stats.MAX_RECORDS
        assert records[0].tag == "#tag79"


class TestTrends24:
    def test_trend_links(self):
        html = """
        <ol class="trend-card__list">
          <li><a href="https://trends24.in/united-states/trend/%23WorldCup/">#WorldCup</a></li>
          <li><a href="/trend/Taylor+Swift">Taylor Swift</a></li>
          <li><a href="/trend/%23WorldCup">again</a></li>
        </ol>
        """

        records = trends24.extract(html)

        assert [r.tag for r in records] == ["#WorldCup", "#TaylorSwift"]
        assert records[0].platform_name == "x"
        assert records[0].category == "Social"
        assert records[0].attributes["extraction_strategy"] == 1

    def test_camel_case_text_fallback(self):
        html = "<section><span>BreakingNews</span><span>lowercase words</span></section>"

        records = trends24.extract(html)

        assert [r.tag for r in records] == ["#BreakingNews"]
        assert records[0].attributes["extraction_strategy"] == 4

    def test_stops_when_enough(self):
        links = "".join(f'<a href="/trend/Topic{i}">t</a>' for i in range(30))
        html = f"<div>{links}<li>#LateEntry</li></div>"

        records = trends24.extract(html)

        assert len(records) == trends24.MAX_RECORDS
        assert "#LateEntry" not in [r.tag for r in records]

    def test_nothing_found(self):
        assert trends24.extract("<html><body></body></html>") == []


class TestTikTokCreativeCenter:
    def test_cards(self):
        html = """
        <div class="trending-hashtag-card" data-category="Food">
          <span class="hashtag-name">cookingtok</span>
          <span class="view-count">12.3M views</span>
        </div>
        <div class="trend-card"><p>#dancechallenge 4.5K views</p></div>
        <div class="hashtag-item"><h3>#quiet</h3></div>
        <div class="trend-card"><p>no tag here</p></div>
        """

        records = tiktok_creative_center.extract(html)

        assert [r.tag for r in records] == ["#cookingtok", "#dancechallenge", "#quiet"]
        cooking, dance, quiet = records
        assert cooking.popularity_label == "12.3M views"
        assert cooking.category == "Food"
        assert dance.popularity_label == "4.5K views"
        assert dance.category == "General"
        assert quiet.popularity_label == "N/A"
        assert all(r.platform_name == "tiktok" for r in records)

    def test_no_cards(self):
        assert tiktok_creative_center.extract("<div class='other'>#tag</div>") == []
