"""
Persisted trend observations.

One row per (record, annotation) pair written by a scrape run. Rows are
append-only: a tag seen again in a later run is a new observation.
"""

import uuid

from django.db import models
from django.utils import timezone

from trendwatch.core.enums import Platform, PredictedGrowth, Sentiment
from trendwatch.core.models import TimestampedModel


class TrendQuerySet(models.QuerySet):
    def recent(self):
        return self.order_by("-scraped_at")

    def for_platform(self, platform: str):
        return self.filter(platform__iexact=platform)


class Trend(TimestampedModel):
    """
    A trending tag captured from one source, with its enrichment.

    `source` is the display name of the source that produced it;
    `metadata` carries the record's source-specific attributes.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    source = models.CharField(max_length=255)
    hashtag = models.CharField(max_length=255)
    popularity = models.CharField(max_length=100, blank=True, null=True)
    category = models.CharField(max_length=100, blank=True, null=True)
    platform = models.CharField(max_length=50, choices=Platform.choices)
    region = models.CharField(max_length=100, blank=True, null=True)

    ai_insights = models.TextField(blank=True)
    sentiment = models.CharField(
        max_length=20,
        choices=Sentiment.choices,
        default=Sentiment.NEUTRAL,
    )
    predicted_growth = models.CharField(
        max_length=20,
        choices=PredictedGrowth.choices,
        default=PredictedGrowth.STABLE,
    )
    business_opportunities = models.JSONField(default=list, blank=True)
    related_trends = models.JSONField(default=list, blank=True)
    confidence = models.FloatField(default=0.0)

    metadata = models.JSONField(default=dict, blank=True)
    scraped_at = models.DateTimeField(default=timezone.now)

    objects = TrendQuerySet.as_manager()

    class Meta:
        db_table = "trends"
        verbose_name = "Trend"
        verbose_name_plural = "Trends"
        indexes = [
            models.Index(fields=["platform", "scraped_at"], name="trends_platfor_4c1f0e_idx"),
            models.Index(fields=["hashtag"], name="trends_hashtag_8a2d3b_idx"),
            models.Index(fields=["scraped_at"], name="trends_scraped_5e7b91_idx"),
        ]

    def __str__(self):
        return f"{self.hashtag} ({self.platform})"
