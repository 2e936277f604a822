"""
Trendwatch domain enums.

All enums are Django TextChoices, stored as lowercase strings.
"""

from django.db import models


class Platform(models.TextChoices):
    """Platforms trends are collected for."""
    TIKTOK = "tiktok", "TikTok"
    INSTAGRAM = "instagram", "Instagram"
    X = "x", "X (Twitter)"


class Sentiment(models.TextChoices):
    """Overall sentiment of a trend."""
    POSITIVE = "positive", "Positive"
    NEUTRAL = "neutral", "Neutral"
    NEGATIVE = "negative", "Negative"


class PredictedGrowth(models.TextChoices):
    """Expected trajectory of a trend."""
    INCREASING = "increasing", "Increasing"
    STABLE = "stable", "Stable"
    DECLINING = "declining", "Declining"
