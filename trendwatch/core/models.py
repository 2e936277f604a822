"""
Shared model bases for Trendwatch apps.
"""

from django.db import models


class TimestampedModel(models.Model):
    """Abstract base class with created_at and updated_at timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
