"""
Django app configuration for persisted trends.
"""

from django.apps import AppConfig


class TrendsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "trendwatch.trends"
    verbose_name = "Trendwatch Trends"
