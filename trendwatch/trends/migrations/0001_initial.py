import uuid

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Trend",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("source", models.CharField(max_length=255)),
                ("hashtag", models.CharField(max_length=255)),
                ("popularity", models.CharField(blank=True, max_length=100, null=True)),
                ("category", models.CharField(blank=True, max_length=100, null=True)),
                (
                    "platform",
                    models.CharField(
                        choices=[
                            ("tiktok", "TikTok"),
                            ("instagram", "Instagram"),
                            ("x", "X (Twitter)"),
                        ],
                        max_length=50,
                    ),
                ),
                ("region", models.CharField(blank=True, max_length=100, null=True)),
                ("ai_insights", models.TextField(blank=True)),
                (
                    "sentiment",
                    models.CharField(
                        choices=[
                            ("positive", "Positive"),
                            ("neutral", "Neutral"),
                            ("negative", "Negative"),
                        ],
                        default="neutral",
                        max_length=20,
                    ),
                ),
                (
                    "predicted_growth",
                    models.CharField(
                        choices=[
                            ("increasing", "Increasing"),
                            ("stable", "Stable"),
                            ("declining", "Declining"),
                        ],
                        default="stable",
                        max_length=20,
                    ),
                ),
                ("business_opportunities", models.JSONField(blank=True, default=list)),
                ("related_trends", models.JSONField(blank=True, default=list)),
                ("confidence", models.FloatField(default=0.0)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("scraped_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "verbose_name": "Trend",
                "verbose_name_plural": "Trends",
                "db_table": "trends",
                "indexes": [
                    models.Index(
                        fields=["platform", "scraped_at"],
                        name="trends_platfor_4c1f0e_idx",
                    ),
                    models.Index(fields=["hashtag"], name="trends_hashtag_8a2d3b_idx"),
                    models.Index(fields=["scraped_at"], name="trends_scraped_5e7b91_idx"),
                ],
            },
        ),
    ]
