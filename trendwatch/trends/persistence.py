"""
Trend repositories.

DjangoTrendRepository writes one Trend row per enriched record and serves
the read helpers used by reports. InMemoryTrendRepository keeps records in
process for dry runs.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from uuid import UUID

from django.db import DatabaseError

from trendwatch.enrichment.service import Annotation
from trendwatch.scraping.errors import PersistenceError
from trendwatch.scraping.types import RawRecord
from trendwatch.trends.models import Trend

logger = logging.getLogger(__name__)


def _source_name(record: RawRecord) -> str:
    return str(record.attributes.get("scraped_from") or record.platform_name)


class DjangoTrendRepository:
    """Persistence collaborator backed by the Trend model."""

    def create(self, record: RawRecord, annotation: Annotation) -> UUID:
        """
        Insert one trend row.

        Raises:
            PersistenceError: If the row cannot be written
        """
        try:
            trend = Trend.objects.create(
                source=_source_name(record),
                hashtag=record.tag,
                popularity=record.popularity_label,
                category=record.category,
                platform=record.platform_name,
                region=record.region,
                ai_insights=annotation.insights,
                sentiment=annotation.sentiment,
                predicted_growth=annotation.predicted_growth,
                business_opportunities=annotation.business_opportunities,
                related_trends=annotation.related_trends,
                confidence=annotation.confidence,
                metadata=record.attributes,
                scraped_at=record.captured_at,
            )
        except (DatabaseError, TypeError, ValueError) as e:
            raise PersistenceError(f"Could not save {record.tag}: {e}", e) from e

        logger.debug("Saved trend %s (%s) id=%s", record.tag, record.platform_name, trend.id)
        return trend.id

    def recent(self, limit: int = 50) -> list[Trend]:
        return list(Trend.objects.recent()[:limit])

    def by_platform(self, platform: str, limit: int = 50) -> list[Trend]:
        return list(Trend.objects.for_platform(platform).recent()[:limit])


@dataclass
class StoredTrend:
    id: UUID
    record: RawRecord
    annotation: Annotation


class InMemoryTrendRepository:
    """Keeps created trends in a list. Used for --dry-run."""

    def __init__(self):
        self.items: list[StoredTrend] = []

    def create(self, record: RawRecord, annotation: Annotation) -> UUID:
        trend_id = uuid.uuid4()
        self.items.append(StoredTrend(id=trend_id, record=record, annotation=annotation))
        return trend_id
