"""
Trend enrichment service.

Annotates raw trend records with LLM-produced analysis and writes the
executive trend report for a finished run.

Failure policy: analyze_trends never raises. Any LLM, parse or schema
failure degrades to the default neutral annotation for the affected
records, so enrichment can never block ingestion.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from trendwatch.enrichment.llm_client import (
    LLMCallError,
    LLMClient,
    extract_json_text,
    get_default_client,
)
from trendwatch.scraping.types import RawRecord

logger = logging.getLogger(__name__)

REPORT_TOP_N = 10
REPORT_FAILED = "Report generation failed"
REPORT_UNAVAILABLE = "Unable to generate trend report at this time"
REPORT_DISABLED = "Trend report skipped: LLM calls are disabled"

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


# =============================================================================
# SCHEMAS
# =============================================================================


class Annotation(BaseModel):
    """
    Enrichment metadata attached to one raw record.

    Accepts both snake_case and the camelCase keys the model is asked to
    produce (predictedGrowth, businessOpportunities, relatedTrends).
    """

    model_config = ConfigDict(populate_by_name=True)

    insights: str = "Analysis pending"
    sentiment: Literal["positive", "neutral", "negative"] = "neutral"
    predicted_growth: Literal["increasing", "stable", "declining"] = Field(
        default="stable", alias="predictedGrowth"
    )
    business_opportunities: list[str] = Field(
        default_factory=list, alias="businessOpportunities"
    )
    related_trends: list[str] = Field(default_factory=list, alias="relatedTrends")
    confidence: float = Field(default=0.3, ge=0.0, le=1.0)


def default_annotation() -> Annotation:
    """The neutral annotation used whenever analysis is unavailable."""
    return Annotation()


# =============================================================================
# PROMPTS
# =============================================================================

ANALYSIS_SYSTEM_PROMPT = (
    "You are an expert trend analyst specializing in digital culture and "
    "business intelligence. Respond with JSON only."
)

ANALYSIS_PROMPT_TEMPLATE = """Analyze these trending topics and provide strategic insights:

{records_json}

For each trend, provide a structured JSON analysis with:
1. "insights": Cultural and market insights (2-3 sentences)
2. "sentiment": Overall sentiment (positive/neutral/negative)
3. "predictedGrowth": Growth trajectory (increasing/stable/declining)
4. "businessOpportunities": Array of 2-3 specific content ideas or programming hooks
5. "relatedTrends": Array of 2-3 related or complementary trends
6. "confidence": Confidence score (0.0-1.0)

Consider short-form memeability, cross-platform signals and recency.
Deprioritize generic commerce, holiday and greeting hashtags.

Return a JSON object keyed by each trend's "key" field, with analysis
objects as values."""

REPORT_PROMPT_TEMPLATE = """Generate an executive summary report for these trending topics:

{records_json}

Create a compelling narrative that includes:
1. Top 3 emerging opportunities
2. Cross-platform trend patterns
3. Strategic recommendations
4. Risk factors and considerations

Format as a professional report with sections and bullet points."""


def _records_payload(records: list[RawRecord]) -> str:
    payload = [
        {
            "key": record.join_key,
            "hashtag": record.tag,
            "platform": record.platform_name,
            "popularity": record.popularity_label,
            "category": record.category,
            "region": record.region,
        }
        for record in records
    ]
    return json.dumps(payload, indent=2)


# =============================================================================
# SERVICE
# =============================================================================


class EnrichmentService:
    """LLM-backed enrichment collaborator for the scrape orchestrator."""

    def __init__(self, llm_client: LLMClient | None = None):
        self._llm_client = llm_client

    @property
    def llm_client(self) -> LLMClient:
        if self._llm_client is None:
            self._llm_client = get_default_client()
        return self._llm_client

    def analyze_trends(
        self,
        records: list[RawRecord],
        run_id: UUID | None = None,
    ) -> dict[str, Annotation]:
        """
        Annotate records, keyed by RawRecord.join_key.

        Returns {} for no records. Never raises.
        """
        if not records:
            return {}

        try:
            response = self.llm_client.call(
                flow="trend_analysis",
                prompt=ANALYSIS_PROMPT_TEMPLATE.format(
                    records_json=_records_payload(records)
                ),
                role="heavy",
                system_prompt=ANALYSIS_SYSTEM_PROMPT,
                run_id=run_id,
            )
        except LLMCallError as e:
            logger.warning("Trend analysis failed, using defaults: %s", e)
            return self._defaults(records)

        if response.status == "disabled":
            return self._defaults(records)

        try:
            return self._parse_analyses(response.raw_text, records)
        except Exception as e:
            logger.warning("Failed to parse trend analysis, using defaults: %s", e)
            return self._defaults(records)

    def generate_trend_report(
        self,
        records: list[RawRecord],
        run_id: UUID | None = None,
    ) -> str:
        """Executive summary over the top records. Failure yields a placeholder."""
        try:
            response = self.llm_client.call(
                flow="trend_report",
                prompt=REPORT_PROMPT_TEMPLATE.format(
                    records_json=_records_payload(records[:REPORT_TOP_N])
                ),
                role="heavy",
                max_output_tokens=1500,
                temperature=0.8,
                run_id=run_id,
            )
        except LLMCallError as e:
            logger.warning("Report generation failed: %s", e)
            return REPORT_UNAVAILABLE

        if response.status == "disabled":
            return REPORT_DISABLED
        return response.raw_text or REPORT_FAILED

    def analyze_content(self, prompt: str) -> str | None:
        """Free-form analysis used by assisted extraction. None on failure."""
        try:
            response = self.llm_client.call(
                flow="fallback_extraction",
                prompt=prompt,
                role="fast",
            )
        except LLMCallError as e:
            logger.warning("Content analysis failed: %s", e)
            return None

        if response.status != "success":
            return None
        return response.raw_text or None

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _defaults(self, records: list[RawRecord]) -> dict[str, Annotation]:
        return {record.join_key: default_annotation() for record in records}

    def _parse_analyses(
        self,
        raw_text: str,
        records: list[RawRecord],
    ) -> dict[str, Annotation]:
        match = _JSON_OBJECT_RE.search(extract_json_text(raw_text))
        if not match:
            raise ValueError("No JSON object in analysis response")
        parsed = json.loads(match.group(0))
        if not isinstance(parsed, dict):
            raise ValueError("Analysis response is not a JSON object")

        analyses: dict[str, Annotation] = {}
        for index, record in enumerate(records):
            key = record.join_key
            entry = parsed.get(key) or parsed.get(record.tag) or parsed.get(str(index))
            if not isinstance(entry, dict):
                analyses[key] = default_annotation()
                continue

            entry = {"confidence": 0.5, **entry}
            try:
                analyses[key] = Annotation.model_validate(entry)
            except ValidationError as e:
                logger.warning("Skipping malformed annotation for %s: %s", key, e)
                analyses[key] = default_annotation()

        return analyses
