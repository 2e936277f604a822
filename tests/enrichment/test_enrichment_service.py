"""
Tests for EnrichmentService.

The LLM client is a mock returning canned LLMResponse objects, so these
tests pin the parsing and degradation rules rather than prompt wording.
"""

import json
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from trendwatch.enrichment.llm_client import LLMCallError, LLMClient, LLMConfig, LLMResponse
from trendwatch.enrichment.service import (
    REPORT_DISABLED,
    REPORT_FAILED,
    REPORT_UNAVAILABLE,
    Annotation,
    EnrichmentService,
    default_annotation,
)
from trendwatch.scraping.types import RawRecord


def _response(raw_text, status="success"):
    return LLMResponse(
        raw_text=raw_text,
        model="gpt-4o",
        usage_tokens_in=10,
        usage_tokens_out=10,
        latency_ms=5,
        role="heavy",
        status=status,
    )


@pytest.fixture
def records():
    return [
        RawRecord(tag="#WorldCup", platform_name="x", category="Social"),
        RawRecord(tag="#cookingtok", platform_name="tiktok", category="Food & Beverage"),
    ]


@pytest.fixture
def llm():
    return MagicMock(spec=LLMClient)


@pytest.fixture
def service(llm):
    return EnrichmentService(llm_client=llm)


class TestAnnotation:
    def test_defaults(self):
        annotation = default_annotation()

        assert annotation.insights == "Analysis pending"
        assert annotation.sentiment == "neutral"
        assert annotation.predicted_growth == "stable"
        assert annotation.business_opportunities == []
        assert annotation.confidence == 0.3

    def test_camel_case_keys(self):
        annotation = Annotation.model_validate(
            {
                "predictedGrowth": "increasing",
                "businessOpportunities": ["Recap reels"],
                "relatedTrends": ["#Football"],
            }
        )

        assert annotation.predicted_growth == "increasing"
        assert annotation.business_opportunities == ["Recap reels"]
        assert annotation.related_trends == ["#Football"]

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            Annotation(confidence=1.5)


class TestAnalyzeTrends:
    def test_empty_input(self, service, llm):
        assert service.analyze_trends([]) == {}
        llm.call.assert_not_called()

    def test_keyed_by_join_key(self, service, llm, records):
        payload = {
            "#WorldCup_x": {
                "insights": "Global football peak",
                "sentiment": "positive",
                "predictedGrowth": "increasing",
                "confidence": 0.9,
            },
            "#cookingtok_tiktok": {"insights": "Evergreen", "sentiment": "neutral"},
        }
        llm.call.return_value = _response(json.dumps(payload))

        analyses = service.analyze_trends(records)

        assert set(analyses) == {"#WorldCup_x", "#cookingtok_tiktok"}
        assert analyses["#WorldCup_x"].predicted_growth == "increasing"
        assert analyses["#WorldCup_x"].confidence == 0.9
        # Entries without a confidence get the parsed-entry default
        assert analyses["#cookingtok_tiktok"].confidence == 0.5
        kwargs = llm.call.call_args.kwargs
        assert kwargs["flow"] == "trend_analysis"
        assert kwargs["role"] == "heavy"
        assert "#WorldCup_x" in kwargs["prompt"]

    def test_fallback_lookup_by_tag_and_index(self, service, llm, records):
        payload = {
            "#WorldCup": {"insights": "by tag"},
            "1": {"insights": "by index"},
        }
        llm.call.return_value = _response(f"Sure! ```json\n{json.dumps(payload)}\n```")

        analyses = service.analyze_trends(records)

        assert analyses["#WorldCup_x"].insights == "by tag"
        assert analyses["#cookingtok_tiktok"].insights == "by index"

    def test_missing_and_malformed_entries_default(self, service, llm, records):
        payload = {"#WorldCup_x": {"sentiment": "ecstatic"}}
        llm.call.return_value = _response(json.dumps(payload))

        analyses = service.analyze_trends(records)

        assert analyses["#WorldCup_x"] == default_annotation()
        assert analyses["#cookingtok_tiktok"] == default_annotation()

    def test_unparseable_response(self, service, llm, records):
        llm.call.return_value = _response("I could not analyze these.")

        analyses = service.analyze_trends(records)

        assert analyses == {r.join_key: default_annotation() for r in records}

    def test_llm_error(self, service, llm, records):
        llm.call.side_effect = LLMCallError("timeout")

        analyses = service.analyze_trends(records)

        assert all(a == default_annotation() for a in analyses.values())
        assert len(analyses) == 2

    def test_disabled_client(self, records):
        service = EnrichmentService(llm_client=LLMClient(config=LLMConfig(llm_disabled=True)))

        analyses = service.analyze_trends(records)

        assert analyses == {r.join_key: default_annotation() for r in records}


class TestGenerateTrendReport:
    def test_report_text(self, service, llm, records):
        llm.call.return_value = _response("# Executive Summary\n- Football is up")

        report = service.generate_trend_report(records)

        assert report.startswith("# Executive Summary")
        kwargs = llm.call.call_args.kwargs
        assert kwargs["flow"] == "trend_report"
        assert kwargs["max_output_tokens"] == 1500
        assert kwargs["temperature"] == 0.8

    def test_top_ten_only(self, service, llm):
        many = [RawRecord(tag=f"#t{i}", platform_name="x") for i in range(15)]
        llm.call.return_value = _response("report")

        service.generate_trend_report(many)

        prompt = llm.call.call_args.kwargs["prompt"]
        assert "#t9_x" in prompt
        assert "#t10_x" not in prompt

    def test_empty_response(self, service, llm, records):
        llm.call.return_value = _response("")
        assert service.generate_trend_report(records) == REPORT_FAILED

    def test_llm_error(self, service, llm, records):
        llm.call.side_effect = LLMCallError("down")
        assert service.generate_trend_report(records) == REPORT_UNAVAILABLE

    def test_disabled_returns_placeholder(self, service, llm, records):
        llm.call.return_value = _response(
            "[LLM_DISABLED STUB] prompt=Write a report...", status="disabled"
        )

        report = service.generate_trend_report(records)

        assert report == REPORT_DISABLED
        assert "STUB" not in report


class TestAnalyzeContent:
    def test_returns_text(self, service, llm):
        llm.call.return_value = _response('[{"hashtag": "#a", "confidence": 0.9}]')

        assert service.analyze_content("prompt").startswith("[")
        kwargs = llm.call.call_args.kwargs
        assert kwargs["flow"] == "fallback_extraction"
        assert kwargs["role"] == "fast"

    def test_disabled_returns_none(self, service, llm):
        llm.call.return_value = _response("[LLM_DISABLED STUB]", status="disabled")
        assert service.analyze_content("prompt") is None

    def test_error_returns_none(self, service, llm):
        llm.call.side_effect = LLMCallError("down")
        assert service.analyze_content("prompt") is None


def test_lazy_default_client(monkeypatch):
    monkeypatch.setenv("LLM_DISABLED", "true")
    service = EnrichmentService()

    assert service.llm_client.config.llm_disabled is True
    assert service.llm_client is service.llm_client
