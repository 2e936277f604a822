"""
Extraction fallback cascade.

Strategies are tried in a fixed order against one source's raw content:

    1. StructuredStrategy      the source's own selectors / field mapping
    2. HashtagPatternStrategy  '#' tokens in the flattened page text
    3. ProximityTextStrategy   short text near trending markers
    4. UrlPatternStrategy      search/explore/hashtag link shapes
    5. AssistedStrategy        LLM reading of a truncated snippet

A structured hit short-circuits the cascade, so the assisted strategy
never runs (and never costs anything) when the page parsed normally.
Every strategy failure is contained to that strategy.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Protocol
from urllib.parse import unquote

from bs4 import BeautifulSoup

from trendwatch.enrichment.llm_client import extract_json_text
from trendwatch.scraping.config import CascadeConfig
from trendwatch.scraping.errors import ExtractionError
from trendwatch.scraping.types import RawRecord, SourceDescriptor

logger = logging.getLogger(__name__)

HASHTAG_RE = re.compile(r"#[\w\u4e00-\u9fff]+")

TRENDING_MARKERS = (
    "trending",
    "popular",
    "viral",
    "breaking",
    "hot",
    "top",
    "most",
    "best",
    "new",
    "latest",
    "now",
    "today",
)

UI_TEXT_RE = re.compile(
    r"^(Home|Search|Profile|Settings|About|Contact|Help|Login|Sign|Register"
    r"|More|Menu|Close|Open|Back|Next|Previous)$",
    re.IGNORECASE,
)

TEXT_TAGS = ["span", "div", "p", "h1", "h2", "h3", "h4", "h5", "strong", "b", "a"]

URL_PATTERNS = (
    re.compile(r"/search/([^/?&]+)"),
    re.compile(r"/explore/([^/?&]+)"),
    re.compile(r"/trending/([^/?&]+)"),
    re.compile(r"/hashtag/([^/?&]+)"),
    re.compile(r"/topic/([^/?&]+)"),
    re.compile(r"q=([^&?]+)"),
)

ASSISTED_PROMPT_TEMPLATE = """Analyze this webpage HTML from {source_name} and extract trending topics/hashtags.
Look for patterns that suggest trending content, popular searches, or viral topics.

Return 3-5 potential trends in JSON format:
[{{"hashtag": "#TrendName", "confidence": 0.8, "context": "brief context"}}]

HTML snippet:
{snippet}"""


class ContentAnalyzer(Protocol):
    def analyze_content(self, prompt: str) -> str | None: ...


def as_hashtag(text: str) -> str:
    """'Some Topic' -> '#SomeTopic'; existing hashtags are kept."""
    text = text.strip()
    if text.startswith("#"):
        return text
    return "#" + re.sub(r"\s+", "", text)


def _parse(content: Any) -> BeautifulSoup:
    if not isinstance(content, str):
        raise ExtractionError(
            f"Expected HTML text, got {type(content).__name__}"
        )
    return BeautifulSoup(content, "html.parser")


def _fallback_record(
    tag: str,
    source: SourceDescriptor,
    method: str,
    popularity: str = "Trending",
    **extra: Any,
) -> RawRecord:
    return RawRecord(
        tag=tag,
        platform_name=source.platform,
        popularity_label=popularity,
        category="General",
        region="Global",
        attributes={
            "source_url": source.url,
            "scraped_from": source.name,
            "extraction_method": method,
            **extra,
        },
    )


# =============================================================================
# STRATEGIES
# =============================================================================


class ExtractionStrategy:
    """One way of turning raw content into records."""

    name = "base"

    def extract(self, content: Any, source: SourceDescriptor) -> list[RawRecord]:
        raise NotImplementedError


class StructuredStrategy(ExtractionStrategy):
    """Delegates to the source descriptor's own extraction."""

    name = "structured"

    def extract(self, content: Any, source: SourceDescriptor) -> list[RawRecord]:
        return list(source.extract(content))


class HashtagPatternStrategy(ExtractionStrategy):
    name = "hashtag_pattern"

    def __init__(self, top_n: int = 5):
        self.top_n = top_n

    def extract(self, content: Any, source: SourceDescriptor) -> list[RawRecord]:
        soup = _parse(content)
        root = soup.body or soup
        text = root.get_text(" ")

        tags: list[str] = []
        for match in HASHTAG_RE.findall(text):
            if 2 < len(match) < 50 and match not in tags:
                tags.append(match)

        return [
            _fallback_record(tag, source, "fallback_hashtag_pattern")
            for tag in tags[: self.top_n]
        ]


class ProximityTextStrategy(ExtractionStrategy):
    """Short text whose surroundings mention a trending marker."""

    name = "proximity_text"

    def __init__(self, top_n: int = 5):
        self.top_n = top_n

    def extract(self, content: Any, source: SourceDescriptor) -> list[RawRecord]:
        soup = _parse(content)

        found: list[str] = []
        for element in soup.find_all(TEXT_TAGS):
            if len(found) >= self.top_n:
                break
            text = element.get_text().strip()
            if not self._is_candidate(text) or text in found:
                continue
            if self._near_marker(element):
                found.append(text)

        return [
            _fallback_record(as_hashtag(text), source, "fallback_text_pattern")
            for text in found
        ]

    @staticmethod
    def _is_candidate(text: str) -> bool:
        if not 3 < len(text) < 60:
            return False
        if UI_TEXT_RE.match(text):
            return False
        if "@" in text or "http" in text:
            return False
        if not re.search(r"[a-zA-Z]", text):
            return False
        return len(text.split()) <= 5

    @staticmethod
    def _near_marker(element) -> bool:
        parts = []
        if element.parent is not None:
            parts.append(element.parent.get_text())
        parts.extend(sib.get_text() for sib in element.find_previous_siblings())
        parts.extend(sib.get_text() for sib in element.find_next_siblings())
        nearby = " ".join(parts).lower()
        return any(marker in nearby for marker in TRENDING_MARKERS)


class UrlPatternStrategy(ExtractionStrategy):
    """Topics embedded in search, explore, trending or hashtag links."""

    name = "url_pattern"

    def __init__(self, top_n: int = 5):
        self.top_n = top_n

    def extract(self, content: Any, source: SourceDescriptor) -> list[RawRecord]:
        soup = _parse(content)

        found: list[str] = []
        for link in soup.find_all("a", href=True):
            href = link["href"]
            for pattern in URL_PATTERNS:
                for match in pattern.finditer(href):
                    extracted = re.sub(r"[+_\-\s]+", " ", unquote(match.group(1))).strip()
                    if 2 < len(extracted) < 50 and len(found) < self.top_n:
                        tag = as_hashtag(extracted)
                        if tag not in found:
                            found.append(tag)
            if len(found) >= self.top_n:
                break

        return [
            _fallback_record(tag, source, "fallback_url_pattern") for tag in found
        ]


class AssistedStrategy(ExtractionStrategy):
    """Asks the content analyzer to name trends in a truncated snippet."""

    name = "assisted"

    def __init__(
        self,
        analyzer: ContentAnalyzer,
        confidence_threshold: float = 0.5,
        max_records: int = 3,
        snippet_chars: int = 50_000,
    ):
        self.analyzer = analyzer
        self.confidence_threshold = confidence_threshold
        self.max_records = max_records
        self.snippet_chars = snippet_chars

    def extract(self, content: Any, source: SourceDescriptor) -> list[RawRecord]:
        if not isinstance(content, str):
            raise ExtractionError("Assisted extraction needs raw text")

        prompt = ASSISTED_PROMPT_TEMPLATE.format(
            source_name=source.name,
            snippet=content[: self.snippet_chars],
        )
        response = self.analyzer.analyze_content(prompt)
        if not response:
            return []

        try:
            entries = json.loads(extract_json_text(response))
        except json.JSONDecodeError as e:
            raise ExtractionError("Assisted extraction returned invalid JSON", e) from e
        if not isinstance(entries, list):
            raise ExtractionError("Assisted extraction did not return a list")

        records = []
        for entry in entries:
            if len(records) >= self.max_records:
                break
            if not isinstance(entry, dict) or not entry.get("hashtag"):
                continue
            confidence = entry.get("confidence")
            if not isinstance(confidence, (int, float)) or confidence <= self.confidence_threshold:
                continue
            records.append(
                _fallback_record(
                    as_hashtag(str(entry["hashtag"])),
                    source,
                    "fallback_ai_analysis",
                    popularity="AI Detected",
                    ai_confidence=confidence,
                    ai_context=entry.get("context"),
                )
            )
        return records


# =============================================================================
# CASCADE
# =============================================================================


class ExtractionCascade:
    """
    Runs the strategies in order, pooling de-duplicated records.

    Usage:
        cascade = ExtractionCascade(CascadeConfig.from_settings(), analyzer)
        records = cascade.run(html, source)
    """

    def __init__(
        self,
        config: CascadeConfig | None = None,
        analyzer: ContentAnalyzer | None = None,
    ):
        self.config = config or CascadeConfig()
        top_n = self.config.pattern_top_n
        self.structured = StructuredStrategy()
        self.hashtag = HashtagPatternStrategy(top_n)
        self.proximity = ProximityTextStrategy(top_n)
        self.url = UrlPatternStrategy(top_n)
        self.assisted = (
            AssistedStrategy(
                analyzer,
                confidence_threshold=self.config.assisted_confidence,
                max_records=self.config.assisted_max_records,
                snippet_chars=self.config.assisted_snippet_chars,
            )
            if analyzer is not None
            else None
        )

    def run(self, raw: Any, source: SourceDescriptor) -> list[RawRecord]:
        config = self.config

        primary = self._attempt(self.structured, raw, source)
        if len(primary) >= config.min_primary:
            return primary

        logger.warning("No records from %s, applying fallback extraction", source.name)
        pool: list[RawRecord] = []
        seen: set[str] = set()
        self._merge(pool, seen, primary)
        self._merge(pool, seen, self._attempt(self.hashtag, raw, source))

        if len(pool) < config.min_pooled:
            self._merge(pool, seen, self._attempt(self.proximity, raw, source))
        if len(pool) < config.min_pooled:
            self._merge(pool, seen, self._attempt(self.url, raw, source))
        if len(pool) < config.assisted_below and self.assisted is not None:
            self._merge(pool, seen, self._attempt(self.assisted, raw, source))

        logger.info(
            "Fallback extraction yielded %d records for %s", len(pool), source.name
        )
        return pool[: config.max_records]

    def _attempt(
        self,
        strategy: ExtractionStrategy,
        raw: Any,
        source: SourceDescriptor,
    ) -> list[RawRecord]:
        try:
            return strategy.extract(raw, source)
        except Exception as e:
            error = e if isinstance(e, ExtractionError) else ExtractionError(str(e), e)
            logger.warning(
                "Extraction strategy %s failed for %s: %s",
                strategy.name,
                source.name,
                error,
            )
            return []

    @staticmethod
    def _merge(pool: list[RawRecord], seen: set[str], records: list[RawRecord]) -> None:
        for record in records:
            key = record.tag.lower()
            if key in seen:
                continue
            seen.add(key)
            pool.append(record)
