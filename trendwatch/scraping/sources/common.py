"""
Helpers shared by source extractors: tag normalization, popularity labels
and keyword-based category inference.
"""

from __future__ import annotations

import re
from typing import Any

CategoryRules = tuple[tuple[str, tuple[str, ...]], ...]

TIKTOK_CATEGORY_RULES: CategoryRules = (
    ("Sports & Outdoor", ("sport", "game", "fitness", "soccer", "basketball")),
    ("Food & Beverage", ("food", "recipe", "cooking", "chef", "meal")),
    ("Beauty & Personal Care", ("beauty", "makeup", "skincare", "cosmetic")),
    ("Fashion", ("fashion", "style", "outfit", "clothing")),
    ("Technology", ("tech", "ai", "crypto", "software")),
    ("Entertainment", ("music", "dance", "song", "entertainment")),
    ("Education", ("education", "learning", "study")),
    ("Travel", ("travel", "vacation", "adventure")),
)

INSTAGRAM_CATEGORY_RULES: CategoryRules = (
    ("Fashion", ("fashion", "style", "outfit", "ootd")),
    ("Beauty & Personal Care", ("beauty", "makeup", "skincare")),
    ("Health & Fitness", ("fitness", "workout", "gym", "health")),
    ("Food & Beverage", ("food", "recipe", "cooking", "foodie")),
    ("Travel", ("travel", "vacation", "wanderlust")),
    ("Arts & Crafts", ("art", "artist", "creative", "design")),
    ("Music", ("music", "song", "band")),
    ("Technology", ("tech", "ai", "digital")),
    ("Business", ("business", "entrepreneur", "startup")),
    ("Lifestyle", ("lifestyle", "life", "daily")),
)


def normalize_tag(value: Any) -> str:
    """'foo' / '#foo' -> '#foo'. Empty or non-string input gives ''."""
    if not isinstance(value, str):
        return ""
    value = value.strip()
    if not value:
        return ""
    return value if value.startswith("#") else f"#{value}"


def to_int(value: Any) -> int | None:
    """Lenient integer parse ('1234', 1234.0, '1,234'); None if unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    match = re.match(r"\s*(-?[\d,]+)", str(value))
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


def format_count(count: int, unit: str) -> str:
    """
    Compact popularity label.

    >>> format_count(1_234_567, "views")
    '1.2M views'
    >>> format_count(45_300, "posts")
    '45K posts'
    """
    if count > 1_000_000:
        return f"{count / 1_000_000:.1f}M {unit}"
    if count > 1_000:
        return f"{round(count / 1_000)}K {unit}"
    return f"{count} {unit}"


def popularity_score(label: str | None) -> float:
    """Sort key for popularity labels produced by format_count."""
    if not label:
        return 0.0
    try:
        if "M posts" in label:
            return float(label.split("M")[0]) * 1_000_000
        if "K posts" in label:
            return float(label.split("K")[0]) * 1_000
        if "posts" in label:
            return float(label.split(" posts")[0])
        if "% trending" in label:
            return float(label.split("%")[0]) * 1_000
    except ValueError:
        return 0.0
    return 0.0


def infer_category(tag: str, rules: CategoryRules, default: str = "General") -> str:
    """First category whose keywords appear in the tag."""
    lowered = tag.lower()
    for category, keywords in rules:
        if any(keyword in lowered for keyword in keywords):
            return category
    return default
