"""
Spend guardrails for paid external services.

Every Apify actor run is billed, so the client refuses to talk to Apify
unless APIFY_ENABLED is set. The default is off: a dev box or CI job with
a token lying around still cannot start actors by accident.
"""

from __future__ import annotations

import logging

from django.conf import settings

logger = logging.getLogger(__name__)


class ApifyDisabledError(Exception):
    """An Apify call was attempted with APIFY_ENABLED off."""

    def __init__(self, message: str = "Apify is disabled (APIFY_ENABLED=false)"):
        super().__init__(message)


def is_apify_enabled() -> bool:
    return bool(getattr(settings, "APIFY_ENABLED", False))


def get_apify_token() -> str:
    return getattr(settings, "APIFY_TOKEN", "") or ""


def is_apify_configured() -> bool:
    """Enabled and holding a token. An enabled switch without a token is logged."""
    if not is_apify_enabled():
        return False
    if not get_apify_token():
        logger.warning("APIFY_ENABLED=true but APIFY_TOKEN is empty")
        return False
    return True


def require_apify_enabled() -> None:
    """
    Fail fast before any Apify request.

    Raises:
        ApifyDisabledError: APIFY_ENABLED is off
    """
    if not is_apify_enabled():
        raise ApifyDisabledError(
            "Apify calls are disabled; set APIFY_ENABLED=true to allow actor runs"
        )
