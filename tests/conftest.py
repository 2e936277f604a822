"""
Pytest configuration for Trendwatch tests.
"""

import os

import django
import pytest


def pytest_configure():
    """Configure Django settings before tests run."""
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "trendwatch.settings_test")
    os.environ.setdefault("LLM_DISABLED", "true")
    django.setup()


@pytest.fixture(autouse=True)
def _reset_llm_client():
    """Each test gets a fresh default LLM client."""
    from trendwatch.enrichment.llm_client import reset_default_client

    reset_default_client()
    yield
    reset_default_client()
