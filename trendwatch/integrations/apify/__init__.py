"""
Apify integration for hosted trend actors.

Provides:
- ApifyClient: HTTP client for Apify API v2 (submit / await / fetch)
- AsyncJob, JobStatus: run state
"""

from trendwatch.integrations.apify.client import (
    ApifyClient,
    ApifyError,
    ApifySubmissionError,
    AsyncJob,
    JobStatus,
)

__all__ = [
    "ApifyClient",
    "ApifyError",
    "ApifySubmissionError",
    "AsyncJob",
    "JobStatus",
]
