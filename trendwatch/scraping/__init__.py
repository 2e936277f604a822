"""Trend ingestion: sources, access paths, extraction cascade, orchestration."""
