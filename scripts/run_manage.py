#!/usr/bin/env python
"""
Run Django management commands with .env values taking precedence.

A DATABASE_URL exported in the shell (often a stale localhost URL) would
otherwise win over the one in .env.

Usage:
    python scripts/run_manage.py <command> [args...]

Examples:
    python scripts/run_manage.py migrate
    python scripts/run_manage.py scrape_trends --list-sources
    python scripts/run_manage.py scrape_trends --platform tiktok --dry-run
"""

import os
import sys
from pathlib import Path

from dotenv import dotenv_values

PROJECT_ROOT = Path(__file__).resolve().parent.parent
os.chdir(PROJECT_ROOT)
sys.path.insert(0, str(PROJECT_ROOT))


def override_database_url():
    """Force DATABASE_URL from .env over the shell environment."""
    env_path = PROJECT_ROOT / ".env"
    if not env_path.exists():
        return

    env_value = dotenv_values(env_path).get("DATABASE_URL")
    if not env_value:
        return

    current = os.environ.get("DATABASE_URL", "")
    if current and current != env_value:
        print("Overriding shell DATABASE_URL with the value from .env", file=sys.stderr)
        print(f"   Shell had: {current[:50]}...", file=sys.stderr)
    os.environ["DATABASE_URL"] = env_value


def main():
    override_database_url()
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "trendwatch.settings")

    from django.core.management import execute_from_command_line

    execute_from_command_line(["manage.py"] + sys.argv[1:])


if __name__ == "__main__":
    main()
