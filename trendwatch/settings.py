"""
Django settings for Trendwatch.

- Loads secrets from environment variables
- Database via DATABASE_URL (postgres, sqlite for local runs)
- Scraping, Apify and extraction-cascade tunables
"""

import os
from pathlib import Path

import dj_database_url
from dotenv import load_dotenv

# Load .env file if present (for local dev)
if os.environ.get("TRENDWATCH_TEST_MODE") != "true":
    load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() in ("true", "1", "yes", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        return default


# =============================================================================
# SECURITY SETTINGS (env-driven)
# =============================================================================

SECRET_KEY = os.environ.get(
    "DJANGO_SECRET_KEY",
    "dev-insecure-key-do-not-use-in-production",
)

DEBUG = _env_bool("DJANGO_DEBUG")

ALLOWED_HOSTS = os.environ.get("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")


# =============================================================================
# APPLICATION DEFINITION
# =============================================================================

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    # Trendwatch apps
    "trendwatch.core",
    "trendwatch.trends",
]


# =============================================================================
# DATABASE (via DATABASE_URL)
# =============================================================================

# Default to sqlite for local runs; deployments point this at postgres
DATABASE_URL = os.environ.get(
    "DATABASE_URL",
    f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
)

DATABASES = {
    "default": dj_database_url.parse(
        DATABASE_URL,
        conn_max_age=600,
        conn_health_checks=True,
    )
}


# =============================================================================
# INTERNATIONALIZATION
# =============================================================================

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True


# =============================================================================
# DEFAULT PRIMARY KEY FIELD TYPE
# =============================================================================

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# =============================================================================
# APIFY (hosted actor runs)
# =============================================================================

# Kill switch: no Apify spend unless explicitly enabled
APIFY_ENABLED = _env_bool("APIFY_ENABLED")
APIFY_TOKEN = os.environ.get("APIFY_TOKEN", "")
APIFY_BASE_URL = os.environ.get("APIFY_BASE_URL", "https://api.apify.com")
APIFY_POLL_INTERVAL_S = _env_float("APIFY_POLL_INTERVAL_S", 20.0)
APIFY_MAX_POLL_ATTEMPTS = _env_int("APIFY_MAX_POLL_ATTEMPTS", 20)


# =============================================================================
# SCRAPING
# =============================================================================

HEADLESS_BROWSER = _env_bool("HEADLESS_BROWSER", "true")
SCRAPE_HTTP_TIMEOUT_S = _env_float("SCRAPE_HTTP_TIMEOUT_S", 30.0)
SCRAPE_PAGE_TIMEOUT_MS = _env_int("SCRAPE_PAGE_TIMEOUT_MS", 60000)
SCRAPE_INTER_SOURCE_DELAY_S = (
    _env_float("SCRAPE_INTER_SOURCE_DELAY_MIN_S", 10.0),
    _env_float("SCRAPE_INTER_SOURCE_DELAY_MAX_S", 30.0),
)


# =============================================================================
# EXTRACTION CASCADE
# =============================================================================

# Structured extraction is accepted as soon as it yields this many records
CASCADE_MIN_PRIMARY = _env_int("CASCADE_MIN_PRIMARY", 1)
# Cheap fallbacks stop once the pooled count reaches this
CASCADE_MIN_POOLED = _env_int("CASCADE_MIN_POOLED", 3)
# LLM-assisted extraction only runs below this pooled count
CASCADE_ASSISTED_BELOW = _env_int("CASCADE_ASSISTED_BELOW", 2)
CASCADE_MAX_RECORDS = _env_int("CASCADE_MAX_RECORDS", 10)
CASCADE_PATTERN_TOP_N = _env_int("CASCADE_PATTERN_TOP_N", 5)
CASCADE_ASSISTED_CONFIDENCE = _env_float("CASCADE_ASSISTED_CONFIDENCE", 0.5)
CASCADE_ASSISTED_MAX_RECORDS = _env_int("CASCADE_ASSISTED_MAX_RECORDS", 3)
CASCADE_ASSISTED_SNIPPET_CHARS = _env_int("CASCADE_ASSISTED_SNIPPET_CHARS", 50000)


# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "trendwatch": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}
