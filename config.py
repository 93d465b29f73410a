"""Configuration settings for the lesson content generation pipeline."""

import os
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Base paths
PROJECT_ROOT = Path(__file__).parent
OUTPUT_DIR = PROJECT_ROOT / "generated_lessons"
LOGS_DIR = PROJECT_ROOT / "logs"

# Request stamping (ISO-8601)
TIMESTAMP_PRECISION = "milliseconds"


def get_output_path(title: str, timestamp: datetime | None = None) -> Path:
    """Generate a markdown output path for a rendered lesson.

    Args:
        title: Lesson title, slugified into the file name.
        timestamp: Datetime to use for suffix. If None, uses current time.

    Returns:
        Path like generated_lessons/ordering-food_20260131_143022.md
    """
    if timestamp is None:
        timestamp = datetime.now()
    suffix = timestamp.strftime("%Y%m%d_%H%M%S")
    slug = "-".join(title.lower().split()) or "lesson"
    return OUTPUT_DIR / f"{slug}_{suffix}.md"


def utc_timestamp() -> str:
    """ISO-8601 timestamp used to stamp generation requests."""
    return datetime.now(timezone.utc).isoformat(timespec=TIMESTAMP_PRECISION)

# Backend-as-a-service settings
SUPABASE_URL = os.environ.get("SUPABASE_URL", "http://localhost:54321")
SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")
LESSONS_TABLE = "lessons"

# Generation provider settings
PROVIDER_FUNCTION_URL = os.environ.get(
    "PROVIDER_FUNCTION_URL", f"{SUPABASE_URL}/functions/v1/generate-lesson-content"
)
PROVIDER_STATUS_URL = os.environ.get(
    "PROVIDER_STATUS_URL", "https://api.replicate.com/v1/predictions"
)
PROVIDER_API_TOKEN = os.environ.get("PROVIDER_API_TOKEN", "")
HTTP_TIMEOUT = 30  # seconds

# Polling settings
POLL_INTERVAL_MS = int(os.environ.get("POLL_INTERVAL_MS", "2000"))
MAX_POLL_COUNT = int(os.environ.get("MAX_POLL_COUNT", "60"))

# Heuristic phase delays (UX feedback only, not a provider signal)
ANALYZING_DELAY_S = 1.5
GENERATING_DELAY_S = 3.0

# Lesson defaults
DEFAULT_LANGUAGE = "english"
DEFAULT_ESTIMATED_MINUTES = 15

# Data-access retry settings
STORE_MAX_RETRIES = 3
