"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    google_api_key: str
    database_url: str
    worker_port: int = 9000
    max_pages: int = 3
    search_page_delay: float = 1.0
    audit_timeout_seconds: float = 15.0
    generation_api_key: str = ""
    generation_base_url: str = "https://api.deepseek.com"
    generation_model: str = "deepseek-chat"
    generation_delay_seconds: float = 3.0
    generation_max_attempts: int = 3
    generation_backoff_seconds: float = 10.0
    generation_deadline_seconds: float = 300.0
    cron_secret: str = ""
    daily_pick_limit: int = 15
    team_members: Tuple[str, ...] = ()
    default_phone_region: Optional[str] = "US"


def _split_csv(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    google_api_key = os.getenv("GOOGLE_PLACES_API_KEY", "")
    database_url = os.getenv("DATABASE_URL", "")
    worker_port = int(os.getenv("WORKER_PORT", "9000"))
    max_pages = int(os.getenv("WORKER_MAX_PAGES", "3"))
    search_page_delay = float(os.getenv("SEARCH_PAGE_DELAY", "1.0"))
    audit_timeout_seconds = float(os.getenv("AUDIT_TIMEOUT_SECONDS", "15"))
    generation_api_key = os.getenv("GENERATION_API_KEY", "")
    generation_base_url = os.getenv("GENERATION_BASE_URL", "https://api.deepseek.com")
    generation_model = os.getenv("GENERATION_MODEL", "deepseek-chat")
    generation_delay_seconds = float(os.getenv("GENERATION_DELAY_SECONDS", "3"))
    generation_max_attempts = int(os.getenv("GENERATION_MAX_ATTEMPTS", "3"))
    generation_backoff_seconds = float(os.getenv("GENERATION_BACKOFF_SECONDS", "10"))
    generation_deadline_seconds = float(os.getenv("GENERATION_DEADLINE_SECONDS", "300"))
    cron_secret = os.getenv("CRON_SECRET", "")
    daily_pick_limit = int(os.getenv("DAILY_PICK_LIMIT", "15"))
    team_members = _split_csv(os.getenv("TEAM_MEMBERS"))
    default_phone_region_raw = os.getenv("DEFAULT_PHONE_REGION", "US")
    default_phone_region = default_phone_region_raw.strip().upper() if default_phone_region_raw else None

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if not google_api_key:
        logger.warning("GOOGLE_PLACES_API_KEY is not configured; Places searches will fail.")
    if not generation_api_key:
        logger.warning("GENERATION_API_KEY is not configured; email and pitch generation will fail.")
    if not team_members:
        logger.warning("TEAM_MEMBERS is empty; saved leads will be left unclaimed.")

    return Settings(
        google_api_key=google_api_key,
        database_url=database_url,
        worker_port=worker_port,
        max_pages=max_pages,
        search_page_delay=search_page_delay,
        audit_timeout_seconds=audit_timeout_seconds,
        generation_api_key=generation_api_key,
        generation_base_url=generation_base_url,
        generation_model=generation_model,
        generation_delay_seconds=generation_delay_seconds,
        generation_max_attempts=generation_max_attempts,
        generation_backoff_seconds=generation_backoff_seconds,
        generation_deadline_seconds=generation_deadline_seconds,
        cron_secret=cron_secret,
        daily_pick_limit=daily_pick_limit,
        team_members=team_members,
        default_phone_region=default_phone_region,
    )
