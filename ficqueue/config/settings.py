from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent.parent.parent

class Settings(BaseSettings):
    class Config:
        env_file = BASE_DIR / ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    """
    Configuration settings for the queue worker.
    """

    # Browser settings
    HEADLESS: bool = True
    BROWSER_CHANNEL: Optional[str] = None  # e.g. "chrome" for system Chrome
    IGNORE_HTTPS_ERRORS: bool = True

    # Pool policy
    POOL_MAX_USES: int = 25
    POOL_HEALTH_CHECK_INTERVAL: float = 600.0  # seconds

    # Proxies
    PROXY_PROVIDER: str = "none"  # none, generic
    PROXY_SERVER: Optional[str] = None
    PROXY_USERNAME: Optional[str] = None
    PROXY_PASSWORD: Optional[str] = None

    # Retries
    MAX_RETRIES: int = 3
    RETRY_BASE_DELAY: float = 5.0  # seconds
    RETRY_MAX_DELAY: float = 10.0  # seconds

    # Minimum spacing between requests to the archive
    MIN_REQUEST_INTERVAL: float = 4.0  # seconds

    # Timeouts
    NAVIGATION_TIMEOUT: int = 30000  # ms

    # Storage
    DATABASE_URL: str = f"sqlite+aiosqlite:///{BASE_DIR / 'ficqueue.db'}"

    # Dispatcher
    POLL_INTERVAL: float = 10.0  # seconds
    STUCK_JOB_THRESHOLD: float = 900.0  # seconds untouched before a job is reclaimed
    SERIES_MAX_WORKS: int = 5
    JOBS_PER_TICK: int = 1

    # Keys looked up in the persistent config table on every tick
    MODERATION_CHANNEL_KEY: str = "modmail_channel"
    RESULTS_CHANNEL_KEY: str = "fic_queue_channel"

    # Acceptance policy
    REQUIRED_FANDOM: str = "Supernatural (TV 2005)"
    CANONICAL_PAIRING: str = "Castiel/Dean Winchester"

settings = Settings()
