import os
from typing import List, Optional

from socialproof.core.errors import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./socialproof.db"

# Apify actor defaults, one per scraped platform
DEFAULT_INSTAGRAM_ACTOR_ID = "apify/instagram-profile-scraper"
DEFAULT_TIKTOK_ACTOR_ID = "clockworks/tiktok-scraper"
DEFAULT_YOUTUBE_ACTOR_ID = "streamers/youtube-channel-scraper"
DEFAULT_TWITTER_ACTOR_ID = "apidojo/twitter-user-scraper"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


class Settings:
    """
    Process-wide configuration read from the environment.

    Call ``load_dotenv()`` before constructing this so a local ``.env`` file
    is honoured. ``validate()`` must run at process start; it raises
    ``ConfigurationError`` naming every missing required variable.
    """

    def __init__(self):
        database_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
        # Normalize postgres:// -> postgresql:// for SQLAlchemy
        if database_url.startswith("postgres://"):
            database_url = "postgresql://" + database_url[len("postgres://"):]
        self.database_url = database_url

        self.encryption_key = os.getenv("ENCRYPTION_KEY", "")
        self.apify_api_token = os.getenv("APIFY_API_TOKEN", "")

        self.instagram_actor_id = os.getenv("APIFY_INSTAGRAM_ACTOR_ID", DEFAULT_INSTAGRAM_ACTOR_ID)
        self.tiktok_actor_id = os.getenv("APIFY_TIKTOK_ACTOR_ID", DEFAULT_TIKTOK_ACTOR_ID)
        self.youtube_actor_id = os.getenv("APIFY_YOUTUBE_ACTOR_ID", DEFAULT_YOUTUBE_ACTOR_ID)
        self.twitter_actor_id = os.getenv("APIFY_TWITTER_ACTOR_ID", DEFAULT_TWITTER_ACTOR_ID)

        self.tiktok_client_key = os.getenv("TIKTOK_CLIENT_KEY", "")
        self.tiktok_client_secret = os.getenv("TIKTOK_CLIENT_SECRET", "")
        self.tiktok_redirect_uri = os.getenv("TIKTOK_REDIRECT_URI", "")

        self.cache_ttl_days = _int_env("CACHE_TTL_DAYS", 7)
        self.sync_delay_ms = _int_env("SYNC_DELAY_MS", 2000)
        self.token_refresh_horizon_days = _int_env("TOKEN_REFRESH_HORIZON_DAYS", 7)
        self.startup_warmup_seconds = _int_env("STARTUP_WARMUP_SECONDS", 60)
        self.http_timeout_seconds = _int_env("HTTP_TIMEOUT_SECONDS", 30)
        self.apify_run_timeout_seconds = _int_env("APIFY_RUN_TIMEOUT_SECONDS", 120)

        self.redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def tiktok_oauth_enabled(self) -> bool:
        return bool(self.tiktok_client_key or self.tiktok_client_secret or self.tiktok_redirect_uri)

    def missing_required(self) -> List[str]:
        missing = []
        if not self.encryption_key:
            missing.append("ENCRYPTION_KEY")
        if not self.apify_api_token:
            missing.append("APIFY_API_TOKEN")
        # OAuth is optional, but a half-configured client is not
        if self.tiktok_oauth_enabled:
            for name, value in (
                ("TIKTOK_CLIENT_KEY", self.tiktok_client_key),
                ("TIKTOK_CLIENT_SECRET", self.tiktok_client_secret),
                ("TIKTOK_REDIRECT_URI", self.tiktok_redirect_uri),
            ):
                if not value:
                    missing.append(name)
        return missing

    def validate(self) -> "Settings":
        missing = self.missing_required()
        if missing:
            raise ConfigurationError(
                "Missing required configuration: " + ", ".join(missing)
            )
        if self.cache_ttl_days <= 0:
            raise ConfigurationError("CACHE_TTL_DAYS must be positive")
        if self.sync_delay_ms < 0:
            raise ConfigurationError("SYNC_DELAY_MS must not be negative")
        if self.token_refresh_horizon_days < 0:
            raise ConfigurationError("TOKEN_REFRESH_HORIZON_DAYS must not be negative")
        return self


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the cached process settings, reading the environment once."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
