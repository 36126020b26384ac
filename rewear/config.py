from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class ConfigurationError(Exception):
    """Raised when a required external credential or identifier is missing."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = missing or []


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Supabase settings (checked lazily by require())
    SUPABASE_URL: str | None = None
    SUPABASE_ANON_KEY: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    SUPABASE_DB_URL: str | None = None
    SUPABASE_JWKS_URL: str | None = None

    # Object storage
    STORAGE_BUCKET: str = "clothing-items"
    STORAGE_LISTINGS_FOLDER: str = "listings"
    STORAGE_CACHE_CONTROL: str = "3600"

    # Upload policy
    UPLOAD_MAX_SIZE_BYTES: int = 5 * 1024 * 1024
    UPLOAD_CONCURRENCY: int = 5

    # Leave uploaded media in place when the listing insert fails
    CLEANUP_ORPHANED_MEDIA: bool = False

    # Session resolution
    SESSION_SLOW_AFTER_SECONDS: float = 8.0

    # HTTP clients
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def require(self, *names: str) -> None:
        """
        Ensure the named settings are present.

        Raises:
            ConfigurationError: listing every missing setting
        """
        missing = [name for name in names if not getattr(self, name, None)]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}", missing=missing
            )

    # derive sensible defaults if not provided
    def jwks_url(self) -> str:
        if self.SUPABASE_JWKS_URL:
            return self.SUPABASE_JWKS_URL
        self.require("SUPABASE_URL")
        base = self.SUPABASE_URL.rstrip("/")
        return f"{base}/auth/v1/.well-known/jwks.json"

    def auth_url(self) -> str:
        self.require("SUPABASE_URL")
        return f"{self.SUPABASE_URL.rstrip('/')}/auth/v1"

    def storage_url(self) -> str:
        self.require("SUPABASE_URL")
        return f"{self.SUPABASE_URL.rstrip('/')}/storage/v1"

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            # Smaller pool and faster failure for local development
            config.update({"min_size": 1, "max_size": 5, "timeout": 15.0})

        return config


settings = Settings()
