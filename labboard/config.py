"""Application settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from the environment (prefix ``LABBOARD_``)."""

    model_config = SettingsConfigDict(env_prefix="LABBOARD_", env_file=".env", extra="ignore")

    app_name: str = "labboard"
    log_level: str = "INFO"

    # Upload constraints enforced by the host, not the engine
    max_upload_bytes: int = 10 * 1024 * 1024
    allowed_upload_extensions: list[str] = [".csv"]
    max_import_rows: int = 50_000

    # Pending imports waiting for user resolutions
    import_session_ttl_minutes: int = 30


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
