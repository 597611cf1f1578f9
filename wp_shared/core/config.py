"""Library configuration via environment variables (pydantic-settings)."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # WordPress REST API
    WORDPRESS_URL: str = ""
    WORDPRESS_USERNAME: str = ""
    WORDPRESS_APP_PASSWORD: str = ""
    REQUEST_TIMEOUT: float = 30.0

    # Response cache
    CACHE_ENABLED: bool = True
    CACHE_TTL: int = 300
    CACHE_CHECK_PERIOD: int = 120  # seconds between expiry sweeps

    # WP-CLI
    ENABLE_WP_CLI: bool = False
    WP_CLI_PATH: str = "wp"
    WORDPRESS_PATH: str = "."
    WP_CLI_TIMEOUT: float = 60.0

    # Remote WP-CLI over SSH
    SSH_HOST: str = ""
    SSH_PORT: str = "22"
    SSH_USER: str = ""
    SSH_KEY_PATH: str = ""

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

@lru_cache
def get_settings():
    return Settings()

settings = get_settings()
