# src/package_api/config.py
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # General
    ENV: str = "dev"
    APP_NAME: str = "Demo API"
    APP_VERSION: str = "2.0"
    DOCS_URL: str = "/api-docs"

    # Comma-separated list of origins; CORS stays disabled when empty
    CORS_ORIGINS: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # Store
    SEED_EXAMPLE_PACKAGES: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
