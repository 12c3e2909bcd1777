from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ROOT = Path(__file__).resolve().parents[3]
ENV_PATH = BACKEND_ROOT / ".env"

# Load environment variables as early as possible so Settings picks them up.
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        env_prefix="MEALPREP_",
        extra="ignore",
    )

    app_name: str = "MealPrep API"
    app_version: str = "0.1.0"
    docs_url: str = "/docs"
    environment: Literal["development", "test", "production"] = "development"

    database_url: str = f"sqlite:///{(BACKEND_ROOT / 'mealprep.db').as_posix()}"
    database_echo: bool = False
    # SQLite busy timeout / PostgreSQL statement_timeout, in seconds.
    database_timeout_seconds: float = 5.0

    log_level: str = "INFO"

    # bcrypt work factor; tests lower it to keep hashing fast.
    password_hash_rounds: int = 12

    cache_enabled: bool = True
    cache_ttl_seconds: int = 3600
    analytics_cache_ttl_seconds: int = 86400

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
