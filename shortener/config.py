"""Configuration management for the link shortener.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram — get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Import**::
    from shortener.config import get_settings

**Step 2 — Get settings**::
    settings = get_settings()
    db_url = settings.DATABASE_URL

**Step 3 — Override in tests**::
    settings = Settings(STORAGE_BACKEND="memory", ENABLE_CACHE=False)

Key Behaviours
===============
- Settings are cached after first access for performance.
- Environment variables override defaults automatically.
- The cache is optional: with ENABLE_CACHE=false every redirect reads the store.
- STORAGE_BACKEND="memory" runs the service without PostgreSQL (demos, tests).

Classes:
    Settings:  Pydantic model for all configuration values.

"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from shortener.enums import StorageBackend


class Settings(BaseSettings):
    APP_NAME: str = "link-shortener"
    APP_ENV: str = "development"
    BASE_URL: str = "http://localhost:8080"
    LOG_LEVEL: str = "INFO"

    # Storage
    STORAGE_BACKEND: StorageBackend = StorageBackend.POSTGRES
    DATABASE_URL: str = "postgresql+asyncpg://shortener:shortener@db:5432/shortener"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    STORE_TIMEOUT_SECONDS: float = 5.0

    # Redis cache (cache-aside, optional)
    ENABLE_CACHE: bool = False
    REDIS_URL: str = "redis://redis:6379/0"
    CACHE_TTL_SECONDS: int = 1800
    CACHE_TIMEOUT_SECONDS: float = 0.5

    # Short code allocation
    SHORT_CODE_LENGTH: int = 8
    CODE_MAX_ATTEMPTS: int = 10

    # Analytics
    RECENT_CLICKS_LIMIT: int = 10

    # Click recording
    CLICK_QUEUE_SIZE: int = 10_000
    CLICK_DRAIN_TIMEOUT_SECONDS: float = 10.0

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
