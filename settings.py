"""
Configuration settings for the LuxeTrack backend
"""
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Application
    APP_NAME: str = "LuxeTrack OMS API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # Server
    API_HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: List[str] = ["*"]

    # Persistence
    STORE_BACKEND: str = "file"  # file | mongo
    STORE_FILE: str = "data/luxetrack_store.json"
    DATABASE_URL: Optional[str] = None
    DATABASE_NAME: Optional[str] = None
    STORE_COLLECTION: str = "kv_store"
    ORDERS_KEY: str = "luxetrack_orders"
    RECOVER_CORRUPT_STATE: bool = False

    # AI provider (OpenAI-compatible endpoint)
    API_KEY: Optional[str] = None
    AI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    AI_MODEL: str = "gemini-3-pro-preview"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
