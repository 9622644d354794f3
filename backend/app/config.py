from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "postgresql://postgres@localhost:5432/ledger"
    cors_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    log_level: str = "INFO"

    db_pool_size: int = 5
    db_max_overflow: int = 10
    # seconds; connections older than this are recycled on checkout
    db_pool_recycle: int = 1800

    # upper bound on independent queries run side by side within one request
    query_workers: int = 3


@lru_cache
def get_settings() -> Settings:
    return Settings()
