from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime configuration, read from the environment or a local .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    temperature: float = 0.0
    embedding_model: str = "text-embedding-3-large"

    # Splitter and retrieval
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    k: int = Field(default=4, gt=0, description="Number of chunks passed to the answer prompt")

    wiki_language: str = "en"
    request_timeout: float = Field(default=60.0, gt=0, description="Seconds allowed for any external call")
    embedding_cache_size: int = Field(default=16, gt=0)

    log_level: str = "WARNING"


settings = Settings()
