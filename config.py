from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the HabitAI backend.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,   # env var names are case-sensitive
        extra="ignore",
    )

    # these will read from ENV and DEBUG in env/system
    env: str = Field(default="local", alias="ENV")
    debug: bool = Field(default=False, alias="DEBUG")

    # AI endpoints refuse to run without it, everything else works
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key",
        alias="OPENAI_API_KEY",
    )

    mongo_url: str = Field(default="mongodb://localhost:27017", alias="MONGO_URL")
    mongo_db_name: str = Field(default="habitai", alias="MONGO_DB_NAME")

    pexels_api_key: Optional[str] = Field(
        default=None,
        description="Pexels API key used for challenge images",
        alias="PEXELS_API_KEY",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
