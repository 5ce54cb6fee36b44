"""Settings for the LLM evaluator gateway's backend."""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Connection and sampling settings for the scoring model.

    Read from ``PARETOPROMPT_*`` environment variables or a ``.env`` file.
    Sampling defaults to temperature 0 so repeated evaluations of the same
    template score the same.
    """

    api_key: str = Field(
        default="",
        validation_alias=AliasChoices("PARETOPROMPT_API_KEY", "OPENAI_API_KEY", "api_key"),
    )
    base_url: Optional[str] = None
    model: str = "default"
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0, description="Completion cap per scored case")
    request_timeout: float = Field(default=60.0, gt=0, description="Seconds per HTTP request")
    max_retries: int = Field(default=5, ge=1, description="Attempts per request on transient errors")

    model_config = SettingsConfigDict(
        env_prefix="PARETOPROMPT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


def get_settings() -> Settings:
    """Load settings from environment."""
    return Settings()
