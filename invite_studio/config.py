"""Runtime configuration, read from the environment (and a local ``.env``)."""

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image-preview"


class Settings(BaseSettings):
    """Studio settings. Every field but the API key reads ``INVITE_STUDIO_<NAME>``."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="INVITE_STUDIO_", extra="ignore")

    gemini_api_key: Optional[str] = Field(
        None, validation_alias=AliasChoices("GEMINI_API_KEY", "gemini_api_key")
    )
    image_model: str = DEFAULT_IMAGE_MODEL
    temperature: float = Field(0.4, ge=0.0, le=2.0)

    # Long edge cap applied by every re-encode.
    max_edge: int = Field(1024, gt=0)
    input_quality: float = Field(0.7, ge=0.0, le=1.0)
    output_quality: float = Field(0.9, ge=0.0, le=1.0)
    invitation_quality: float = Field(0.95, ge=0.0, le=1.0)

    max_attachment_bytes: int = Field(5 * 1024 * 1024, gt=0)
    max_concurrency: int = Field(2, ge=1)
    log_level: str = "INFO"


def load_settings() -> Settings:
    return Settings()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache configuration for the current process."""
    return load_settings()
