"""Configuration management."""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_prefix="PY_LEM_", env_file=".env", extra="ignore")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: Literal["json", "console"] = Field(
        default="json", description="Logging format (json or console)"
    )

    # Generation
    jitter_seed: int = Field(
        default=0, description="Seed of the tie-breaking jitter added to base elevations"
    )
    max_iteration: Optional[int] = Field(
        default=None, ge=0, description="Default cap on solver passes, unset means run to convergence"
    )


settings = Settings()
