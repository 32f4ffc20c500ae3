"""Configuration management."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.optimizer import LloydOptions


class Settings(BaseSettings):
    """
    Relaxation settings pulled from ``LLOYD_*`` environment variables.

    Limits follow the command line convention where 0 means "no limit";
    ``to_options`` translates that into the engine's ``None``.
    """

    model_config = SettingsConfigDict(env_prefix="LLOYD_", env_file=".env", extra="ignore")

    # Stopping criteria
    iterations: int = Field(default=0, ge=0, description="Maximum number of relaxation passes (0 = unlimited)")
    time_limit: float = Field(default=0.0, ge=0.0, description="Wall-clock limit in seconds (0 = unlimited)")
    convergence_ratio: float = Field(
        default=0.0, ge=0.0, le=1.0,
        description="Stop once the largest displacement ratio of a pass drops below this (0 = never)"
    )
    freeze_bound: float = Field(
        default=0.0, ge=0.0, le=1.0,
        description="Skip vertices whose displacement ratio is below this (0 = never skip)"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "console"] = Field(default="console", description="Logging format (json or console)")

    def to_options(self) -> LloydOptions:
        """Engine options with 0 limits mapped to unlimited."""
        return LloydOptions(
            iterations=self.iterations or None,
            time_limit=self.time_limit or None,
            convergence_ratio=self.convergence_ratio,
            freeze_bound=self.freeze_bound,
        )


settings = Settings()
