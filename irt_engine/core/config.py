"""
Engine configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Self


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # Application
    APP_NAME: str = "IRT Engine"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Ability estimation (Newton-Raphson MLE)
    IRT_MAX_ITERATIONS: int = Field(
        default=50,
        ge=1,
        description="Iteration cap for Newton-Raphson ability estimation",
    )
    IRT_CONVERGENCE_THRESHOLD: float = Field(
        default=0.001,
        gt=0.0,
        description="Stop iterating once |delta theta| falls below this value",
    )
    # Reported instead of infinity when the response set carries no information
    IRT_STANDARD_ERROR_SENTINEL: float = Field(default=999.0, gt=0.0)
    # Ability progression is re-estimated after every N attempts
    IRT_PROGRESSION_STEP: int = Field(default=5, ge=1)

    # Item calibration
    IRT_MIN_ATTEMPTS_FOR_CALIBRATION: int = Field(
        default=30,
        ge=1,
        description="Minimum valid responses before an item is calibrated",
    )
    IRT_GUESSING_PARAMETER: float = Field(
        default=0.2,
        ge=0.0,
        description="Fixed guessing parameter (c) assigned during calibration",
    )
    IRT_CALIBRATION_MAX_WORKERS: int = Field(
        default=1,
        ge=1,
        description="Thread pool size for batch calibration (1 = sequential)",
    )

    # Sentry Error Tracking (used by scripts/run_irt_calibration.py)
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking (leave empty to disable)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_guessing_parameter(self) -> Self:
        """Reject guessing parameters that would make every item degenerate."""
        if self.IRT_GUESSING_PARAMETER >= 1.0:
            raise ValueError(
                "IRT_GUESSING_PARAMETER must be in [0, 1), "
                f"got {self.IRT_GUESSING_PARAMETER}"
            )
        return self


settings = Settings()
