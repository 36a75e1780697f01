from decimal import Decimal
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.retry import RetryConfig


class DatabaseSettings(BaseSettings):
    path: str = "./db/dispatch.db"
    busy_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        le=60.0,
        description="How long a writer waits on a locked SQLite database before failing",
    )
    pool_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        le=60.0,
        description="How long a caller waits for a pooled connection before failing",
    )
    echo: bool = False

    model_config = SettingsConfigDict(env_prefix="DB_")


class MatchingSettings(BaseSettings):
    default_radius_km: float = Field(default=15.0, gt=0.0, le=200.0)
    max_radius_km: float = Field(
        default=50.0,
        gt=0.0,
        le=200.0,
        description="Upper bound applied to any caller-supplied search radius",
    )
    candidate_limit: int = Field(default=20, ge=1, le=200)
    use_spatial_index: bool = Field(
        default=True,
        description="Prefilter eligible riders by H3 cells covering the search disk",
    )
    h3_resolution: int = Field(default=7, ge=4, le=10)

    model_config = SettingsConfigDict(env_prefix="MATCHING_")

    @model_validator(mode="after")
    def validate_radius_bounds(self) -> "MatchingSettings":
        if self.default_radius_km > self.max_radius_km:
            raise ValueError("MATCHING_DEFAULT_RADIUS_KM cannot exceed MATCHING_MAX_RADIUS_KM")
        return self


class DispatchSettings(BaseSettings):
    tracking_prefix: str = Field(default="TRK", min_length=1, max_length=8)
    tracking_max_attempts: int = Field(default=5, ge=1, le=20)
    default_commission_rate: Decimal = Field(
        default=Decimal("15.00"),
        ge=0,
        le=100,
        description="Platform commission (percent) used when rider earnings are not supplied",
    )

    model_config = SettingsConfigDict(env_prefix="DISPATCH_")

    @field_validator("tracking_prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        if not v.isalnum():
            raise ValueError("Tracking prefix must be alphanumeric")
        return v.upper()


class RetrySettings(BaseSettings):
    max_attempts: int = Field(default=3, ge=1, le=10)
    base_delay: float = Field(default=0.2, ge=0.0, le=5.0)
    multiplier: float = Field(default=2.0, ge=1.0, le=5.0)
    max_delay: float = Field(default=5.0, ge=0.0, le=60.0)

    model_config = SettingsConfigDict(env_prefix="RETRY_")

    def to_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            multiplier=self.multiplier,
            max_delay=self.max_delay,
        )


class BookingSettings(BaseSettings):
    cancel_lead_hours: float = Field(
        default=2.0,
        ge=0.0,
        le=168.0,
        description="Bookings cannot be cancelled once the scheduled time is this close",
    )
    edit_lead_hours: float = Field(
        default=4.0,
        ge=0.0,
        le=168.0,
        description="Bookings cannot be edited once the scheduled time is this close",
    )

    model_config = SettingsConfigDict(env_prefix="BOOKING_")


class LoggingSettings(BaseSettings):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["text", "json"] = "text"
    environment: str = "development"

    model_config = SettingsConfigDict(env_prefix="LOG_")


class APISettings(BaseSettings):
    key: str = ""
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    model_config = SettingsConfigDict(env_prefix="API_")

    @model_validator(mode="after")
    def validate_credentials_provided(self) -> "APISettings":
        if not self.key:
            raise ValueError("Required credential not provided: API_KEY")
        return self


class CORSSettings(BaseSettings):
    origins: str = "http://localhost:5173,http://localhost:3000"

    model_config = SettingsConfigDict(env_prefix="CORS_")


class Settings(BaseSettings):
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    booking: BookingSettings = Field(default_factory=BookingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    api: APISettings = Field(default_factory=APISettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
    )


def get_settings() -> Settings:
    """Load and validate settings from environment variables."""
    return Settings()
