from decimal import Decimal
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceSettings(BaseSettings):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["text", "json"] = "text"
    environment: str = "development"
    local_timezone: str = Field(
        default="UTC",
        description="IANA zone used for calendar-day boundaries and legacy time correction",
    )

    model_config = SettingsConfigDict(env_prefix="SERVICE_")

    @field_validator("local_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {v}") from exc
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.local_timezone)


class DatabaseSettings(BaseSettings):
    url: str = "sqlite:///./db/scheduled_trips.db"
    echo: bool = False

    model_config = SettingsConfigDict(env_prefix="DB_")


class ActivationSettings(BaseSettings):
    proximity_threshold_m: float = Field(
        default=5000.0,
        gt=0,
        description="Maximum captain distance from the first checkpoint to allow a start",
    )
    early_start_window_minutes: int = Field(
        default=15,
        ge=0,
        le=240,
        description="How long before the scheduled time a trip may be started",
    )
    notification_dedup_hours: int = Field(
        default=24,
        ge=1,
        description="Window in which a previous successful check suppresses a new push",
    )

    model_config = SettingsConfigDict(env_prefix="ACTIVATION_")


class WorkerSettings(BaseSettings):
    enabled: bool = True
    activation_interval_seconds: float = Field(default=30.0, gt=0)
    overdue_interval_seconds: float = Field(default=60.0, gt=0)
    apply_failure_penalty: bool = Field(
        default=False,
        description="Settle FAILED_DOUBLE when the overdue worker fails a trip",
    )

    model_config = SettingsConfigDict(env_prefix="WORKER_")


class FinanceSettings(BaseSettings):
    force_close_discount: Decimal = Field(default=Decimal("100"), ge=0)
    settlement_max_attempts: int = Field(default=3, ge=1, le=10)

    model_config = SettingsConfigDict(env_prefix="FINANCE_")


class PushSettings(BaseSettings):
    endpoint: str = "https://exp.host/--/api/v2/push/send"
    timeout_seconds: float = Field(default=10.0, gt=0, le=60)
    token_prefix: str = "ExponentPushToken["

    model_config = SettingsConfigDict(env_prefix="PUSH_")

    @field_validator("endpoint")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Push endpoint must start with http:// or https://")
        return v


class APISettings(BaseSettings):
    key: str = ""

    model_config = SettingsConfigDict(env_prefix="API_")

    @model_validator(mode="after")
    def validate_credentials_provided(self) -> "APISettings":
        if not self.key:
            raise ValueError("Required credential not provided: API_KEY")
        return self


class CORSSettings(BaseSettings):
    origins: str = "http://localhost:3000"

    model_config = SettingsConfigDict(env_prefix="CORS_")


class Settings(BaseSettings):
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    activation: ActivationSettings = Field(default_factory=ActivationSettings)
    workers: WorkerSettings = Field(default_factory=WorkerSettings)
    finance: FinanceSettings = Field(default_factory=FinanceSettings)
    push: PushSettings = Field(default_factory=PushSettings)
    api: APISettings = Field(default_factory=APISettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
    )


def get_settings() -> Settings:
    """Load and validate settings from environment variables."""
    return Settings()
