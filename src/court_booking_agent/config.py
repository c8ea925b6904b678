"""Configuration objects for the court booking agent."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class Partner(BaseModel):
    """Playing partner added to the reservation form."""

    position: int = 0
    player_id: str
    player_name: Optional[str] = None

    @field_validator("player_id", mode="before")
    @classmethod
    def coerce_player_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class CourtsConfig(BaseModel):
    """Known court labels and the ranked court preferences."""

    names: Dict[str, str] = Field(default_factory=dict)
    preferences: List[str] = Field(default_factory=list)

    @field_validator("preferences", mode="before")
    @classmethod
    def stringify_preferences(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item) for item in value]
        return value

    def label_for(self, court_id: Optional[str]) -> Optional[str]:
        if court_id is None:
            return None
        return self.names.get(str(court_id))


class BookingConfig(BaseModel):
    """Per-run configuration consumed by the workflow."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    login_url: Optional[str] = None
    member_url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[SecretStr] = None
    courts: CourtsConfig = Field(default_factory=CourtsConfig)
    use_court_preferences: bool = False
    hour_preferences: List[str] = Field(default_factory=list)
    reservation_date: Optional[str] = None
    booking_advance: Optional[Union[int, str]] = 7
    partners: List[Partner] = Field(default_factory=list)
    test_mode: bool = False
    timezone: str = "Europe/Paris"
    http: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("hour_preferences", mode="before")
    @classmethod
    def stringify_hours(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item) for item in value if item not in (None, "")]
        return value


class Settings(BaseSettings):
    """Process settings pulled from environment variables."""

    config_file: Optional[Path] = None
    log_level: str = "INFO"
    retry_attempts: int = Field(default=1, ge=1)
    retry_max_wait_seconds: float = 8.0

    model_config = SettingsConfigDict(
        env_prefix="COURT_BOOKING_",
        env_file=(".env",),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def load_booking_config(path: Union[str, Path]) -> BookingConfig:
    """Read and validate a JSON configuration file."""
    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Unable to read configuration file {config_path}: {exc}") from exc
    try:
        return BookingConfig.model_validate_json(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {exc}") from exc


def apply_overrides(config: BookingConfig, **overrides: Any) -> BookingConfig:
    """Return a copy of ``config`` with the non-``None`` overrides applied.

    ``mode`` is routed into the ``http`` section, where the workflow reads it.
    """
    updates = {key: value for key, value in overrides.items() if value is not None}
    mode = updates.pop("mode", None)
    if mode is not None:
        updates["http"] = {**config.http, "mode": mode}
    if not updates:
        return config
    return config.model_copy(update=updates)
