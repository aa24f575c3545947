"""
Configuration management using Pydantic models loaded from YAML.
"""

import os
from pathlib import Path
from typing import Dict, List, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import parse_time_of_day


DEFAULT_SERVICE_CATALOG: Dict[str, Dict[str, int]] = {
    "exterior-wash": {"small": 45, "medium": 60, "large": 75},
    "interior-valet": {"small": 60, "medium": 75, "large": 90},
    "full-valet": {"small": 120, "medium": 150, "large": 180},
    "machine-polish": {"small": 180, "medium": 210, "large": 240},
    "ceramic-coating": {"small": 240, "medium": 270, "large": 300},
    "engine-bay": {"small": 30, "medium": 30, "large": 45},
}


class SchedulingConfig(BaseModel):
    """Working hours and feasibility thresholds handed to the engine."""
    work_start: str = "08:30"
    work_end: str = "16:30"
    slot_step_minutes: int = 15
    buffer_after_job_minutes: int = 30
    travel_limit_minutes: float = 20
    working_days: List[int] = Field(default_factory=lambda: [0, 1, 2, 3, 4])  # Monday-Friday
    default_visit_minutes: int = 60
    fallback_service_minutes: int = 60
    default_size: str = "medium"
    provider_timeout_seconds: float = 10.0
    max_range_days: int = 62

    @field_validator("work_start", "work_end")
    @classmethod
    def validate_clock_time(cls, value: str) -> str:
        """Ensure times are given as HH:MM."""
        parse_time_of_day(value)
        return value

    @field_validator(
        "slot_step_minutes",
        "default_visit_minutes",
        "fallback_service_minutes",
        "max_range_days",
    )
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value

    @field_validator("buffer_after_job_minutes")
    @classmethod
    def validate_buffer(cls, value: int) -> int:
        if value < 0:
            raise ValueError("buffer_after_job_minutes cannot be negative")
        return value

    @field_validator("provider_timeout_seconds", "travel_limit_minutes")
    @classmethod
    def validate_positive_float(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value

    @field_validator("working_days")
    @classmethod
    def validate_working_days(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"working_days must be between 0 and 6, got {invalid_days}")
        return sorted(set(value))

    @field_validator("default_size")
    @classmethod
    def validate_default_size(cls, value: str) -> str:
        return value.strip().lower()

    @model_validator(mode="after")
    def validate_hours_order(self) -> "SchedulingConfig":
        """Ensure the working day opens before it closes."""
        if self.work_end_minutes <= self.work_start_minutes:
            raise ValueError("work_end must be later than work_start")
        return self

    @property
    def work_start_minutes(self) -> int:
        return parse_time_of_day(self.work_start)

    @property
    def work_end_minutes(self) -> int:
        return parse_time_of_day(self.work_end)


class CalendarConfig(BaseModel):
    """Where externally-held calendar time comes from."""
    provider: Literal["graph", "mock", "none"] = "none"
    client_id: str = ""
    tenant_id: str = ""
    mailbox: str = ""
    mock_data_file: Path | None = None

    @model_validator(mode="after")
    def validate_graph_settings(self) -> "CalendarConfig":
        if self.provider == "graph":
            missing = [
                name for name in ("client_id", "tenant_id", "mailbox")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    f"calendar provider 'graph' requires: {', '.join(missing)}"
                )
        return self

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"


class StaticTravelTime(BaseModel):
    """One row of the static travel-time table."""
    origin: str
    destination: str
    minutes: float

    @field_validator("minutes")
    @classmethod
    def validate_minutes(cls, value: float) -> float:
        if value < 0:
            raise ValueError("minutes cannot be negative")
        return value


class TravelConfig(BaseModel):
    """Travel-time provider settings."""
    provider: Literal["google", "static"] = "static"
    api_key: str = ""
    region: str = "uk"
    static_times: List[StaticTravelTime] = Field(default_factory=list)

    @model_validator(mode="after")
    def resolve_api_key(self) -> "TravelConfig":
        if not self.api_key:
            self.api_key = os.getenv("GLISTEN_MAPS_API_KEY", "")
        if self.provider == "google" and not self.api_key:
            raise ValueError(
                "travel provider 'google' requires api_key or GLISTEN_MAPS_API_KEY"
            )
        return self


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/London"
    bookings_file: Path = Path("bookings.json")
    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)
    services: Dict[str, Dict[str, int]] = Field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_SERVICE_CATALOG.items()}
    )
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    travel: TravelConfig = Field(default_factory=TravelConfig)

    @field_validator("services")
    @classmethod
    def validate_services(cls, value: Dict[str, Dict[str, int]]) -> Dict[str, Dict[str, int]]:
        """Normalise catalog keys and reject non-positive durations."""
        catalog: Dict[str, Dict[str, int]] = {}
        for service_id, sizes in value.items():
            normalized: Dict[str, int] = {}
            for size, minutes in sizes.items():
                if minutes <= 0:
                    raise ValueError(
                        f"Duration for {service_id}/{size} must be greater than zero"
                    )
                normalized[size.strip().lower()] = minutes
            catalog[service_id.strip().lower()] = normalized
        return catalog

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    config_path = Path.cwd() / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of glisten/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
