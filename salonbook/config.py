"""
Configuration management using Pydantic models loaded from YAML.
"""

import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import InvalidInput
from .domain.models import BookingWindow
from .domain.timeofday import parse_time_of_day

_GCASH_NUMBER_PATTERN = re.compile(r"^09[0-9]{9}$")


class BackendConfig(BaseModel):
    """Connection settings for the hosted backend."""
    url: str = ""
    api_key: str = ""
    timeout_seconds: int = 30

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return value

    def is_configured(self) -> bool:
        return bool(self.url and self.api_key)


class BookingConfig(BaseModel):
    """Bookable window and appointment block length."""
    min_time: str = "11:00"
    max_time: str = "18:00"
    increment: int = 15
    service_duration: int = 60

    @field_validator("min_time", "max_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        """Validate an HH:MM time of day."""
        try:
            parse_time_of_day(value)
        except InvalidInput as exc:
            raise ValueError(str(exc)) from exc
        return value

    @field_validator("increment")
    @classmethod
    def validate_increment(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("increment must be greater than zero")
        return value

    @field_validator("service_duration")
    @classmethod
    def validate_service_duration(cls, value: int) -> int:
        if value < 0:
            raise ValueError("service_duration must not be negative")
        return value

    @model_validator(mode="after")
    def validate_window_order(self) -> "BookingConfig":
        """Ensure the window opens before it closes."""
        if parse_time_of_day(self.min_time) > parse_time_of_day(self.max_time):
            raise ValueError("min_time must not be later than max_time")
        return self

    def to_window(self) -> BookingWindow:
        return BookingWindow(
            min_time=self.min_time,
            max_time=self.max_time,
            increment=self.increment,
            service_duration=self.service_duration,
        )


class BusinessConfig(BaseModel):
    """Business identity and GCash recipient details."""
    name: str = "Glow Point Beauty"
    gcash_number: Optional[str] = None
    gcash_name: Optional[str] = None
    gcash_qr_url: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("gcash_number")
    @classmethod
    def validate_gcash_number(cls, value: Optional[str]) -> Optional[str]:
        """GCash numbers must be Philippine mobile numbers, e.g. 09171234567."""
        if value and not _GCASH_NUMBER_PATTERN.match(value):
            raise ValueError(
                "gcash_number must be a valid Philippine mobile number (e.g., 09171234567)"
            )
        return value


class PaymentConfig(BaseModel):
    """Fees and payment instruction lifetime."""
    booking_fee: int = 100
    cancellation_fee: int = 50
    currency: str = "PHP"
    instruction_ttl_hours: int = 24
    store_path: Optional[Path] = None

    @field_validator("booking_fee", "cancellation_fee")
    @classmethod
    def validate_fee(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"Fees must not be negative, got {value}")
        return value

    @field_validator("instruction_ttl_hours")
    @classmethod
    def validate_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("instruction_ttl_hours must be greater than zero")
        return value


class QueueConfig(BaseModel):
    """Walk-in queue settings."""
    minutes_per_customer: int = 20
    poll_interval_seconds: int = 30

    @field_validator("minutes_per_customer", "poll_interval_seconds")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Queue settings must be greater than zero")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    backend: BackendConfig = Field(default_factory=BackendConfig)
    booking: BookingConfig = Field(default_factory=BookingConfig)
    business: BusinessConfig = Field(default_factory=BusinessConfig)
    payment: PaymentConfig = Field(default_factory=PaymentConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    timezone: str = "Asia/Manila"

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

    def payment_store_path(self) -> Path:
        """Where pending payment instructions are kept between runs."""
        if self.payment.store_path is not None:
            return self.payment.store_path.expanduser()
        return Path.home() / ".salonbook_payments.json"


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
