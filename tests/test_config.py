"""
Tests for YAML configuration loading.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from salonbook.config import AppConfig, BookingConfig, BusinessConfig


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadFromYaml:
    """Tests for AppConfig.load_from_yaml."""

    def test_loads_sections_and_defaults(self, tmp_path):
        path = _write(
            tmp_path,
            "backend:\n"
            "  url: https://salon.example.co\n"
            "  api_key: anon\n"
            "booking:\n"
            "  min_time: '09:00'\n"
            "  increment: 30\n"
            "business:\n"
            "  gcash_number: '09171234567'\n",
        )

        config = AppConfig.load_from_yaml(path)

        assert config.backend.is_configured()
        assert config.booking.min_time == "09:00"
        assert config.booking.max_time == "18:00"
        assert config.booking.increment == 30
        assert config.payment.booking_fee == 100
        assert config.payment.cancellation_fee == 50
        assert config.queue.minutes_per_customer == 20
        assert config.timezone == "Asia/Manila"

    def test_empty_file_gives_defaults(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, ""))

        assert not config.backend.is_configured()
        assert config.booking.service_duration == 60

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.example.yaml"):
            AppConfig.load_from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid YAML"):
            AppConfig.load_from_yaml(_write(tmp_path, "booking: [unclosed\n"))

    def test_root_must_be_mapping(self, tmp_path):
        with pytest.raises(ValueError, match="mapping"):
            AppConfig.load_from_yaml(_write(tmp_path, "- one\n- two\n"))


class TestValidation:
    """Tests for field validation."""

    def test_rejects_bad_gcash_number(self):
        with pytest.raises(ValidationError, match="gcash_number"):
            BusinessConfig(gcash_number="9171234567")

    def test_rejects_window_closing_before_opening(self):
        with pytest.raises(ValidationError, match="min_time must not be later"):
            BookingConfig(min_time="18:00", max_time="11:00")

    def test_rejects_malformed_time(self):
        with pytest.raises(ValidationError):
            BookingConfig(min_time="9am")

    def test_rejects_zero_increment(self):
        with pytest.raises(ValidationError):
            BookingConfig(increment=0)

    def test_to_window(self):
        window = BookingConfig(increment=30, service_duration=90).to_window()

        assert window.min_minutes == 660
        assert window.max_minutes == 1080
        assert window.increment == 30
        assert window.service_duration == 90


def test_payment_store_path(tmp_path):
    assert AppConfig().payment_store_path() == Path.home() / ".salonbook_payments.json"

    config = AppConfig(payment={"store_path": str(tmp_path / "payments.json")})
    assert config.payment_store_path() == tmp_path / "payments.json"
