"""Unit tests for business dates, currency rounding and logging setup."""

import logging
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from sams.services.dates import parse_legacy_date
from sams.services.locale_service import (
    format_amount,
    from_centavos,
    round_currency,
    to_centavos,
)
from sams.services.logging import get_log_level, setup_server_logging


class TestParseLegacyDate:
    """Legacy export date parsing."""

    def test_utc_timestamp_converted_to_cancun(self):
        # 03:00 UTC on Jan 1 is still Dec 31 in Cancun (UTC-5)
        assert parse_legacy_date("2025-01-01T03:00:00.000Z", tz_name="America/Cancun") == date(
            2024, 12, 31
        )

    def test_utc_timestamp_same_day(self):
        assert parse_legacy_date("2025-01-10T18:00:00Z", tz_name="America/Cancun") == date(
            2025, 1, 10
        )

    def test_iso_date(self):
        assert parse_legacy_date("2025-02-03") == date(2025, 2, 3)

    def test_us_date(self):
        assert parse_legacy_date("1/5/2025") == date(2025, 1, 5)

    @pytest.mark.parametrize("value", ["garbage", "", "2025/13/01"])
    def test_unrecognized(self, value):
        with pytest.raises(ValueError):
            parse_legacy_date(value)


class TestCurrency:
    """Centavo rounding."""

    def test_round_half_up(self):
        assert round_currency("10.005") == Decimal("10.01")
        assert round_currency("10.004") == Decimal("10.00")

    def test_float_input(self):
        assert round_currency(0.1 + 0.2) == Decimal("0.30")

    def test_centavos(self):
        assert to_centavos("12.34") == 1234
        assert from_centavos(1234) == Decimal("12.34")

    def test_format_amount_contains_digits(self):
        formatted = format_amount(Decimal("1234.5"))
        assert "1" in formatted and "234" in formatted and "50" in formatted


class TestServerLogging:
    """Logging configuration."""

    def setup_method(self):
        self.root_logger = logging.getLogger()
        self.original_handlers = self.root_logger.handlers.copy()
        self.original_level = self.root_logger.level

    def teardown_method(self):
        for handler in self.root_logger.handlers[:]:
            handler.close()
            self.root_logger.removeHandler(handler)
        for handler in self.original_handlers:
            self.root_logger.addHandler(handler)
        self.root_logger.setLevel(self.original_level)

    def test_creates_log_directory_and_handlers(self, tmp_path):
        log_file = tmp_path / "logs" / "sams.log"

        setup_server_logging(str(log_file))

        assert log_file.parent.exists()
        assert len(self.root_logger.handlers) == 2

    def test_stdout_only(self):
        setup_server_logging(None)

        assert len(self.root_logger.handlers) == 1

    def test_repeated_setup_does_not_duplicate(self, tmp_path: Path):
        setup_server_logging(str(tmp_path / "a.log"))
        setup_server_logging(str(tmp_path / "a.log"))

        assert len(self.root_logger.handlers) == 2

    def test_log_level_from_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert get_log_level() == logging.DEBUG
        monkeypatch.setenv("LOG_LEVEL", "nonsense")
        assert get_log_level() == logging.INFO

    def test_explicit_level_overrides_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        setup_server_logging(None, "warning")

        assert self.root_logger.level == logging.WARNING
