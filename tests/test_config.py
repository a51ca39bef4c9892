"""Tests for configuration loading and validation."""

from dataclasses import replace

import pytest

from cleanbook.config import (
    AppConfig,
    BackendConfig,
    NotificationConfig,
    ScheduleConfig,
    _safe_float,
    _safe_int,
    _validate_config,
)


def _with_schedule(**changes) -> AppConfig:
    return replace(AppConfig(), schedule=replace(ScheduleConfig(), **changes))


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        _validate_config(AppConfig())  # should not raise

    def test_morning_after_noon(self):
        with pytest.raises(ValueError, match="MORNING_TIME"):
            _validate_config(_with_schedule(morning_time="13:00"))

    def test_afternoon_before_noon(self):
        with pytest.raises(ValueError, match="AFTERNOON_TIME"):
            _validate_config(_with_schedule(afternoon_time="11:00"))

    def test_unreadable_clock_time(self):
        with pytest.raises(ValueError, match="Invalid clock time"):
            _validate_config(_with_schedule(morning_time="matin"))

    def test_zero_duration(self):
        with pytest.raises(ValueError, match="SLOT_DURATION_MINUTES"):
            _validate_config(_with_schedule(slot_duration_minutes=0))

    def test_zero_window(self):
        with pytest.raises(ValueError, match="BOOKING_WINDOW_DAYS"):
            _validate_config(_with_schedule(booking_window_days=0))

    def test_horizon_shorter_than_window(self):
        with pytest.raises(ValueError, match="BOOKING_HORIZON_DAYS"):
            _validate_config(_with_schedule(booking_window_days=14, booking_horizon_days=7))

    def test_poll_interval_positive(self):
        with pytest.raises(ValueError, match="SLOT_POLL_INTERVAL"):
            _validate_config(_with_schedule(poll_interval_sec=0))

    def test_backend_timeout(self):
        config = replace(AppConfig(), backend=BackendConfig(timeout_sec=0))
        with pytest.raises(ValueError, match="BACKEND_TIMEOUT"):
            _validate_config(config)

    def test_realtime_heartbeat(self):
        config = replace(AppConfig(), backend=BackendConfig(realtime_heartbeat_sec=0))
        with pytest.raises(ValueError, match="REALTIME_HEARTBEAT"):
            _validate_config(config)

    def test_notification_timeout(self):
        config = replace(AppConfig(), notifications=NotificationConfig(timeout_sec=-1))
        with pytest.raises(ValueError, match="NOTIFICATION_TIMEOUT"):
            _validate_config(config)


class TestEnvParsing:
    def test_safe_int_reads_env(self, monkeypatch):
        monkeypatch.setenv("CLEANBOOK_TEST_INT", "42")
        assert _safe_int("CLEANBOOK_TEST_INT", "1") == 42

    def test_safe_int_default(self, monkeypatch):
        monkeypatch.delenv("CLEANBOOK_TEST_INT", raising=False)
        assert _safe_int("CLEANBOOK_TEST_INT", "7") == 7

    def test_safe_int_bad_value(self, monkeypatch):
        monkeypatch.setenv("CLEANBOOK_TEST_INT", "quatorze")
        with pytest.raises(ValueError, match="CLEANBOOK_TEST_INT"):
            _safe_int("CLEANBOOK_TEST_INT", "14")

    def test_safe_float(self, monkeypatch):
        monkeypatch.setenv("CLEANBOOK_TEST_FLOAT", "2.5")
        assert _safe_float("CLEANBOOK_TEST_FLOAT", "1.0") == 2.5

    def test_safe_float_bad_value(self, monkeypatch):
        monkeypatch.setenv("CLEANBOOK_TEST_FLOAT", "fast")
        with pytest.raises(ValueError, match="Invalid float"):
            _safe_float("CLEANBOOK_TEST_FLOAT", "1.0")
