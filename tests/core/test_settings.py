"""Tests for core.settings module.

Covers:
- SchedulerSettings defaults
- CRONLEASE_* environment overrides
- Field validation
- Derived properties
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from cronlease.core.settings import SchedulerSettings


def _settings(**kwargs) -> SchedulerSettings:
    return SchedulerSettings(_env_file=None, **kwargs)


class TestSchedulerSettingsDefaults:
    def test_polling_interval(self):
        assert _settings().polling_interval_ms == 1000

    def test_processing_timeout(self):
        assert _settings().processing_timeout_ms == 60_000

    def test_timezone(self):
        assert _settings().timezone == "UTC"

    def test_collection_name(self):
        assert _settings().collection_name == "_scheduled_tasks"

    def test_logging(self):
        s = _settings()
        assert s.log_level == "INFO"
        assert s.log_format == "console"


class TestSchedulerSettingsEnvOverride:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("CRONLEASE_POLLING_INTERVAL_MS", "250")
        monkeypatch.setenv("CRONLEASE_TIMEZONE", "Europe/Berlin")
        s = _settings()
        assert s.polling_interval_ms == 250
        assert s.timezone == "Europe/Berlin"

    def test_unprefixed_ignored(self, monkeypatch):
        monkeypatch.setenv("POLLING_INTERVAL_MS", "5")
        assert _settings().polling_interval_ms == 1000

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("CRONLEASE_PROCESSING_TIMEOUT_MS=30000\n")
        s = SchedulerSettings(_env_file=env_file)
        assert s.processing_timeout_ms == 30_000


class TestSchedulerSettingsValidation:
    @pytest.mark.parametrize("field", ["polling_interval_ms", "processing_timeout_ms"])
    @pytest.mark.parametrize("value", [0, -1])
    def test_intervals_positive(self, field, value):
        with pytest.raises(ValidationError):
            _settings(**{field: value})

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError, match="Unknown timezone"):
            _settings(timezone="Mars/Olympus")

    def test_log_format(self):
        with pytest.raises(ValidationError):
            _settings(log_format="xml")

    def test_log_level_normalized(self):
        assert _settings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError, match="Unknown log level"):
            _settings(log_level="chatty")

    @pytest.mark.parametrize("name", ["1tasks", "tasks;drop", "my-tasks"])
    def test_collection_name_identifier(self, name):
        with pytest.raises(ValidationError):
            _settings(collection_name=name)


class TestSchedulerSettingsProperties:
    def test_polling_interval_seconds(self):
        assert _settings(polling_interval_ms=1500).polling_interval_seconds == 1.5

    def test_processing_timeout_timedelta(self):
        assert _settings().processing_timeout == timedelta(seconds=60)
