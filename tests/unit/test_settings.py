"""
Tests for runtime settings loaded from the environment.
Level 1: Pure parsing over an explicit mapping.
"""

from pathlib import Path

import pytest

from velocity_screener.config.settings import RuntimeSettings, load_settings
from velocity_screener.exceptions import ConfigurationError, EnvConfigError


class TestLoadSettings:

    @pytest.mark.schema
    def test_defaults(self):
        settings = load_settings({})
        assert settings == RuntimeSettings()
        assert settings.benchmark_symbol == "^NSEI"
        assert settings.max_workers == 1
        assert settings.snapshot_dir == Path("output/snapshots")

    @pytest.mark.schema
    def test_overrides(self):
        settings = load_settings({
            "SCREENER_BENCHMARK_SYMBOL": "^NSEBANK",
            "SCREENER_EXCHANGE": "BSE",
            "SCREENER_MAX_WORKERS": "8",
            "SCREENER_LOCK_TIMEOUT_SECONDS": "12.5",
            "SCREENER_SNAPSHOT_DIR": "/tmp/snaps",
            "SCREENER_SNAPSHOT_TOP_N": "10",
        })
        assert settings.benchmark_symbol == "^NSEBANK"
        assert settings.exchange == "BSE"
        assert settings.max_workers == 8
        assert settings.lock_timeout_seconds == 12.5
        assert settings.snapshot_dir == Path("/tmp/snaps")
        assert settings.snapshot_top_n == 10

    @pytest.mark.schema
    def test_blank_values_use_defaults(self):
        assert load_settings({"SCREENER_MAX_WORKERS": ""}).max_workers == 1

    @pytest.mark.schema
    @pytest.mark.parametrize("env", [
        {"SCREENER_MAX_WORKERS": "many"},
        {"SCREENER_MAX_WORKERS": "0"},
        {"SCREENER_SNAPSHOT_TOP_N": "-1"},
        {"SCREENER_LOCK_TIMEOUT_SECONDS": "soon"},
        {"SCREENER_LOCK_TIMEOUT_SECONDS": "0"},
    ])
    def test_invalid_values(self, env):
        with pytest.raises(EnvConfigError) as exc_info:
            load_settings(env)
        assert isinstance(exc_info.value, ConfigurationError)
        assert exc_info.value.error_code == "EnvConfigError"

    @pytest.mark.schema
    def test_reads_os_environ(self, monkeypatch):
        monkeypatch.setenv("SCREENER_HISTORY_PERIOD", "1y")
        assert load_settings().history_period == "1y"
