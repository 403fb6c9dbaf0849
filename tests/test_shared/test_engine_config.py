"""
Tests for engine configuration and YAML loading.
"""
from pathlib import Path

import pytest

from wavecore.shared.config import EngineConfig
from wavecore.shared.config_loader import load_config_from_yaml
from wavecore.shared.defaults import (
    ANALYSIS_TTL_SECONDS,
    BATCH_SIZE,
    DEFAULT_SYMBOLS,
    MIN_SWING_PERCENT,
    SERIES_TTL_SECONDS,
)


CONFIGS_DIR = Path(__file__).parent.parent.parent / "configs"


class TestEngineConfig:
    """Test EngineConfig dataclass."""

    def test_defaults(self):
        """Defaults should match defaults.py."""
        config = EngineConfig()

        assert config.min_swing_percent == MIN_SWING_PERCENT
        assert config.analysis_ttl_seconds == ANALYSIS_TTL_SECONDS == 24 * 3600
        assert config.series_ttl_seconds == SERIES_TTL_SECONDS == 6 * 3600
        assert config.batch_size == BATCH_SIZE
        assert config.symbols == DEFAULT_SYMBOLS

    def test_symbols_upper_cased(self):
        assert EngineConfig(symbols=["spy", "qqq"]).symbols == ("SPY", "QQQ")


class TestConfigValidation:
    """Config validation fails fast with clear errors."""

    @pytest.mark.parametrize("kwargs, message", [
        ({"min_swing_percent": 0}, "min_swing_percent"),
        ({"fallback_swing_percent": 0}, "fallback_swing_percent"),
        ({"min_pivots": 1}, "min_pivots"),
        ({"analysis_ttl_seconds": -1}, "TTLs"),
        ({"batch_size": 0}, "batch_size"),
        ({"inter_batch_delay_ms": -5}, "Delays"),
        ({"refresh_interval_seconds": 0}, "refresh_interval_seconds"),
        ({"chunk_size": 0}, "chunk_size"),
        ({"cache_backend": "redis"}, "cache_backend"),
        ({"provider": "bloomberg"}, "provider"),
    ])
    def test_invalid_values(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            EngineConfig(**kwargs)

    def test_low_primary_threshold_keeps_default_fallback(self):
        """A 1% threshold is valid; the 2% default fallback is simply never used."""
        config = EngineConfig(min_swing_percent=1.0)
        assert config.min_swing_percent == 1.0
        assert config.fallback_swing_percent == 2.0

    def test_low_primary_threshold_from_yaml(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("pivots:\n  min_swing_percent: 1.0\n")

        assert load_config_from_yaml(path).min_swing_percent == 1.0

    def test_fallback_can_be_disabled(self):
        config = EngineConfig(min_swing_percent=1.0, fallback_swing_percent=None)
        assert config.fallback_swing_percent is None


class TestLoadConfigFromYaml:
    """Test YAML loading."""

    def test_full_file(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text(
            "pivots:\n"
            "  min_swing_percent: 5.0\n"
            "  fallback_swing_percent: 2.5\n"
            "cache:\n"
            "  backend: file\n"
            "  dir: /tmp/wave-cache\n"
            "  analysis_ttl_seconds: 3600\n"
            "refresh:\n"
            "  batch_size: 3\n"
            "schedule:\n"
            "  timezone: Europe/Berlin\n"
            "data:\n"
            "  provider: csv\n"
            "  dir: data\n"
            "  timeframe: 1wk\n"
            "  symbols: [aapl, msft]\n"
        )
        config = load_config_from_yaml(path)

        assert config.min_swing_percent == 5.0
        assert config.fallback_swing_percent == 2.5
        assert config.cache_backend == "file"
        assert config.cache_dir == "/tmp/wave-cache"
        assert config.analysis_ttl_seconds == 3600
        assert config.series_ttl_seconds == SERIES_TTL_SECONDS
        assert config.batch_size == 3
        assert config.schedule_timezone == "Europe/Berlin"
        assert config.provider == "csv"
        assert config.timeframe == "1wk"
        assert config.symbols == ("AAPL", "MSFT")

    def test_partial_file_uses_defaults(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("refresh:\n  batch_size: 2\n")
        config = load_config_from_yaml(path)

        assert config.batch_size == 2
        assert config.min_swing_percent == MIN_SWING_PERCENT
        assert config.symbols == DEFAULT_SYMBOLS

    def test_single_symbol_string(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("data:\n  symbols: spy\n")
        assert load_config_from_yaml(path).symbols == ("SPY",)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_from_yaml(tmp_path / "missing.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ValueError, match="Empty config"):
            load_config_from_yaml(path)

    def test_invalid_values_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("refresh:\n  batch_size: 0\n")
        with pytest.raises(ValueError, match="batch_size"):
            load_config_from_yaml(path)

    def test_shipped_default_config(self):
        config = load_config_from_yaml(CONFIGS_DIR / "default.yaml")

        assert config.cache_backend == "file"
        assert config.schedule_timezone == "America/New_York"
        assert "NVDA" in config.symbols
