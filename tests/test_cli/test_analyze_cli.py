"""
Tests for the analyze and refresh command-line entry points.

Data comes from CSV files so no network access is needed; logging setup is
patched out to leave pytest's log capture alone.
"""
import json
from unittest.mock import patch

import pandas as pd
import pytest

from cli import analyze as analyze_cli
from cli import refresh as refresh_cli
from wavecore.indicators.elliott_types import Wave, WaveLabel
from wavecore.shared.types import FibTarget, Trend, WaveAnalysisResult


ZIGZAG = [100, 104, 110, 107, 105, 112, 118, 114, 109, 116, 124, 120]


@pytest.fixture
def data_dir(tmp_path):
    directory = tmp_path / "data"
    directory.mkdir()
    dates = pd.date_range("2024-01-01", periods=len(ZIGZAG), freq="D")
    for symbol in ("SPY", "QQQ"):
        df = pd.DataFrame(
            {"Open": ZIGZAG, "High": ZIGZAG, "Low": ZIGZAG, "Close": ZIGZAG, "Volume": 1000},
            index=pd.DatetimeIndex(dates, name="Date"),
        )
        df.to_csv(directory / f"{symbol}.csv")
    return directory


@pytest.fixture
def no_logging_setup():
    with patch("cli.analyze.setup_logging"), patch("cli.refresh.setup_logging"):
        yield


class TestAnalyzeCli:
    """Test python -m cli.analyze."""

    def test_text_output(self, data_dir, no_logging_setup, capsys):
        code = analyze_cli.main(["SPY", "--data-dir", str(data_dir), "--cache", "memory"])
        out = capsys.readouterr().out

        assert code == 0
        assert "SPY (1d) - trend bullish, current wave A" in out
        assert "Targets:" in out

    def test_json_output(self, data_dir, no_logging_setup, capsys):
        code = analyze_cli.main(["SPY", "QQQ", "--data-dir", str(data_dir), "--cache", "memory", "--json"])
        results = json.loads(capsys.readouterr().out)

        assert code == 0
        assert [r["symbol"] for r in results] == ["SPY", "QQQ"]
        assert results[0]["current_wave"]["number"] == "A"

    def test_missing_symbol(self, data_dir, no_logging_setup, capsys):
        code = analyze_cli.main(["NOPE", "--data-dir", str(data_dir), "--cache", "memory"])

        assert code == 1
        assert "no wave pattern detected" in capsys.readouterr().out

    def test_missing_config_file(self, tmp_path, no_logging_setup, capsys):
        code = analyze_cli.main(["--config", str(tmp_path / "missing.yaml")])

        assert code == 1
        assert "Config file not found" in capsys.readouterr().err

    def test_format_result_filters_targets(self):
        waves = (
            Wave(label=WaveLabel.WAVE_1, start_timestamp=1_704_067_200, start_price=100.0,
                 end_timestamp=1_704_153_600, end_price=120.0),
            Wave(label=WaveLabel.WAVE_2, start_timestamp=1_704_153_600, start_price=120.0,
                 end_timestamp=1_704_240_000, end_price=111.0, is_complete=False),
        )
        result = WaveAnalysisResult(
            symbol="SPY", timeframe="1d", waves=waves, current_wave=waves[-1],
            fib_targets=(
                FibTarget(label="0.382", price=112.36, is_extension=False, ratio=0.382),
                FibTarget(label="0.5", price=110.0, is_extension=False, ratio=0.5),
            ),
            trend=Trend.BULLISH, computed_at=0, last_price=111.0,
        )

        text = analyze_cli.format_result(result)
        assert "0.5 @ 110.00" in text
        assert "0.382" not in text
        assert "0.382 @ 112.36" in analyze_cli.format_result(result, show_all_targets=True)


class TestRefreshCli:
    """Test python -m cli.refresh (single run)."""

    def test_refresh_reports_failures(self, tmp_path, data_dir, no_logging_setup, capsys):
        config_path = tmp_path / "engine.yaml"
        config_path.write_text(
            "refresh:\n"
            "  inter_batch_delay_ms: 0\n"
            "  per_symbol_delay_ms: 0\n"
            "cache:\n"
            "  backend: memory\n"
        )

        code = refresh_cli.main([
            "SPY", "NOPE", "QQQ", "--config", str(config_path), "--data-dir", str(data_dir), "--batch-size", "2",
        ])
        out = capsys.readouterr().out

        assert code == 0
        assert "Refreshed 2/3 symbols" in out
        assert "NOPE" in out
