"""
YAML configuration loader for the engine.

Loads EngineConfig from YAML files so thresholds, TTLs and the refresh
working set can be changed without code changes.
"""
from pathlib import Path
from typing import Union

import yaml

from .config import EngineConfig
from .defaults import *


def load_config_from_yaml(yaml_path: Union[str, Path]) -> EngineConfig:
    """
    Load engine configuration from YAML file.

    Args:
        yaml_path: Path to YAML configuration file

    Returns:
        EngineConfig object

    Raises:
        FileNotFoundError: If YAML file doesn't exist
        ValueError: If YAML is empty or contains invalid values
    """
    yaml_path = Path(yaml_path)

    if not yaml_path.exists():
        raise FileNotFoundError(f"Config file not found: {yaml_path}")

    with open(yaml_path, 'r') as f:
        config_dict = yaml.safe_load(f)

    if not config_dict:
        raise ValueError(f"Empty config file: {yaml_path}")

    pivots = config_dict.get('pivots', {})
    cache = config_dict.get('cache', {})
    refresh = config_dict.get('refresh', {})
    schedule = config_dict.get('schedule', {})
    data_params = config_dict.get('data', {})

    raw_symbols = data_params.get('symbols')
    if raw_symbols is None or (isinstance(raw_symbols, list) and len(raw_symbols) == 0):
        symbols = DEFAULT_SYMBOLS
    else:
        symbols = raw_symbols if isinstance(raw_symbols, list) else [raw_symbols]

    return EngineConfig(
        # Pivot extraction
        min_swing_percent=pivots.get('min_swing_percent', MIN_SWING_PERCENT),
        fallback_swing_percent=pivots.get('fallback_swing_percent', FALLBACK_SWING_PERCENT),
        min_pivots=pivots.get('min_pivots', MIN_PIVOTS),

        # Cache
        analysis_ttl_seconds=cache.get('analysis_ttl_seconds', ANALYSIS_TTL_SECONDS),
        series_ttl_seconds=cache.get('series_ttl_seconds', SERIES_TTL_SECONDS),
        cache_backend=cache.get('backend', 'memory'),
        cache_dir=cache.get('dir', CACHE_DIR),
        chunk_size=cache.get('chunk_size', CHUNK_SIZE),

        # Batch refresh
        batch_size=refresh.get('batch_size', BATCH_SIZE),
        inter_batch_delay_ms=refresh.get('inter_batch_delay_ms', INTER_BATCH_DELAY_MS),
        per_symbol_delay_ms=refresh.get('per_symbol_delay_ms', PER_SYMBOL_DELAY_MS),

        # Schedule
        refresh_interval_seconds=schedule.get('interval_seconds', REFRESH_INTERVAL_SECONDS),
        schedule_timezone=schedule.get('timezone', SCHEDULE_TIMEZONE),
        state_file=schedule.get('state_file'),

        # Data
        provider=data_params.get('provider', 'yahoo'),
        data_dir=data_params.get('dir'),
        timeframe=data_params.get('timeframe', DEFAULT_TIMEFRAME),
        symbols=tuple(symbols),
    )
