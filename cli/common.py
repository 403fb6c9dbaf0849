"""Argument and config handling shared by the CLI commands."""
import argparse
import sys
from pathlib import Path
from typing import Optional

from wavecore.shared.config import EngineConfig
from wavecore.shared.config_loader import load_config_from_yaml


def add_common_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML config file (default: built-in defaults)"
    )
    parser.add_argument(
        "--timeframe",
        type=str,
        default=None,
        help="Bar timeframe: 1d, 1wk or 1mo (default: from config)"
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Read CSV files from this directory instead of downloading from Yahoo Finance"
    )
    parser.add_argument(
        "--cache",
        choices=["memory", "file"],
        default=None,
        help="Cache backend (default: from config)"
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write logs to this file"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)"
    )


def load_config(args: argparse.Namespace) -> Optional[EngineConfig]:
    """
    Build the engine config from --config plus command-line overrides.

    Returns None (after printing the error) if the config is invalid.
    """
    try:
        config = load_config_from_yaml(args.config) if args.config else EngineConfig()
        if args.data_dir:
            config.provider = "csv"
            config.data_dir = args.data_dir
        if args.cache:
            config.cache_backend = args.cache
        if args.timeframe:
            config.timeframe = args.timeframe
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return None
    return config


def log_path(args: argparse.Namespace) -> Optional[Path]:
    return Path(args.log_file) if args.log_file else None
