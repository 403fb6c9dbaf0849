"""
Data ingestion module.

Normalizes raw OHLCV input (DataFrames, records, mixed timestamp formats) into
PricePoint series and provides async series providers (Yahoo Finance, CSV,
TTL-cached wrapper).
"""
