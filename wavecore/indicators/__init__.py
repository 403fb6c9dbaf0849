"""
Pattern detection module.

Provides:
- Zig-zag pivot extraction over OHLCV bars
- Elliott Wave labeling (impulse 1-5, correction A-B-C)

Import from the submodules (pivots, elliott_wave, elliott_types) directly;
shared.types depends on elliott_types, so this package stays import-free.
"""
