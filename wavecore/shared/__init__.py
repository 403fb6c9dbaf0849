"""
Shared types, defaults and configuration used across the engine.
"""
