"""
Command-line entry points for the wave analysis engine.

Provides command-line interfaces for:
- Analyzing symbols (python -m cli.analyze)
- Batch and scheduled refresh (python -m cli.refresh)
"""
