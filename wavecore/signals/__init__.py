"""
Target calculation module.

Fibonacci retracement/extension targets for the currently forming wave and
the presentation helpers built on them.
"""
