"""
Automation layer: batched, rate-limited refresh of a symbol working set and
its interval scheduler.
"""
