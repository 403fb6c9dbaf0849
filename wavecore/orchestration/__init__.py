"""
Orchestration layer: cache stores, the TTL analysis cache, lifecycle events
and the analyze() entry point that ties the pure stages together.
"""
