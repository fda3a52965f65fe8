"""
Infrastructure Layer - External Systems Integration

Contains:
- cache: Query cache (unbounded or LRU)
- http: Worker HTTP transport
- sources: Base class for provider adapters
"""
