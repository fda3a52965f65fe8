"""
Application Layer - Search Session Orchestration

Contains:
- search: Codec, request coordinator, result aggregation, facets, fan-out
- session: URL state store and saved searches
"""
