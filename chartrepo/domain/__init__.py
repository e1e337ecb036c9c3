"""
Domain layer for the chart repository search service.

This package is responsible for:
* The pydantic models shared by storage, services and the HTTP API.
* Merging cached repository indexes into an in-memory search index.
* Scoring keyword/regex queries against chart names.
* Filtering scored results by semantic version constraints.
"""
