"""
GTS Engine Test Suite.

This package contains:
- unit/: Unit tests (identifier model, store, schema and query layers)
- integration/: HTTP API and CLI tests over a fixture tree on disk
"""
