"""
GTS Engine - identifier algebra and schema lifecycle for GTS entities.

GTS identifiers name JSON Schemas and the instances that conform to them:

    gts.<vendor>.<package>.<namespace>.<type>.v<major>[.<minor>][~]

This package implements:
- The identifier grammar, wildcard patterns and name-based UUIDs
- An in-memory store of JSON/YAML documents loaded from root directories
- Relationship resolution, queries and attribute access over the store
- Schema compatibility checking and instance casting between minor versions

Architecture:
    ┌──────────────┐   ┌──────────────┐
    │   gts CLI    │   │  HTTP (v1)   │
    └──────┬───────┘   └──────┬───────┘
           └────────┬─────────┘
                    ▼
             ┌─────────────┐
             │   GtsOps    │  structured results, never raises
             └──────┬──────┘
        ┌───────────┼─────────────┐
        ▼           ▼             ▼
   ┌─────────┐ ┌─────────┐  ┌───────────┐
   │  query  │ │ schema  │  │    ids    │
   └────┬────┘ └────┬────┘  └───────────┘
        └─────┬─────┘
              ▼
      ┌───────────────┐     ┌──────────────┐
      │  StoreHandle  │◀────│ GtsFileReader│
      │  (GtsStore)   │     └──────────────┘
      └───────────────┘

Invariants:
    - Identifiers are immutable, validated on parse
    - A published store is read-only; rebuilds swap it wholesale
    - Casting produces new documents and never touches stored ones

How to change safely:
    - Grammar changes must keep valid identifiers valid (UUIDs depend on them)
    - Compatibility rules must each name the direction they break
"""

from ._version import __version__
from .ops import GtsOps

__all__ = ["GtsOps", "__version__"]
