"""
Entity loading and storage.

- GtsEntity: one document with its extracted identifiers
- GtsFileReader: discovers and parses documents under root paths
- GtsStore / StoreHandle: the identifier-keyed store and its swap handle
"""

from .entity import GtsEntity, GtsFile, GtsRef, extract_gts_refs, extract_ref_strings
from .reader import GtsFileReader
from .store import GtsStore, StoreHandle

__all__ = [
    "GtsEntity",
    "GtsFile",
    "GtsFileReader",
    "GtsRef",
    "GtsStore",
    "StoreHandle",
    "extract_gts_refs",
    "extract_ref_strings",
]
