"""
In-memory entity store and its swap handle.

The GtsStore maps identifier strings to entities in load order. It is
never mutated once published: additions and reloads build a new store
and the StoreHandle swaps it in.

Invariants:
    - A published GtsStore is read-only; readers need no locking
    - Keys are unique; on a duplicate id the later entity replaces the
      earlier one in place (load position kept) and a warning is logged
    - Swaps are serialized by StoreHandle's lock; a reader sees either
      the old store or the new one, never a partial state

How to change safely:
    - Never add mutating methods to GtsStore that can run after publish;
      build a new store via with_entities() instead
    - Keep StoreHandle.update() the only read-modify-write path

Example:
    >>> handle = StoreHandle(GtsStore.from_paths(["./gts"]))
    >>> handle.current.get("gts.x.core.events.event.v1~").is_schema
    True
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from ..config import GtsConfig
from ..errors import NotFoundError
from ..ids import normalize_id
from .entity import GtsEntity
from .reader import GtsFileReader

logger = logging.getLogger(__name__)


class GtsStore:
    """Identifier-keyed collection of entities.

    Attributes:
        cfg: The extraction config entities were built with
    """

    def __init__(
        self,
        entities: Iterable[GtsEntity] = (),
        cfg: Optional[GtsConfig] = None,
    ) -> None:
        self.cfg = cfg or GtsConfig()
        self._by_id: Dict[str, GtsEntity] = {}
        for entity in entities:
            self._register(entity)

    @classmethod
    def from_paths(cls, paths: Sequence[str], cfg: Optional[GtsConfig] = None) -> GtsStore:
        """Build a store by scanning roots."""
        reader = GtsFileReader(paths, cfg)
        store = cls(reader.read(), reader.cfg)
        logger.info(f"Built GTS store with {len(store)} entities from {len(paths)} path(s)")
        return store

    def _register(self, entity: GtsEntity) -> None:
        key = entity.effective_id
        if not key:
            logger.debug(f"Skipping entity without identifier: {entity.label}")
            return
        if key in self._by_id:
            logger.warning(f"Duplicate GTS ID '{key}': {entity.label} replaces {self._by_id[key].label}")
        self._by_id[key] = entity

    def with_entities(self, entities: Iterable[GtsEntity]) -> GtsStore:
        """A new store holding this store's entities plus the given ones."""
        new = GtsStore(cfg=self.cfg)
        new._by_id = dict(self._by_id)
        for entity in entities:
            new._register(entity)
        return new

    def get(self, entity_id: str) -> GtsEntity:
        """Look up an entity.

        Raises:
            NotFoundError: If no entity has this id
        """
        entity = self._by_id.get(normalize_id(entity_id))
        if entity is None:
            raise NotFoundError(entity_id)
        return entity

    def find(self, entity_id: str) -> Optional[GtsEntity]:
        """Look up an entity, returning None if absent."""
        return self._by_id.get(normalize_id(entity_id))

    def get_schema(self, schema_id: str) -> GtsEntity:
        """Look up an entity that must be a schema.

        Raises:
            NotFoundError: If absent or not a schema
        """
        entity = self._by_id.get(normalize_id(schema_id))
        if entity is None or not entity.is_schema:
            raise NotFoundError(schema_id, what="schema")
        return entity

    def list(self, limit: Optional[int] = None) -> List[GtsEntity]:
        """Entities in load order, at most `limit`."""
        entities = list(self._by_id.values())
        if limit is not None:
            entities = entities[:limit]
        return entities

    def ids(self) -> List[str]:
        """All keys in load order."""
        return list(self._by_id)

    def __contains__(self, entity_id: object) -> bool:
        return isinstance(entity_id, str) and normalize_id(entity_id) in self._by_id

    def __iter__(self) -> Iterator[GtsEntity]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)


class StoreHandle:
    """Shared reference to the current store with exclusive swap.

    Thread-safety:
        - `current` is a plain attribute read; no lock needed
        - swap(), update() and rebuild() serialize on an internal lock

    Example:
        >>> handle = StoreHandle()
        >>> handle.update(lambda s: s.with_entities([entity]))
    """

    def __init__(self, store: Optional[GtsStore] = None) -> None:
        self._store = store if store is not None else GtsStore()
        self._lock = threading.Lock()

    @property
    def current(self) -> GtsStore:
        """The published store."""
        return self._store

    def swap(self, store: GtsStore) -> GtsStore:
        """Publish a new store, returning the previous one."""
        with self._lock:
            previous = self._store
            self._store = store
        logger.info(f"Swapped GTS store: {len(previous)} -> {len(store)} entities")
        return previous

    def update(self, build: Callable[[GtsStore], GtsStore]) -> GtsStore:
        """Build a new store from the current one and publish it.

        If `build` raises, nothing is published and the error propagates.

        Returns:
            The newly published store
        """
        with self._lock:
            new = build(self._store)
            self._store = new
        logger.info(f"Updated GTS store: {len(new)} entities")
        return new

    def rebuild(self, paths: Sequence[str], cfg: Optional[GtsConfig] = None) -> GtsStore:
        """Rescan roots and publish the result."""
        cfg = cfg or self._store.cfg
        new = GtsStore.from_paths(paths, cfg)
        self.swap(new)
        return new
