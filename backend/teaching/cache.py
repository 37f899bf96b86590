"""Collection cache: one ordered collection per parent (course) id.

Lifetime is explicit: a collection is opened when its page mounts and loads,
and evicted on unmount or when the page switches to another parent id.
"""
from __future__ import annotations

import logging
from typing import Dict, Generic, Iterator, Optional, TypeVar

from .collection import OrderedCollection
from .models import OrderedEntity

logger = logging.getLogger("coursedeck.teaching.cache")

E = TypeVar("E", bound=OrderedEntity)


class CollectionCache(Generic[E]):
    def __init__(self) -> None:
        self._collections: Dict[str, OrderedCollection[E]] = {}

    def open(self, parent_id: str) -> OrderedCollection[E]:
        """Return the collection for `parent_id`, creating an empty one on first use."""
        collection = self._collections.get(parent_id)
        if collection is None:
            collection = OrderedCollection(parent_id)
            self._collections[parent_id] = collection
            logger.debug("collection opened pid=%s", parent_id[-6:])
        return collection

    def get(self, parent_id: str) -> Optional[OrderedCollection[E]]:
        return self._collections.get(parent_id)

    def require(self, parent_id: str) -> OrderedCollection[E]:
        collection = self._collections.get(parent_id)
        if collection is None:
            raise LookupError("collection_not_open")
        return collection

    def evict(self, parent_id: str) -> bool:
        existed = self._collections.pop(parent_id, None) is not None
        if existed:
            logger.debug("collection evicted pid=%s", parent_id[-6:])
        return existed

    def clear(self) -> None:
        self._collections.clear()

    def __contains__(self, parent_id: object) -> bool:
        return parent_id in self._collections

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._collections))

    def __len__(self) -> int:
        return len(self._collections)


__all__ = ["CollectionCache"]
