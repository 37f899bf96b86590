"""
Ordered collection store (client-held copy of one course's modules).

Why:
    Pages render straight from this store while mutations are still on the
    wire. Each operation computes the next state in one synchronous step and
    swaps the backing tuple, so a snapshot is just the old tuple reference and
    restoring it is a single assignment.

Behavior:
    - Operations never raise; unknown ids and out-of-range indices are no-ops.
    - `load()` accepts the server order as-is. While a drag gesture holds the
      collection (`suspend_loads`), loads are deferred until `resume_loads`.
"""
from __future__ import annotations

from dataclasses import fields, is_dataclass, replace
from typing import Any, Dict, Generic, Iterable, Iterator, List, Mapping, Optional, Tuple, TypeVar

from .models import OrderedEntity
from .ordering import move, renumber, sort_by_position

E = TypeVar("E", bound=OrderedEntity)

Snapshot = Tuple[Any, ...]

_PROTECTED_FIELDS = frozenset({"id", "position"})


class OrderedCollection(Generic[E]):
    def __init__(self, parent_id: str, entities: Iterable[E] = ()) -> None:
        self.parent_id = parent_id
        self._items: Tuple[E, ...] = sort_by_position(tuple(entities))
        self._loads_suspended = False
        self._deferred: Optional[Tuple[E, ...]] = None
        self.revision = 0

    # --- Reads -----------------------------------------------------------------
    @property
    def items(self) -> Tuple[E, ...]:
        return self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[E]:
        return iter(self._items)

    def ids(self) -> List[str]:
        return [e.id for e in self._items]

    def index_of(self, entity_id: str) -> int:
        for idx, entity in enumerate(self._items):
            if entity.id == entity_id:
                return idx
        return -1

    def get(self, entity_id: str) -> Optional[E]:
        idx = self.index_of(entity_id)
        return self._items[idx] if idx >= 0 else None

    def positions_payload(self) -> List[Dict[str, Any]]:
        return [{"id": e.id, "position": e.position} for e in self._items]

    # --- Snapshot / restore ------------------------------------------------------
    def snapshot(self) -> Snapshot:
        return self._items

    def restore(self, snapshot: Snapshot) -> None:
        self._swap(snapshot)

    # --- Loading -----------------------------------------------------------------
    @property
    def loads_suspended(self) -> bool:
        return self._loads_suspended

    @property
    def has_deferred_load(self) -> bool:
        return self._deferred is not None

    def load(self, entities: Iterable[E]) -> bool:
        """Replace the collection with a fresh server list.

        Returns False when the load was deferred because a gesture holds the
        collection; the most recent deferred list wins.
        """
        ordered = sort_by_position(tuple(entities))
        if self._loads_suspended:
            self._deferred = ordered
            return False
        self._swap(ordered)
        return True

    def suspend_loads(self) -> None:
        self._loads_suspended = True

    def release_loads(self) -> Optional[Tuple[E, ...]]:
        """Lift the load hold and hand back the deferred list without applying it."""
        self._loads_suspended = False
        deferred, self._deferred = self._deferred, None
        return deferred

    def resume_loads(self, *, apply_deferred: bool = True) -> bool:
        """Lift the load hold; optionally apply the latest deferred load."""
        deferred = self.release_loads()
        if deferred is not None and apply_deferred:
            self._swap(deferred)
            return True
        return False

    # --- Optimistic operations ---------------------------------------------------
    def insert(self, entity: E) -> E:
        placed = replace(entity, position=len(self._items) + 1)
        self._swap(self._items + (placed,))
        return placed

    def insert_at(self, index: int, entity: E) -> E:
        """Put `entity` back at `index` (clamped) and renumber; replaces an entry with the same id."""
        rest = [e for e in self._items if e.id != entity.id]
        index = max(0, min(index, len(rest)))
        rest.insert(index, entity)
        self._swap(renumber(rest))
        return self._items[index]

    def remove(self, entity_id: str) -> Optional[E]:
        target = self.get(entity_id)
        if target is None:
            return None
        removed_at = target.position
        nxt = tuple(
            replace(e, position=e.position - 1) if e.position > removed_at else e
            for e in self._items
            if e.id != entity_id
        )
        self._swap(nxt)
        return target

    def update(self, entity_id: str, patch: Mapping[str, Any]) -> Optional[E]:
        idx = self.index_of(entity_id)
        if idx < 0:
            return None
        current = self._items[idx]
        allowed = _patchable_fields(current)
        changes = {k: v for k, v in patch.items() if k in allowed}
        if not changes:
            return current
        updated = replace(current, **changes)
        self._swap(self._items[:idx] + (updated,) + self._items[idx + 1:])
        return updated

    def settle(self, entity_id: str, entity: E) -> Optional[E]:
        """Swap an entity (e.g. server echo of a pending create), keeping its slot and position."""
        idx = self.index_of(entity_id)
        if idx < 0:
            return None
        settled = replace(entity, position=self._items[idx].position)
        self._swap(self._items[:idx] + (settled,) + self._items[idx + 1:])
        return settled

    def reorder(self, from_index: int, to_index: int) -> bool:
        size = len(self._items)
        if from_index == to_index:
            return False
        if not (0 <= from_index < size and 0 <= to_index < size):
            return False
        self._swap(renumber(move(self._items, from_index, to_index)))
        return True

    def _swap(self, items: Tuple[E, ...]) -> None:
        self._items = items
        self.revision += 1


def _patchable_fields(entity: Any) -> frozenset:
    if not is_dataclass(entity):
        return frozenset()
    return frozenset(f.name for f in fields(entity)) - _PROTECTED_FIELDS


__all__ = ["OrderedCollection", "Snapshot"]
