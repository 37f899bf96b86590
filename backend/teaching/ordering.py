"""Position renumbering for ordered collections.

Positions are 1-based and dense: a collection of N entities carries exactly the
positions 1..N. All helpers are pure and return new tuples.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Sequence, Tuple, TypeVar

from .models import OrderedEntity

E = TypeVar("E", bound=OrderedEntity)


def renumber(items: Sequence[E]) -> Tuple[E, ...]:
    """Return `items` in the same order with `position == index + 1`.

    Entities that already carry the right position are reused as-is, which
    makes the function idempotent down to object identity.
    """
    out = []
    for idx, item in enumerate(items, start=1):
        out.append(item if item.position == idx else replace(item, position=idx))
    return tuple(out)


def is_dense(items: Sequence[OrderedEntity]) -> bool:
    """True when the multiset of positions is exactly {1..N}."""
    return sorted(i.position for i in items) == list(range(1, len(items) + 1))


def move(items: Sequence[E], from_index: int, to_index: int) -> Tuple[E, ...]:
    """Move one entry to `to_index` (array-move semantics), no renumbering."""
    out = list(items)
    out.insert(to_index, out.pop(from_index))
    return tuple(out)


def sort_by_position(items: Sequence[E]) -> Tuple[E, ...]:
    return tuple(sorted(items, key=lambda i: (i.position, i.id)))


__all__ = ["renumber", "is_dense", "move", "sort_by_position"]
