"""Summary numbers for a course's module list (header cards on the page)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from .models import Module

# Older API rows used different count keys; first match wins.
_LESSON_KEYS = ("videoLessons", "lessons")
_QUIZ_KEYS = ("quizzes", "quiz", "quizCount")


@dataclass(frozen=True)
class CollectionStats:
    total_modules: int
    total_lessons: int
    total_quizzes: int


def _first_count(counts: Mapping[str, int], keys: Sequence[str]) -> int:
    for key in keys:
        if key in counts:
            return int(counts[key] or 0)
    return 0


def collection_stats(modules: Iterable[Module]) -> CollectionStats:
    items = list(modules)
    return CollectionStats(
        total_modules=len(items),
        total_lessons=sum(_first_count(m.counts, _LESSON_KEYS) for m in items),
        total_quizzes=sum(_first_count(m.counts, _QUIZ_KEYS) for m in items),
    )


__all__ = ["CollectionStats", "collection_stats"]
