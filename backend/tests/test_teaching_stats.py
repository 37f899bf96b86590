"""
Header statistics for a course's modules.
"""
from __future__ import annotations

from teaching.models import Module
from teaching.stats import CollectionStats, collection_stats


def test_empty_list():
    assert collection_stats([]) == CollectionStats(0, 0, 0)


def test_sums_counts_with_key_fallbacks():
    mods = [
        Module(id="a", position=1, title="A", counts={"videoLessons": 3, "quizzes": 1}),
        Module(id="b", position=2, title="B", counts={"lessons": 2, "quizCount": 4}),
        Module(id="c", position=3, title="C"),
    ]
    stats = collection_stats(mods)
    assert stats.total_modules == 3
    assert stats.total_lessons == 5
    assert stats.total_quizzes == 5


def test_first_matching_key_wins():
    m = Module(id="a", position=1, title="A", counts={"videoLessons": 1, "lessons": 9, "quiz": 2, "quizCount": 7})
    stats = collection_stats([m])
    assert stats.total_lessons == 1
    assert stats.total_quizzes == 2


def test_from_api_reads_legacy_count_field():
    m = Module.from_api({"id": "x", "position": 1, "title": "X", "_count": {"videoLessons": 2, "quiz": 1}})
    assert collection_stats([m]) == CollectionStats(1, 2, 1)
