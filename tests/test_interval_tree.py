"""Tests for the static interval tree behind conflict lookups."""

import random

from eventcal.interval_tree import IntervalTree


def brute_force_overlaps(intervals, start, end):
    return sorted(data for s, e, data in intervals if s < end and e > start)


def test_empty_tree():
    tree = IntervalTree()

    assert len(tree) == 0
    assert tree.overlapping(0, 10) == []
    tree.verify_integrity()


def test_half_open_overlap():
    tree = IntervalTree([(0, 10, "a"), (10, 20, "b"), (5, 15, "c")])

    assert sorted(tree.overlapping(10, 11)) == ["b", "c"]
    assert sorted(tree.overlapping(9, 10)) == ["a", "c"]
    assert tree.overlapping(20, 30) == []


def test_results_in_start_order_with_stable_ties():
    tree = IntervalTree([(5, 6, "late"), (1, 9, "first"), (1, 3, "second"), (3, 8, "middle")])

    assert tree.overlapping(0, 10) == ["first", "second", "middle", "late"]


def test_find_containing():
    tree = IntervalTree([(0, 10, "a"), (10, 20, "b"), (5, 15, "c")])
    hits = []

    tree.find_containing(10, lambda node: hits.append(node.data))

    assert sorted(hits) == ["b", "c"]


def test_matches_brute_force():
    rng = random.Random(1234)
    intervals = []
    for n in range(300):
        start = rng.randint(0, 1000)
        intervals.append((start, start + rng.randint(1, 80), n))
    tree = IntervalTree(intervals)
    tree.verify_integrity()

    for _ in range(200):
        start = rng.randint(-50, 1050)
        end = start + rng.randint(1, 120)
        assert sorted(tree.overlapping(start, end)) == brute_force_overlaps(intervals, start, end)
