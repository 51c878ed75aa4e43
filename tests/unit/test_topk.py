import math
import random

from tripqa.common.topk import BoundedTopKSelector


def _identity(value):
    return value


def test_top_two_of_five():
    selector = BoundedTopKSelector.from_iterable([5, 9, 3, 12, 7], 2, _identity)
    assert selector.get_descending() == [12, 9]


def test_matches_full_sort_for_random_inputs():
    rng = random.Random(7)
    for k in (1, 3, 10, 50):
        values = [rng.uniform(-1000, 1000) for _ in range(200)]
        selector = BoundedTopKSelector.from_iterable(values, k, _identity)
        assert selector.get_descending() == sorted(values, reverse=True)[:k]


def test_returns_everything_when_fewer_items_than_k():
    selector = BoundedTopKSelector.from_iterable([2, 1], 5, _identity)
    assert selector.get_descending() == [2, 1]
    assert len(selector) == 2


def test_non_finite_scores_never_evict_valid_entries():
    rows = [{"v": 1.0}, {"v": float("nan")}, {"v": None}, {"v": "oops"}, {"v": math.inf}, {"v": 0.5}]
    selector = BoundedTopKSelector.from_iterable(rows, 2, lambda row: row["v"])
    assert [row["v"] for row in selector.get_descending()] == [1.0, 0.5]


def test_zero_capacity_keeps_nothing():
    selector = BoundedTopKSelector.from_iterable([1, 2, 3], 0, _identity)
    assert selector.get_descending() == []


def test_get_descending_does_not_consume_the_selector():
    selector = BoundedTopKSelector(3, _identity)
    for value in (4, 1, 8):
        selector.add(value)

    assert selector.get_descending() == [8, 4, 1]
    assert selector.get_descending() == [8, 4, 1]

    selector.add(6)
    assert selector.get_descending() == [8, 6, 4]


def test_items_do_not_need_to_be_comparable():
    class Opaque:
        def __init__(self, score):
            self.score = score

    items = [Opaque(3), Opaque(3), Opaque(1), Opaque(5)]
    selector = BoundedTopKSelector.from_iterable(items, 3, lambda item: item.score)
    assert [item.score for item in selector.get_descending()] == [5, 3, 3]
