"""Fixed-capacity min-heap for "best k of n" selection."""

from __future__ import annotations

import math
from typing import Callable, Generic, Iterable, TypeVar

T = TypeVar("T")


def _safe_score(value) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return -math.inf
    if math.isnan(score) or math.isinf(score):
        return -math.inf
    return score


class BoundedTopKSelector(Generic[T]):
    """Keep the k highest scoring items seen so far.

    The root of the heap is always the weakest kept item, so a new item only
    costs a comparison unless it beats the root. Adding n items is
    O(n log k) time and O(k) space.

    Scores that are missing, non-numeric or non-finite are treated as
    negative infinity and can never evict a valid entry.

    Items with equal scores come out in heap order, which depends on arrival
    order but is not a stable tie-break. Add a secondary key to ``score_fn``
    (for example by returning a composite float) if ties must be
    deterministic.

    An instance is owned by one query and is not safe for concurrent ``add``
    calls.
    """

    def __init__(self, k: int, score_fn: Callable[[T], float]) -> None:
        self.k = max(0, int(k or 0))
        self.score_fn = score_fn
        self._heap: list[tuple[float, T]] = []

    @classmethod
    def from_iterable(cls, items: Iterable[T], k: int, score_fn: Callable[[T], float]) -> "BoundedTopKSelector[T]":
        selector = cls(k, score_fn)
        for item in items:
            selector.add(item)
        return selector

    def __len__(self) -> int:
        return len(self._heap)

    def add(self, item: T) -> None:
        if self.k <= 0:
            return

        score = _safe_score(self.score_fn(item))
        heap = self._heap

        if len(heap) < self.k:
            heap.append((score, item))
            self._sift_up(heap, len(heap) - 1)
            return

        if score <= heap[0][0]:
            return

        heap[0] = (score, item)
        self._sift_down(heap, 0)

    def get_descending(self) -> list[T]:
        """Return the kept items, highest score first.

        Drains a copy of the heap, so the selector can keep taking items.
        """
        heap = list(self._heap)
        out: list[T | None] = [None] * len(heap)
        write = len(heap) - 1
        while heap:
            _score, item = self._pop_smallest(heap)
            out[write] = item
            write -= 1
        return out  # type: ignore[return-value]

    @staticmethod
    def _sift_up(heap: list, index: int) -> None:
        i = index
        while i > 0:
            parent = (i - 1) // 2
            if heap[parent][0] <= heap[i][0]:
                break
            heap[i], heap[parent] = heap[parent], heap[i]
            i = parent

    @staticmethod
    def _sift_down(heap: list, index: int) -> None:
        i = index
        size = len(heap)
        while True:
            left = 2 * i + 1
            right = left + 1
            smallest = i
            if left < size and heap[left][0] < heap[smallest][0]:
                smallest = left
            if right < size and heap[right][0] < heap[smallest][0]:
                smallest = right
            if smallest == i:
                return
            heap[i], heap[smallest] = heap[smallest], heap[i]
            i = smallest

    @classmethod
    def _pop_smallest(cls, heap: list) -> tuple[float, T]:
        last = heap.pop()
        if not heap:
            return last
        root = heap[0]
        heap[0] = last
        cls._sift_down(heap, 0)
        return root
