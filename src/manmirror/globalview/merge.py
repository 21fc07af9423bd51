"""k-way merge over per-architecture listings that are each sorted by key."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
import heapq
from typing import Any, TypeVar


T = TypeVar("T")


def iter_merged(
    streams: Sequence[Iterable[T]],
    key: Callable[[T], Any],
) -> Iterator[list[tuple[int, T]]]:
    """Yield groups of ``(stream_index, item)`` sharing the lowest unconsumed key.

    Only the cursors that contributed to a group are advanced, so at most one
    item per stream is held in memory. Groups come out in ascending key order
    and list their members in stream order.
    """

    cursors = [iter(stream) for stream in streams]
    heads: list[T | None] = [None] * len(cursors)
    heap: list[tuple[Any, int]] = []

    def advance(idx: int) -> None:
        for item in cursors[idx]:
            heads[idx] = item
            heapq.heappush(heap, (key(item), idx))
            return
        heads[idx] = None

    for idx in range(len(cursors)):
        advance(idx)

    while heap:
        lowest, first = heapq.heappop(heap)
        members = [first]
        while heap and heap[0][0] == lowest:
            members.append(heapq.heappop(heap)[1])
        members.sort()

        group = [(idx, heads[idx]) for idx in members]
        for idx in members:
            advance(idx)
        yield group  # type: ignore[misc]
