"""Bounded fan-out/fan-in worker pool with early termination."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import threading
from typing import TypeVar


T = TypeVar("T")
R = TypeVar("R")

DEFAULT_WORKERS = 8


@dataclass(slots=True)
class WorkCancelledError(RuntimeError):
    """Raised when the caller's cancel event stopped dispatch before all work ran."""

    completed: int
    total: int

    def __str__(self) -> str:
        return f"Work cancelled after {self.completed} of {self.total} item(s)"


def run_parallel(
    func: Callable[[T], R],
    items: Sequence[T],
    *,
    max_workers: int = DEFAULT_WORKERS,
    cancel: threading.Event | None = None,
    cleanup: Callable[[R], object] | None = None,
) -> list[R]:
    """Run ``func`` over ``items`` on up to ``max_workers`` threads.

    Results keep the input order. The first exception stops dispatch of
    further items (in-flight items finish) and is re-raised once all workers
    have returned. Before raising, ``cleanup`` is called on the result of
    every item that did complete.
    """

    if max_workers < 1:
        raise ValueError("max_workers must be >= 1")
    if not items:
        return []

    stop = cancel if cancel is not None else threading.Event()
    results: list[R | None] = [None] * len(items)
    lock = threading.Lock()
    finished: list[int] = []
    state = {"next": 0}
    errors: list[Exception] = []

    def worker() -> None:
        while not stop.is_set():
            with lock:
                idx = state["next"]
                if idx >= len(items):
                    return
                state["next"] = idx + 1
            try:
                results[idx] = func(items[idx])
            except Exception as exc:
                with lock:
                    errors.append(exc)
                stop.set()
                return
            with lock:
                finished.append(idx)

    with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as executor:
        futures = [executor.submit(worker) for _ in range(min(max_workers, len(items)))]
        for future in futures:
            future.result()

    if errors or len(finished) != len(items):
        if cleanup is not None:
            for idx in finished:
                cleanup(results[idx])  # type: ignore[arg-type]
        if errors:
            raise errors[0]
        raise WorkCancelledError(completed=len(finished), total=len(items))
    return results  # type: ignore[return-value]
