"""Debounced index file watcher with asyncio queue bridge."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import threading
from typing import Awaitable, Callable

from watchdog.events import FileSystemEvent, PatternMatchingEventHandler
from watchdog.observers import Observer


LOGGER = logging.getLogger(__name__)


class DebouncedIndexHandler(PatternMatchingEventHandler):
    """Emits the index path once writes to it have been quiet for ``debounce_seconds``."""

    def __init__(
        self,
        *,
        index_name: str,
        loop: asyncio.AbstractEventLoop,
        queue: asyncio.Queue[Path],
        debounce_seconds: float = 2.0,
    ) -> None:
        super().__init__(
            patterns=[index_name],
            ignore_directories=True,
            case_sensitive=True,
        )
        self._index_name = index_name
        self._loop = loop
        self._queue = queue
        self._debounce_seconds = debounce_seconds
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def _emit_path(self, raw_path: str) -> None:
        path = Path(raw_path)
        self._loop.call_soon_threadsafe(self._queue.put_nowait, path)

    def _schedule(self, raw_path: str) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self._debounce_seconds, self._emit_path, args=(raw_path,))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def on_created(self, event: FileSystemEvent) -> None:  # type: ignore[override]
        self._schedule(str(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:  # type: ignore[override]
        self._schedule(str(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:  # type: ignore[override]
        # Atomic writers rename a temporary file onto the index.
        destination = str(event.dest_path)
        if Path(destination).name == self._index_name:
            self._schedule(destination)

    def close(self) -> None:
        with self._lock:
            timer = self._timer
            self._timer = None
        if timer is not None:
            timer.cancel()


class IndexFileWatcher:
    def __init__(
        self,
        index_path: str | Path,
        callback: Callable[[Path], Awaitable[None]],
        debounce_seconds: float = 2.0,
    ) -> None:
        self._index_path = Path(index_path)
        self._callback = callback
        self._debounce_seconds = debounce_seconds
        self._queue: asyncio.Queue[Path] | None = None
        self._handler: DebouncedIndexHandler | None = None
        self._observer: Observer | None = None
        self._consumer_task: asyncio.Task[None] | None = None

    async def _consume(self) -> None:
        assert self._queue is not None
        while True:
            path = await self._queue.get()
            try:
                await self._callback(path)
            except Exception:  # pragma: no cover
                LOGGER.exception("Index reload failed for %s", path)
            finally:
                self._queue.task_done()

    async def start(self) -> None:
        if self._observer is not None:
            return
        watch_dir = self._index_path.parent
        if not watch_dir.is_dir():
            raise ValueError(f"Index directory does not exist or is not a directory: {watch_dir}")

        loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._handler = DebouncedIndexHandler(
            index_name=self._index_path.name,
            loop=loop,
            queue=self._queue,
            debounce_seconds=self._debounce_seconds,
        )

        observer = Observer()
        observer.schedule(self._handler, str(watch_dir), recursive=False)
        observer.start()
        self._observer = observer
        self._consumer_task = asyncio.create_task(self._consume())

    def stop(self) -> None:
        observer = self._observer
        if observer is not None:
            observer.stop()
            observer.join(timeout=5.0)
            self._observer = None

        if self._handler is not None:
            self._handler.close()
            self._handler = None

        if self._consumer_task is not None:
            self._consumer_task.cancel()
            self._consumer_task = None
