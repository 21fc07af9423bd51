"""The live redirect index, swapped atomically after canary validation."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
import logging
import threading

from manmirror.redirect.models import Index, NotFoundError
from manmirror.redirect.narrow import DEFAULT_RELEASE
from manmirror.redirect.resolver import Overrides, resolve
from manmirror.redirect.suggest import SuggestionIndex


LOGGER = logging.getLogger(__name__)

DEFAULT_CANARY_PATH = "/i3"
DEFAULT_CANARY_SUFFIX = "i3.1.en.html"


@dataclass(slots=True)
class IndexValidationError(RuntimeError):
    """A new index failed the canary lookup; the previous index stays live."""

    canary_path: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (canary={self.canary_path!r})"


class _ReadWriteLock:
    """Many concurrent readers or one writer; a waiting writer blocks new readers."""

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._condition:
            while self._writer or self._writers_waiting:
                self._condition.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                if self._readers == 0:
                    self._condition.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._condition:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._condition.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._condition:
                self._writer = False
                self._condition.notify_all()


class IndexStore:
    """Owns the current ``Index`` and its suggestion index.

    Lookups hold the read lock for one resolution only; ``swap`` builds and
    validates everything off to the side and takes the write lock just to
    replace the references.
    """

    def __init__(
        self,
        index: Index,
        *,
        default_release: str = DEFAULT_RELEASE,
        canary_path: str = DEFAULT_CANARY_PATH,
        canary_suffix: str = DEFAULT_CANARY_SUFFIX,
    ) -> None:
        self._lock = _ReadWriteLock()
        self._default_release = default_release
        self._canary_path = canary_path
        self._canary_suffix = canary_suffix
        self._index = index
        self._suggestions = SuggestionIndex.from_index(index)

    @property
    def default_release(self) -> str:
        return self._default_release

    @property
    def index(self) -> Index:
        with self._lock.read():
            return self._index

    def resolve(
        self,
        request_path: str,
        *,
        accept_language: str | None = None,
        overrides: Overrides | None = None,
        referrer_release: str = "",
    ) -> str:
        with self._lock.read():
            return resolve(
                self._index,
                request_path,
                accept_language=accept_language,
                overrides=overrides,
                referrer_release=referrer_release,
                default_release=self._default_release,
            )

    def suggest(self, prefix: str) -> list[str]:
        with self._lock.read():
            return self._suggestions.suggest(prefix)

    def is_release(self, value: str) -> bool:
        with self._lock.read():
            return value in self._index.suites

    def validate(self, index: Index) -> str:
        """Resolve the canary path against ``index``; return the target or raise."""

        try:
            target = resolve(index, self._canary_path, default_release=self._default_release)
        except NotFoundError as exc:
            raise IndexValidationError(canary_path=self._canary_path, message=f"Canary lookup failed: {exc}") from exc
        if not target.endswith(self._canary_suffix):
            raise IndexValidationError(
                canary_path=self._canary_path,
                message=f"Canary does not lead to {self._canary_suffix}: got {target!r}",
            )
        return target

    def swap(self, index: Index) -> None:
        """Make ``index`` live if it passes validation."""

        try:
            self.validate(index)
        except IndexValidationError as exc:
            LOGGER.error("Rejected new index: %s", exc)
            raise
        suggestions = SuggestionIndex.from_index(index)

        with self._lock.write():
            self._index = index
            self._suggestions = suggestions
        LOGGER.info("Swapped in new index with %d entries", len(index))
