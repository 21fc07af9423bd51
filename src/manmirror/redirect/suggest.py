"""Prefix completion over ``<name>.<section>`` strings."""

from __future__ import annotations

from bisect import bisect_left

from manmirror.redirect.models import Index


MAX_SUGGESTIONS = 10


class SuggestionIndex:
    def __init__(self, names: list[str]) -> None:
        self._names = sorted(set(names))

    @classmethod
    def from_index(cls, index: Index) -> "SuggestionIndex":
        return cls([f"{name}.{entry.section}" for name, bucket in index.entries.items() for entry in bucket])

    def __len__(self) -> int:
        return len(self._names)

    def suggest(self, prefix: str, limit: int = MAX_SUGGESTIONS) -> list[str]:
        """Up to ``limit`` known names starting with ``prefix``, in sorted order."""

        result: list[str] = []
        position = bisect_left(self._names, prefix)
        while position < len(self._names) and len(result) < limit:
            name = self._names[position]
            if not name.startswith(prefix):
                break
            result.append(name)
            position += 1
        return result
