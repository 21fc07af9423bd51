"""Package archive access."""

from .getter import ArchiveError, ArchiveGetter, HashMismatchError, Release, TransientArchiveError, parse_release

__all__ = [
    "ArchiveError",
    "ArchiveGetter",
    "HashMismatchError",
    "Release",
    "TransientArchiveError",
    "parse_release",
]
