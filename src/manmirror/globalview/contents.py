"""Documentation file catalog from the archive's ``Contents-<arch>`` listings."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
import io
import logging
import threading
from typing import IO

from manmirror.archive.getter import ArchiveError
from manmirror.globalview.merge import iter_merged
from manmirror.globalview.packages import MOST_POPULAR_ARCHITECTURE, Getter
from manmirror.globalview.pool import DEFAULT_WORKERS, run_parallel


LOGGER = logging.getLogger(__name__)

MAN_PREFIX = "usr/share/man/"
CONTENTS_COMPONENT = "main"


@dataclass(slots=True)
class ContentEntry:
    """One documentation file shipped by one package; ``filename`` is relative to ``MAN_PREFIX``."""

    release: str
    architecture: str
    package: str
    filename: str


@dataclass(slots=True)
class _ContentsLine:
    filename: str
    packages: list[str]


def parse_contents(lines: Iterable[str]) -> Iterator[_ContentsLine]:
    """Yield documentation lines of a ``Contents`` listing.

    Each line is ``<path> <section/pkg>[,<section/pkg>...]``; the path may
    contain spaces, the package list never does.
    """

    for line in lines:
        if not line.startswith(MAN_PREFIX):
            continue
        path, sep, locations = line.rstrip("\n").rpartition(" ")
        if not sep:
            continue
        packages = [location.rsplit("/", 1)[-1] for location in locations.split(",") if "/" in location]
        if not packages:
            continue
        yield _ContentsLine(filename=path[len(MAN_PREFIX):].strip(), packages=packages)


def _preference_order(architectures: Sequence[str]) -> list[str]:
    ordered = [arch for arch in architectures if arch == MOST_POPULAR_ARCHITECTURE]
    ordered.extend(arch for arch in architectures if arch != MOST_POPULAR_ARCHITECTURE)
    return ordered


def merge_contents(
    streams: Sequence[Iterable[str]],
    *,
    release: str,
    architectures: Sequence[str],
) -> list[ContentEntry]:
    """Merge per-architecture ``Contents`` streams, one entry per (file, package).

    ``streams[i]`` belongs to ``architectures[i]``. When several architectures
    ship the same file in the same package, the most popular architecture
    is recorded, else the first in ``architectures``.
    """

    if len(streams) != len(architectures):
        raise ValueError("streams and architectures must have the same length")

    rank = {arch: position for position, arch in enumerate(_preference_order(architectures))}
    parsed = [parse_contents(stream) for stream in streams]

    entries: list[ContentEntry] = []
    for group in iter_merged(parsed, key=lambda line: line.filename):
        group.sort(key=lambda member: rank[architectures[member[0]]])
        arch_by_package: dict[str, str] = {}
        for stream_index, line in group:
            for package in line.packages:
                arch_by_package.setdefault(package, architectures[stream_index])

        filename = group[0][1].filename
        for package in sorted(arch_by_package):
            entries.append(
                ContentEntry(
                    release=release,
                    architecture=arch_by_package[package],
                    package=package,
                    filename=filename,
                )
            )
    return entries


def build_contains_mans(
    content: Iterable[ContentEntry],
    alternatives_packages: Iterable[str] = (),
    *,
    architectures: Sequence[str] = (),
) -> dict[str, set[str]]:
    """Map binary package to the architectures on which it ships documentation.

    Packages that only provide alternatives-managed links count as shipping
    documentation on every architecture of the release.
    """

    contains_mans: dict[str, set[str]] = {}
    for entry in content:
        contains_mans.setdefault(entry.package, set()).add(entry.architecture)
    for package in alternatives_packages:
        contains_mans.setdefault(package, set()).update(architectures)
    LOGGER.info("%d content entries, %d packages", sum(len(v) for v in contains_mans.values()), len(contains_mans))
    return contains_mans


def fetch_contents(
    getter: Getter,
    *,
    release: str,
    architectures: Sequence[str],
    hash_by_filename: Mapping[str, str],
    max_workers: int = DEFAULT_WORKERS,
    cancel: threading.Event | None = None,
) -> list[ContentEntry]:
    """Download the ``main`` component's ``Contents-<arch>.gz`` files and merge them."""

    def download(architecture: str) -> IO[bytes]:
        path = f"{CONTENTS_COMPONENT}/Contents-{architecture}.gz"
        if path not in hash_by_filename:
            raise ArchiveError(path=path, message="Expected contents listing not found in Release file")
        return getter.get(f"dists/{release}/{path}", hash_by_filename[path])

    handles = run_parallel(
        download,
        list(architectures),
        max_workers=max_workers,
        cancel=cancel,
        cleanup=lambda handle: handle.close(),
    )
    try:
        streams = [io.TextIOWrapper(handle, encoding="utf-8", errors="replace") for handle in handles]
        return merge_contents(streams, release=release, architectures=architectures)
    finally:
        for handle in handles:
            handle.close()
