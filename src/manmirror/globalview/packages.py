"""Package catalog: parsing ``Packages`` listings and merging architectures."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
import logging
import threading
from typing import IO, Protocol

from debian.deb822 import Packages
from debian.debian_support import Version

from manmirror.archive.getter import ArchiveError
from manmirror.globalview.merge import iter_merged
from manmirror.globalview.pool import DEFAULT_WORKERS, run_parallel
from manmirror.manpage.meta import PkgMeta


LOGGER = logging.getLogger(__name__)

# Preferred when architectures tie: fetching the most popular architecture
# has the least impact on the mirrors' caches.
MOST_POPULAR_ARCHITECTURE = "amd64"
PACKAGE_COMPONENTS = ("main", "contrib")

_FIELDS = ["Package", "Source", "Version", "Filename", "Size", "SHA256"]

ContainsMans = Mapping[str, set[str]]


class Getter(Protocol):
    def get(self, path: str, sha256_hex: str) -> IO[bytes]: ...


@dataclass(slots=True)
class PackageEntry:
    release: str
    package: str
    source: str
    architecture: str
    filename: str
    version: Version
    sha256: str
    size: int

    def to_pkg_meta(self) -> PkgMeta:
        return PkgMeta(package=self.package, release=self.release, version=self.version)


def sort_key(entry: PackageEntry) -> tuple[str, str]:
    """Order of entries inside one ``Packages`` listing."""

    return (entry.source, entry.package)


def parse_packages(
    stream: IO[bytes] | Iterable[str],
    *,
    release: str,
    architecture: str,
    contains_mans: ContainsMans,
) -> Iterator[PackageEntry]:
    """Yield complete paragraphs of packages shipping documentation on ``architecture``."""

    for paragraph in Packages.iter_paragraphs(stream, fields=_FIELDS, use_apt_pkg=False):
        package = paragraph.get("Package", "").strip()
        raw_version = paragraph.get("Version", "").strip()
        filename = paragraph.get("Filename", "").strip()
        raw_size = paragraph.get("Size", "").strip()
        sha256 = paragraph.get("SHA256", "").strip()
        if not (package and raw_version and filename and raw_size and sha256):
            continue
        if architecture not in contains_mans.get(package, ()):
            continue

        size = int(raw_size)
        if size <= 0:
            continue

        # "Source: foo (1.2-3)" names a source version differing from the binary's.
        source = paragraph.get("Source", "").strip().split(" ", 1)[0] or package
        yield PackageEntry(
            release=release,
            package=package,
            source=source,
            architecture=architecture,
            filename=filename,
            version=Version(raw_version),
            sha256=sha256.lower(),
            size=size,
        )


def pick_representative(group: Sequence[PackageEntry]) -> PackageEntry:
    """Newest version wins; ties prefer the most popular architecture, then the first entry."""

    newest = group[0]
    for entry in group[1:]:
        if entry.version > newest.version:
            newest = entry

    tied = [entry for entry in group if entry.version == newest.version]
    for entry in tied:
        if entry.architecture == MOST_POPULAR_ARCHITECTURE:
            return entry
    return tied[0]


def merge_packages(
    streams: Sequence[Iterable[PackageEntry]],
    *,
    into: dict[str, PackageEntry] | None = None,
) -> dict[str, PackageEntry]:
    """Merge per-architecture package streams into one entry per ``release/package``.

    ``into`` carries entries from previously merged components; an existing
    entry is only replaced by a version that is at least as new.
    """

    by_key: dict[str, PackageEntry] = {} if into is None else into
    for group in iter_merged(streams, sort_key):
        best = pick_representative([entry for _, entry in group])
        key = f"{best.release}/{best.package}"
        existing = by_key.get(key)
        if existing is not None and existing.version > best.version:
            continue
        by_key[key] = best
    return by_key


def _packages_path(component: str, architecture: str, hash_by_filename: Mapping[str, str]) -> str:
    # gzip decompresses faster than xz.
    for suffix in ("gz", "xz"):
        path = f"{component}/binary-{architecture}/Packages.{suffix}"
        if path in hash_by_filename:
            return path
    raise ArchiveError(
        path=f"{component}/binary-{architecture}/Packages",
        message="Expected package listing not found in Release file",
    )


def fetch_packages(
    getter: Getter,
    *,
    release: str,
    architectures: Sequence[str],
    hash_by_filename: Mapping[str, str],
    contains_mans: ContainsMans,
    components: Sequence[str] = PACKAGE_COMPONENTS,
    max_workers: int = DEFAULT_WORKERS,
    cancel: threading.Event | None = None,
) -> tuple[list[PackageEntry], dict[str, PkgMeta]]:
    """Download and merge package listings of all components and architectures.

    Returns the merged entries in key order plus the latest ``PkgMeta`` per
    ``release/package``.
    """

    by_key: dict[str, PackageEntry] = {}
    for component in components:

        def download(architecture: str, component: str = component) -> IO[bytes]:
            path = _packages_path(component, architecture, hash_by_filename)
            return getter.get(f"dists/{release}/{path}", hash_by_filename[path])

        handles = run_parallel(
            download,
            list(architectures),
            max_workers=max_workers,
            cancel=cancel,
            cleanup=lambda handle: handle.close(),
        )
        try:
            streams = [
                parse_packages(handle, release=release, architecture=architecture, contains_mans=contains_mans)
                for handle, architecture in zip(handles, architectures)
            ]
            merge_packages(streams, into=by_key)
        finally:
            for handle in handles:
                handle.close()

    entries = [by_key[key] for key in sorted(by_key)]
    latest_version = {key: entry.to_pkg_meta() for key, entry in by_key.items()}
    LOGGER.info("Merged %d packages from release %r", len(entries), release)
    return entries, latest_version
