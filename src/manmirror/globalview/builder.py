"""Global view: the canonical per-release catalog and the cross-reference table."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
import logging
from pathlib import Path
import threading
from typing import IO, Protocol

from manmirror.archive.getter import Release
from manmirror.globalview.alternatives import Link, parse_alternatives_dir
from manmirror.globalview.contents import MAN_PREFIX, ContentEntry, build_contains_mans, fetch_contents
from manmirror.globalview.packages import MOST_POPULAR_ARCHITECTURE, PackageEntry, fetch_packages
from manmirror.globalview.pool import DEFAULT_WORKERS
from manmirror.manpage.matching import best_language_match
from manmirror.manpage.meta import MalformedPathError, Meta, PkgMeta, from_man_path


LOGGER = logging.getLogger(__name__)


class ReleaseGetter(Protocol):
    def get_release(self, name: str) -> Release: ...

    def get(self, path: str, sha256_hex: str) -> IO[bytes]: ...


class Identifier(Enum):
    CODENAME = "codename"
    SUITE = "suite"


@dataclass(frozen=True, slots=True)
class Distribution:
    name: str
    identifier: Identifier


def distributions(codenames: Iterable[str], suites: Iterable[str]) -> list[Distribution]:
    """Distributions requested by codename (e.g. bookworm) or suite (e.g. testing)."""

    result = [Distribution(name.strip(), Identifier.CODENAME) for name in codenames if name.strip()]
    result.extend(Distribution(name.strip(), Identifier.SUITE) for name in suites if name.strip())
    return result


@dataclass(slots=True)
class UnknownPackageError(LookupError):
    """A documentation file belongs to a package missing from the package catalog."""

    key: str

    def __str__(self) -> str:
        return f"Could not determine latest version of {self.key!r}"


@dataclass(slots=True)
class GlobalView:
    packages: list[PackageEntry] = field(default_factory=list)
    releases: set[str] = field(default_factory=set)
    release_aliases: dict[str, str] = field(default_factory=dict)
    content_by_path: dict[str, list[ContentEntry]] = field(default_factory=dict)
    xref: dict[str, list[Meta]] = field(default_factory=dict)
    alternatives: dict[str, list[Link]] = field(default_factory=dict)
    known_issues: dict[str, list[Exception]] = field(default_factory=dict)

    def resolve_reference(self, current: Meta, reference: str) -> str:
        """Turn a ``name(section)`` reference found in ``current`` into a URL path.

        Only documents of the same release whose main section matches are
        considered; the best language variant for ``current`` wins. Returns
        an empty string when nothing matches.
        """

        idx = reference.rfind("(")
        if idx <= 0 or not reference.endswith(")"):
            return ""
        name = reference[:idx]
        section = reference[idx + 1 : -1]
        if not section:
            return ""

        candidates = [
            meta
            for meta in self.xref.get(name, ())
            if meta.main_section == section[:1] and meta.release == current.release
        ]
        if not candidates:
            return ""
        best = best_language_match([current.language_tag], candidates, current_package=current.package)
        return "/" + best.serving_path() + ".html"


def mark_present(
    latest_version: Mapping[str, PkgMeta],
    xref: dict[str, list[Meta]],
    filename: str,
    key: str,
) -> Meta | None:
    """Record ``filename`` of package ``key`` (``release/package``) in ``xref``.

    Returns the new identity, or ``None`` when an identical serving path is
    already known (the same document shipped in several encodings).
    """

    pkg = latest_version.get(key)
    if pkg is None:
        raise UnknownPackageError(key=key)

    relative = filename[len(MAN_PREFIX) :] if filename.startswith(MAN_PREFIX) else filename
    meta = from_man_path(relative, pkg)

    bucket = xref.setdefault(meta.name, [])
    serving_path = meta.serving_path()
    if any(existing.serving_path() == serving_path for existing in bucket):
        return None
    bucket.append(meta)
    return meta


def _ordered_architectures(architectures: Sequence[str]) -> list[str]:
    ordered = [arch for arch in architectures if arch == MOST_POPULAR_ARCHITECTURE]
    ordered.extend(arch for arch in architectures if arch != MOST_POPULAR_ARCHITECTURE)
    return ordered


def build_global_view(
    getter: ReleaseGetter,
    dists: Sequence[Distribution],
    *,
    alternatives_dir: str | Path | None = None,
    max_workers: int = DEFAULT_WORKERS,
    cancel: threading.Event | None = None,
) -> GlobalView:
    """Build the catalog of every distribution in ``dists``.

    Archive errors propagate; files whose path cannot be interpreted are
    recorded in ``known_issues`` and logged.
    """

    view = GlobalView(alternatives=parse_alternatives_dir(alternatives_dir))

    for dist in dists:
        release = getter.get_release(dist.name)
        name = release.codename if dist.identifier is Identifier.CODENAME else release.suite
        if not name:
            name = dist.name

        view.releases.add(name)
        for alias in (release.suite, release.codename, dist.name):
            if alias:
                view.release_aliases[alias] = name

        architectures = _ordered_architectures(release.architectures)
        content = fetch_contents(
            getter,
            release=name,
            architectures=architectures,
            hash_by_filename=release.sha256,
            max_workers=max_workers,
            cancel=cancel,
        )
        for entry in content:
            view.content_by_path.setdefault(entry.filename, []).append(entry)

        prefix = f"{name}/"
        alternatives_packages = [key[len(prefix) :] for key in view.alternatives if key.startswith(prefix)]
        contains_mans = build_contains_mans(content, alternatives_packages, architectures=architectures)

        packages, latest_version = fetch_packages(
            getter,
            release=name,
            architectures=architectures,
            hash_by_filename=release.sha256,
            contains_mans=contains_mans,
            max_workers=max_workers,
            cancel=cancel,
        )
        LOGGER.info("Adding %d packages from release %r", len(packages), name)
        view.packages.extend(packages)

        issues: dict[str, list[Exception]] = {}
        for entry in content:
            key = f"{entry.release}/{entry.package}"
            try:
                mark_present(latest_version, view.xref, entry.filename, key)
            except (UnknownPackageError, MalformedPathError) as exc:
                issues.setdefault(key, []).append(exc)

        for key, links in view.alternatives.items():
            if not key.startswith(prefix):
                continue
            for link in links:
                try:
                    mark_present(latest_version, view.xref, link.source.lstrip("/"), key)
                except (UnknownPackageError, MalformedPathError) as exc:
                    issues.setdefault(key, []).append(exc)

        for key, errors in sorted(issues.items()):
            LOGGER.warning("package %r has errors: %s", key, "; ".join(str(error) for error in errors))
        view.known_issues.update(issues)

    return view
