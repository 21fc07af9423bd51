"""Staged narrowing of a candidate bucket down to the best matching document.

Each stage fixes one field of the request key (release, section, language,
package) unless the request already specified it, then filters the
candidates. Explicit fields are never overridden: once the key is fully
specified and names an existing document, narrowing stops.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

import langcodes

from manmirror.manpage.matching import best_language_match
from manmirror.redirect.models import IndexEntry, PathKey


DEFAULT_RELEASE = "bookworm"

# Default section search order of man(1).
MANSECT = ("1", "n", "l", "8", "3", "2", "3posix", "3pm", "3perl", "3am", "5", "4", "9", "6", "7")
_MANSECT_ORDER = {section: position for position, section in enumerate(MANSECT)}


def by_subsection_specificity(entry: IndexEntry) -> tuple[str, int]:
    """Main section ascending; within it, sub-sections (``3edit``) before ``3``."""

    return (entry.main_section, -len(entry.section))


def by_search_order(entry: IndexEntry) -> tuple[int, int, str]:
    """man(1) search order; sections it does not list come after, alphabetically."""

    position = _MANSECT_ORDER.get(entry.section)
    if position is None:
        return (1, 0, entry.section)
    return (0, position, "")


def _consistent(entry: IndexEntry, key: PathKey) -> bool:
    return (
        (not key.release or entry.release == key.release)
        and (not key.section or entry.main_section == key.section[:1])
        and (not key.language or entry.language == key.language)
        and (not key.package or entry.package == key.package)
    )


def _exact(key: PathKey, filtered: list[IndexEntry]) -> list[IndexEntry]:
    return [entry for entry in filtered if key.matches(entry)]


def pick_release(
    candidates: Sequence[IndexEntry],
    *,
    referrer_release: str = "",
    default_release: str = DEFAULT_RELEASE,
) -> str:
    """Referrer release, then the default release, then the first release available."""

    releases = {entry.release for entry in candidates}
    if referrer_release and referrer_release in releases:
        return referrer_release
    if default_release and default_release in releases:
        return default_release
    if candidates:
        return candidates[0].release
    return ""


def narrow(
    key: PathKey,
    entries: Sequence[IndexEntry],
    *,
    accept_language: Sequence[langcodes.Language] = (),
    referrer_release: str = "",
    default_release: str = DEFAULT_RELEASE,
) -> list[IndexEntry]:
    """Return the candidates left after all stages; the first one is the answer.

    An empty list means no document satisfies the explicitly requested fields.
    """

    candidates = sorted(entries, key=IndexEntry.sort_key)

    def fully_qualified() -> bool:
        return key.fully_specified and any(key.matches(entry) for entry in candidates)

    filtered = [entry for entry in candidates if _consistent(entry, key)]

    if not key.release:
        key = replace(
            key,
            release=pick_release(filtered, referrer_release=referrer_release, default_release=default_release),
        )
    filtered = [entry for entry in filtered if entry.release == key.release]
    if not filtered:
        return []
    if fully_qualified():
        return _exact(key, filtered)

    if len(key.section) > 1:
        filtered.sort(key=by_subsection_specificity)
    else:
        filtered.sort(key=by_search_order)
    if not key.section:
        key = replace(key, section=filtered[0].section)
    filtered = [entry for entry in filtered if entry.main_section == key.section[:1]]
    if not filtered:
        return []
    if fully_qualified():
        return _exact(key, filtered)

    if not key.language:
        best = best_language_match(accept_language, filtered, current_package=key.package or None)
        key = replace(key, language=best.language)
    filtered = [entry for entry in filtered if entry.language == key.language]
    if not filtered:
        return []
    if fully_qualified():
        return _exact(key, filtered)

    if not key.package:
        key = replace(key, package=filtered[0].package)
    return [entry for entry in filtered if entry.package == key.package]
