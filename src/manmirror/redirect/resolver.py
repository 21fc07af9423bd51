"""Resolving request paths to the serving path of one concrete document."""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging

from manmirror.manpage.matching import parse_accept_language
from manmirror.redirect.models import ANY_SECTION, Index, IndexEntry, NotFoundError, PathKey
from manmirror.redirect.narrow import DEFAULT_RELEASE, narrow
from manmirror.redirect.split import is_legacy_path, normalize_request_path, split, split_legacy


LOGGER = logging.getLogger(__name__)

HTML_SUFFIX = ".html"
RAW_SUFFIX = ".gz"
_NO_SUGGESTION_NAMES = frozenset({"index", "favicon"})


@dataclass(frozen=True, slots=True)
class Overrides:
    """Explicit field values, e.g. from query parameters; they replace path-derived values."""

    release: str = ""
    package: str = ""
    section: str = ""
    language: str = ""

    def apply(self, key: PathKey) -> PathKey:
        return replace(
            key,
            release=self.release or key.release,
            package=self.package or key.package,
            section=self.section or key.section,
            language=self.language or key.language,
        )


def _is_reserved(path: str) -> bool:
    return path.endswith("/") or path.endswith("/index.html") or path.startswith("/contents-")


def _strip_suffixes(path: str) -> tuple[str, str]:
    suffix = HTML_SUFFIX
    # Raw manpages redirect to raw manpages.
    if path.endswith(RAW_SUFFIX) and not path.endswith(HTML_SUFFIX + RAW_SUFFIX):
        suffix = RAW_SUFFIX
    while path.endswith(HTML_SUFFIX) or path.endswith(RAW_SUFFIX):
        path = path.removesuffix(RAW_SUFFIX).removesuffix(HTML_SUFFIX)
    return path, suffix


def _candidates(index: Index, name: str) -> tuple[IndexEntry, ...]:
    lowered = name.lower()
    # Like man(1), retry with originally whitespace-separated parts joined.
    for candidate in (lowered, lowered.replace(".", "-"), lowered.replace(".", "_")):
        entries = index.entries.get(candidate)
        if entries:
            return entries
    return ()


def parse_request(index: Index, request_path: str) -> tuple[PathKey, str]:
    """Decompose ``request_path`` into a key with canonical release and the target suffix."""

    path, suffix = _strip_suffixes(request_path)
    path = normalize_request_path(path)

    vocabulary = index.vocabulary
    key = split_legacy(path, vocabulary) if is_legacy_path(path, vocabulary) else split(path, vocabulary)
    if key.release:
        key = replace(key, release=vocabulary.canonical_release(key.release))
    if key.section == ANY_SECTION:
        key = replace(key, section="")
    return key, suffix


def resolve(
    index: Index,
    request_path: str,
    *,
    accept_language: str | None = None,
    overrides: Overrides | None = None,
    referrer_release: str = "",
    default_release: str = DEFAULT_RELEASE,
) -> str:
    """Return the serving path (with ``.html`` or ``.gz`` suffix) for ``request_path``.

    Raises ``NotFoundError`` for anything that cannot be resolved, carrying
    another variant of the requested name as suggestion where one exists.
    """

    if _is_reserved(request_path):
        raise NotFoundError()

    key, suffix = parse_request(index, request_path)
    if overrides is not None:
        key = overrides.apply(key)
        if overrides.release:
            key = replace(key, release=index.vocabulary.canonical_release(key.release))
        if key.section == ANY_SECTION:
            key = replace(key, section="")
    referrer_release = index.vocabulary.canonical_release(referrer_release) if referrer_release else ""

    LOGGER.debug(
        "path %r -> release=%r, package=%r, name=%r, section=%r, language=%r",
        request_path,
        key.release,
        key.package,
        key.name,
        key.section,
        key.language,
    )

    entries = _candidates(index, key.name)
    if not entries:
        raise NotFoundError(manpage=key.name)

    preferences = parse_accept_language(accept_language)
    filtered = narrow(
        key,
        entries,
        accept_language=preferences,
        referrer_release=referrer_release,
        default_release=default_release,
    )
    if filtered:
        return filtered[0].serving_path(suffix)

    best_choice = None
    if key.name not in _NO_SUGGESTION_NAMES:
        fallback = narrow(
            PathKey(name=key.name),
            entries,
            accept_language=preferences,
            referrer_release=referrer_release,
            default_release=default_release,
        )
        best_choice = fallback[0] if fallback else None
    raise NotFoundError(manpage=key.name, best_choice=best_choice)
