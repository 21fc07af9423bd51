"""Decomposing request paths into a partial document key."""

from __future__ import annotations

from manmirror.redirect.models import PathKey, Vocabulary


LEGACY_PREFIX = "/man"


def normalize_request_path(path: str) -> str:
    """Turn ``i3(1)`` into ``i3.1``: parens become dots, doubled and trailing dots go away."""

    path = path.replace("(", ".").replace(")", ".")
    path = path.replace("..", ".")
    return path.removesuffix(".")


def is_legacy_path(path: str, vocabulary: Vocabulary) -> bool:
    """``/man/...`` or ``/man<section>/...``; packages such as ``man-db`` are not legacy."""

    if not path.startswith(LEGACY_PREFIX) or "/" not in path[1:]:
        return False
    first = path[1:].split("/", 1)[0]
    return first == "man" or vocabulary.is_section(first[len("man") :])


def split(path: str, vocabulary: Vocabulary) -> PathKey:
    """Split ``[/<release>][/<package>]/<name>[.<section>][.<language>]``.

    A single directory segment is a release alias, a legacy section or a
    package name, in that order of preference. ``<name>/<section>`` and
    ``<lang>/man<section>/<name>`` are accepted for compatibility.
    """

    directory, _, base = path.rpartition("/")
    directory = directory.lstrip("/")
    base = base.strip().replace(" ", ".")

    release = package = section = language = ""
    parts = directory.split("/") if directory else []
    if len(parts) == 1:
        segment = parts[0]
        if vocabulary.is_release(segment):
            release = segment
        elif vocabulary.is_section(segment):
            section = segment
        elif vocabulary.is_section(base):
            section = base
            base = segment
        else:
            package = segment
    elif len(parts) == 2 and parts[1].startswith("man") and vocabulary.is_section(parts[1][len("man") :]):
        language = parts[0]
        section = parts[1][len("man") :]
    elif len(parts) == 2:
        release, package = parts

    # The name can contain dots, so consume known suffixes from the right.
    tokens = base.split(".")
    if len(tokens) == 1:
        return PathKey(name=base, release=release, package=package, section=section, language=language)

    consumed = 0
    last = tokens[-1]
    if vocabulary.is_language(last):
        language = last
        consumed = 1
    elif vocabulary.is_section(last):
        section = last
        consumed = 1

    if len(tokens) > consumed + 1 and vocabulary.is_section(tokens[-1 - consumed]):
        section = tokens[-1 - consumed]
        consumed += 1

    name = ".".join(tokens[: len(tokens) - consumed])
    return PathKey(name=name, release=release, package=package, section=section, language=language)


def split_legacy(path: str, vocabulary: Vocabulary) -> PathKey:
    """Split historical ``/man/...`` and ``/man<N>/<name>`` shapes."""

    parts = path[1:].split("/")
    if len(parts) == 2:
        # /man/<name> and /man<section>/<name>
        return PathKey(name=parts[1], section=parts[0][len("man") :])
    if len(parts) == 3:
        # /man/<lang>/<name> and /man/<section>/<name>
        if vocabulary.is_language(parts[1]):
            return PathKey(name=parts[2], language=parts[1])
        if vocabulary.is_section(parts[1]):
            return PathKey(name=parts[2], section=parts[1])
    if len(parts) == 4:
        # /man/<release>/<section>/<name>
        return PathKey(name=parts[3], release=parts[1], section=parts[2])
    if len(parts) == 5:
        # /man/<release>/<lang>/<section>/<name>
        return PathKey(name=parts[4], release=parts[1], section=parts[3], language=parts[2])
    return PathKey()
