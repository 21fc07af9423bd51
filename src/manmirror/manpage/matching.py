"""Best-variant language matching shared by the redirector and the renderer."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from functools import lru_cache
from typing import Protocol, TypeVar

import langcodes
from langcodes.tag_parser import LanguageTagError

from manmirror.manpage.meta import DEFAULT_LANGUAGE
from manmirror.manpage.tag import LocaleError, tag_string


MAX_MATCH_DISTANCE = 25
_UNDETERMINED = "und"


class LanguageVariant(Protocol):
    @property
    def package(self) -> str: ...

    @property
    def language(self) -> str: ...


VariantT = TypeVar("VariantT", bound=LanguageVariant)


def _parse_quality(raw: str) -> float | None:
    try:
        quality = float(raw)
    except ValueError:
        return None
    if not 0.0 <= quality <= 1.0:
        return None
    return quality


def parse_accept_language(header: str | None) -> list[langcodes.Language]:
    """Parse an ``Accept-Language`` header into tags ordered by preference.

    Wildcards, zero-weighted and malformed entries are skipped, so a garbage
    header yields an empty list (which selects the default variant).
    """

    if not header:
        return []

    weighted: list[tuple[float, int, langcodes.Language]] = []
    for position, item in enumerate(header.split(",")):
        fields = [value.strip() for value in item.split(";")]
        tag = fields[0]
        if not tag or tag == "*":
            continue

        quality: float | None = 1.0
        for param in fields[1:]:
            key, _, value = param.partition("=")
            if key.strip().lower() == "q":
                quality = _parse_quality(value.strip())
        if quality is None or quality == 0.0:
            continue

        try:
            language = langcodes.Language.get(tag)
        except LanguageTagError:
            continue
        weighted.append((quality, position, language))

    weighted.sort(key=lambda item: (-item[0], item[1]))
    return [language for _, _, language in weighted]


def by_package_then_language(current_package: str | None) -> Callable[[LanguageVariant], tuple[int, str]]:
    """Sort key: variants from ``current_package`` first, then by language code."""

    def key(variant: LanguageVariant) -> tuple[int, str]:
        return (0 if current_package and variant.package == current_package else 1, variant.language)

    return key


@lru_cache(maxsize=4096)
def _variant_tag(language: str) -> str:
    try:
        return tag_string(language)
    except LocaleError:
        return _UNDETERMINED


def _english_first(options: list[VariantT]) -> list[VariantT]:
    # The matcher treats the first supported tag as its fallback.
    for idx, option in enumerate(options):
        if option.language == DEFAULT_LANGUAGE:
            if idx == 0:
                return options
            return [option] + options[:idx] + options[idx + 1 :]
    return options


def best_language_match(
    requested: Sequence[langcodes.Language],
    options: Sequence[VariantT],
    *,
    current_package: str | None = None,
) -> VariantT:
    """Return the option whose language best serves ``requested``.

    ``requested`` is in preference order. An empty list selects the default:
    the English variant when present, else the first option in
    package-then-language order.
    """

    if not options:
        raise ValueError("best_language_match needs at least one option")

    ordered = _english_first(sorted(options, key=by_package_then_language(current_package)))
    supported = [_variant_tag(option.language) for option in ordered]

    for desired in requested:
        match, _distance = langcodes.closest_match(desired.to_tag(), supported, max_distance=MAX_MATCH_DISTANCE)
        if match != _UNDETERMINED and match in supported:
            return ordered[supported.index(match)]

    return ordered[0]
