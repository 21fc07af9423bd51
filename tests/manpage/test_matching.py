from __future__ import annotations

from dataclasses import dataclass

import langcodes
import pytest

from manmirror.manpage.matching import best_language_match, by_package_then_language, parse_accept_language


@dataclass(frozen=True)
class _Variant:
    package: str
    language: str


def _tags(header: str) -> list[str]:
    return [tag.to_tag() for tag in parse_accept_language(header)]


def test_parse_accept_language_orders_by_quality() -> None:
    assert _tags("fr-CH, fr;q=0.9, en;q=0.8, de;q=0.7, *;q=0.5") == ["fr-CH", "fr", "en", "de"]
    assert _tags("de;q=0.5, en") == ["en", "de"]


def test_parse_accept_language_skips_garbage() -> None:
    assert _tags("") == []
    assert _tags("*") == []
    assert _tags("en;q=0, fr;q=abc, de") == ["de"]


def test_by_package_then_language_prefers_current_package() -> None:
    variants = [_Variant("b", "de"), _Variant("a", "fr"), _Variant("a", "de")]

    ordered = sorted(variants, key=by_package_then_language("a"))

    assert ordered == [_Variant("a", "de"), _Variant("a", "fr"), _Variant("b", "de")]


def test_empty_preferences_select_english() -> None:
    options = [_Variant("i3-wm", "fr"), _Variant("i3-wm", "en"), _Variant("i3-wm", "de")]

    assert best_language_match([], options) == _Variant("i3-wm", "en")


def test_without_english_the_first_sorted_option_is_default() -> None:
    options = [_Variant("manpages-pl", "pl"), _Variant("manpages-de", "de")]

    assert best_language_match([], options) == _Variant("manpages-de", "de")


def test_regional_preference_matches_base_language() -> None:
    options = [_Variant("i3-wm", "en"), _Variant("i3-wm", "fr")]

    best = best_language_match(parse_accept_language("fr-CH, fr;q=0.9, en;q=0.8"), options)

    assert best == _Variant("i3-wm", "fr")


def test_unavailable_preference_falls_through_to_next() -> None:
    options = [_Variant("manpages-pl-dev", "pl"), _Variant("manpages-dev", "en")]

    best = best_language_match(parse_accept_language("fr-CH, fr;q=0.9, en;q=0.8, de;q=0.7"), options)

    assert best == _Variant("manpages-dev", "en")


def test_locale_style_languages_are_matched() -> None:
    options = [_Variant("apt", "en"), _Variant("apt", "pt"), _Variant("apt", "pt_BR")]

    best = best_language_match([langcodes.Language.get("pt-BR")], options)

    assert best == _Variant("apt", "pt_BR")


def test_same_package_translation_wins_ties() -> None:
    options = [_Variant("cron", "de"), _Variant("systemd-cron", "de")]

    best = best_language_match([langcodes.Language.get("de")], options, current_package="systemd-cron")

    assert best == _Variant("systemd-cron", "de")


def test_best_language_match_requires_options() -> None:
    with pytest.raises(ValueError):
        best_language_match([], [])
