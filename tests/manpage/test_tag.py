from __future__ import annotations

import pytest

from manmirror.manpage.tag import (
    InvalidLanguageTagError,
    LocaleError,
    UnknownModifierError,
    resolve_tag,
    strip_codeset,
    tag_string,
)


def test_strip_codeset_keeps_modifier() -> None:
    assert strip_codeset("de_DE.UTF-8") == "de_DE"
    assert strip_codeset("sr_RS.UTF-8@latin") == "sr_RS@latin"
    assert strip_codeset("fr") == "fr"


def test_territory_locale_resolves_to_region_tag() -> None:
    tag = resolve_tag("pt_BR")

    assert tag.language == "pt"
    assert tag.territory == "BR"
    assert tag.to_tag() == "pt-BR"


def test_modifiers_map_to_scripts_and_variants() -> None:
    assert tag_string("sr@latin") == "sr-Latn"
    assert tag_string("sr@Latn") == "sr-Latn"
    assert tag_string("sr@cyrillic") == "sr-Cyrl"
    assert tag_string("ca@valencia") == "ca-valencia"
    assert tag_string("sr@ijekavianlatin") == "sr-Latn-ijekavsk"


def test_obsolete_modifiers_are_dropped() -> None:
    assert tag_string("de_DE@euro") == "de-DE"
    assert tag_string("ja@cjknarrow") == "ja"


def test_codeset_is_ignored() -> None:
    assert tag_string("de_DE.ISO-8859-1") == "de-DE"


def test_unknown_modifier_is_a_typed_error() -> None:
    with pytest.raises(UnknownModifierError, match="bogus") as excinfo:
        resolve_tag("de@bogus")

    assert excinfo.value.modifier == "bogus"
    assert excinfo.value.locale == "de@bogus"
    assert isinstance(excinfo.value, LocaleError)


def test_empty_locale_is_rejected() -> None:
    with pytest.raises(InvalidLanguageTagError):
        resolve_tag("")
