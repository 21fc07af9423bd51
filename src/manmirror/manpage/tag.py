"""Locale directory names to BCP-47 language tags."""

from __future__ import annotations

from dataclasses import dataclass

import langcodes
from langcodes.tag_parser import LanguageTagError


# See https://wiki.openoffice.org/wiki/LocaleMapping#Best_mapping
_MODIFIER_TO_BCP47: dict[str, str] = {
    "euro": "",  # obsolete
    "cjknarrow": "",
    "valencia": "-valencia",
    "latin": "-Latn",
    "Latn": "-Latn",
    "cyrillic": "-Cyrl",
    "Cyrl": "-Cyrl",
    "ijekavian": "-ijekavsk",
    "ijekavianlatin": "-Latn-ijekavsk",
}


@dataclass(slots=True)
class LocaleError(ValueError):
    """Base error for locale names that cannot be turned into a language tag."""

    locale: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (locale={self.locale!r})"


@dataclass(slots=True)
class UnknownModifierError(LocaleError):
    """Raised for ``@modifier`` suffixes without a known BCP-47 mapping."""

    modifier: str = ""


@dataclass(slots=True)
class InvalidLanguageTagError(LocaleError):
    """Raised when the normalized locale is not a well-formed language tag."""


def strip_codeset(locale: str) -> str:
    """Drop the ``.codeset`` part of ``language[_territory][.codeset][@modifier]``."""

    idx = locale.find(".")
    if idx == -1:
        return locale
    modifier_idx = locale.rfind("@")
    if modifier_idx == -1:
        modifier_idx = len(locale)
    return locale[:idx] + locale[modifier_idx:]


def resolve_tag(locale: str) -> langcodes.Language:
    """Return the structured language tag for a locale-like directory name.

    ``C`` and ``POSIX`` are not handled here; callers map them to ``en``
    before resolving.
    """

    value = strip_codeset(locale)

    idx = value.find("@")
    if idx > -1:
        modifier = value[idx + 1 :]
        mapping = _MODIFIER_TO_BCP47.get(modifier)
        if mapping is None:
            raise UnknownModifierError(
                locale=locale,
                message=f"Unknown locale modifier {modifier!r}",
                modifier=modifier,
            )
        value = value[:idx] + mapping

    if not value:
        raise InvalidLanguageTagError(locale=locale, message="Empty language tag")

    try:
        return langcodes.Language.get(value.replace("_", "-"))
    except LanguageTagError as exc:
        raise InvalidLanguageTagError(locale=locale, message=f"Cannot parse language tag: {exc}") from exc


def tag_string(locale: str) -> str:
    """Return the BCP-47 string form of :func:`resolve_tag`."""

    return resolve_tag(locale).to_tag()
