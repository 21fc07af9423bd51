"""Document identities, locale tags and language variant matching."""

from .matching import best_language_match, parse_accept_language
from .meta import MalformedPathError, Meta, PkgMeta, from_man_path, from_serving_path
from .tag import InvalidLanguageTagError, LocaleError, UnknownModifierError, resolve_tag

__all__ = [
    "InvalidLanguageTagError",
    "LocaleError",
    "MalformedPathError",
    "Meta",
    "PkgMeta",
    "UnknownModifierError",
    "best_language_match",
    "from_man_path",
    "from_serving_path",
    "parse_accept_language",
    "resolve_tag",
]
