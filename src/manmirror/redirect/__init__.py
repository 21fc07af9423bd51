"""Redirect index, request resolution and suggestions."""

from .models import Index, IndexEntry, NotFoundError, PathKey, Vocabulary
from .narrow import DEFAULT_RELEASE, by_search_order, by_subsection_specificity, narrow
from .repository import IndexFileError, read_index, write_index
from .resolver import Overrides, resolve
from .split import split, split_legacy
from .store import IndexStore, IndexValidationError
from .suggest import SuggestionIndex

__all__ = [
    "DEFAULT_RELEASE",
    "Index",
    "IndexEntry",
    "IndexFileError",
    "IndexStore",
    "IndexValidationError",
    "NotFoundError",
    "Overrides",
    "PathKey",
    "SuggestionIndex",
    "Vocabulary",
    "by_search_order",
    "by_subsection_specificity",
    "narrow",
    "read_index",
    "resolve",
    "split",
    "split_legacy",
    "write_index",
]
