"""Catalog construction: archive listings merged into one global view."""

from .builder import Distribution, GlobalView, Identifier, UnknownPackageError, build_global_view, distributions, mark_present
from .merge import iter_merged
from .pool import WorkCancelledError, run_parallel

__all__ = [
    "Distribution",
    "GlobalView",
    "Identifier",
    "UnknownPackageError",
    "WorkCancelledError",
    "build_global_view",
    "distributions",
    "iter_merged",
    "mark_present",
    "run_parallel",
]
