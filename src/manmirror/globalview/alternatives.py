"""Alternatives-managed manpage links, one ``<release>.json.gz`` file per release."""

from __future__ import annotations

from dataclasses import dataclass
import gzip
import json
import logging
from pathlib import Path


LOGGER = logging.getLogger(__name__)

ALTERNATIVES_SUFFIX = ".json.gz"


@dataclass(frozen=True, slots=True)
class Link:
    source: str
    target: str


def _field(record: dict, name: str) -> str:
    for key, value in record.items():
        if key.lower() == name:
            return str(value)
    return ""


def parse_alternatives_file(path: str | Path, release: str) -> dict[str, list[Link]]:
    """Read one alternatives file; keys are ``<release>/<binary package>``."""

    with gzip.open(path, "rt", encoding="utf-8") as handle:
        records = json.load(handle)
    if not isinstance(records, list):
        raise ValueError(f"Alternatives file {path} must contain a JSON array")

    links: dict[str, list[Link]] = {}
    for record in records:
        if not isinstance(record, dict):
            raise ValueError(f"Alternatives file {path} contains a non-object entry")
        key = f"{release}/{_field(record, 'binpackage')}"
        links.setdefault(key, []).append(Link(source=_field(record, "from"), target=_field(record, "to")))
    return links


def parse_alternatives_dir(directory: str | Path | None) -> dict[str, list[Link]]:
    """Merge every alternatives file in ``directory``; ``None`` means no alternatives."""

    if directory is None or str(directory) == "":
        return {}

    merged: dict[str, list[Link]] = {}
    for path in sorted(Path(directory).iterdir()):
        if not path.name.endswith(ALTERNATIVES_SUFFIX):
            continue
        release = path.name[: -len(ALTERNATIVES_SUFFIX)]
        parsed = parse_alternatives_file(path, release)
        LOGGER.info("Loaded %d alternatives link(s) for release %r", sum(len(v) for v in parsed.values()), release)
        # Keys are prefixed by the release, which is unique per file name.
        merged.update(parsed)
    return merged
