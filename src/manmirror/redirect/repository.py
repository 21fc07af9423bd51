"""Reading and atomically writing the redirect index file."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path
import sqlite3
import tempfile

from manmirror.redirect.models import ANY_SECTION, Index, IndexEntry
from manmirror.redirect.schema import (
    PRAGMA_BUSY_TIMEOUT_MS,
    SCHEMA_VERSION,
    apply_runtime_pragmas,
    ensure_schema,
    read_schema_version,
)


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IndexFileError(Exception):
    """The index file is missing, unreadable, or of an unknown schema version."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (path={self.path})"


class IndexRepository:
    """Thin layer over one SQLite index file."""

    def __init__(self, db_path: str | Path, *, read_only: bool = False) -> None:
        self._db_path = Path(db_path)
        if read_only:
            # Readers must leave the file untouched, even when it is not an index.
            uri = f"{self._db_path.resolve().as_uri()}?mode=ro"
            self._connection = sqlite3.connect(uri, uri=True)
            self._connection.execute(f"PRAGMA busy_timeout={PRAGMA_BUSY_TIMEOUT_MS};")
        else:
            self._connection = sqlite3.connect(str(self._db_path))
            apply_runtime_pragmas(self._connection)
            ensure_schema(self._connection)

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "IndexRepository":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def store(self, index: Index) -> None:
        with self._connection:
            self._connection.execute("DELETE FROM entries")
            self._connection.execute("DELETE FROM languages")
            self._connection.execute("DELETE FROM sections")
            self._connection.execute("DELETE FROM releases")
            self._connection.executemany(
                "INSERT OR IGNORE INTO entries(name, release, package, section, language) VALUES (?, ?, ?, ?, ?)",
                ((e.name, e.release, e.package, e.section, e.language) for e in index.iter_entries()),
            )
            self._connection.executemany(
                "INSERT INTO languages(language) VALUES (?)",
                ((language,) for language in sorted(index.langs)),
            )
            self._connection.executemany(
                "INSERT INTO sections(section) VALUES (?)",
                ((section,) for section in sorted(index.sections)),
            )
            self._connection.executemany(
                "INSERT INTO releases(alias, release) VALUES (?, ?)",
                sorted(index.suites.items()),
            )
            self._connection.execute(
                "INSERT OR REPLACE INTO meta(key, value) VALUES ('schema_version', ?)",
                (str(SCHEMA_VERSION),),
            )

    def load(self) -> Index:
        version = read_schema_version(self._connection)
        if version != SCHEMA_VERSION:
            raise IndexFileError(path=str(self._db_path), message=f"Unsupported schema version {version!r}")

        entries = [
            IndexEntry(name=row[0], release=row[1], package=row[2], section=row[3], language=row[4])
            for row in self._connection.execute(
                "SELECT name, release, package, section, language FROM entries ORDER BY name, release, package, section, language"
            )
        ]
        languages = [row[0] for row in self._connection.execute("SELECT language FROM languages")]
        sections = [row[0] for row in self._connection.execute("SELECT section FROM sections")]
        aliases = {row[0]: row[1] for row in self._connection.execute("SELECT alias, release FROM releases")}
        return Index.from_entries(entries, aliases, languages=languages, sections=[*sections, ANY_SECTION])


def write_index(path: str | Path, index: Index) -> None:
    """Persist ``index`` so that readers never observe a partially written file."""

    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{destination.name}.", suffix=".tmp", dir=destination.parent)
    os.close(fd)
    try:
        with IndexRepository(temp_name) as repository:
            repository.store(index)
        os.replace(temp_name, destination)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise
    LOGGER.info("Wrote index with %d entries to %s", len(index), destination)


def read_index(path: str | Path) -> Index:
    """Load an index file into a new, fully built ``Index``."""

    source = Path(path)
    if not source.is_file():
        raise IndexFileError(path=str(source), message="Index file not found")
    try:
        with IndexRepository(source, read_only=True) as repository:
            return repository.load()
    except sqlite3.DatabaseError as exc:
        raise IndexFileError(path=str(source), message=f"Cannot read index: {exc}") from exc
