"""Redirect index: every known document keyed by lowercased name."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from manmirror.manpage.meta import Meta


# Legacy URLs use section 0 to mean "any section".
ANY_SECTION = "0"


@dataclass(frozen=True, slots=True)
class IndexEntry:
    """Identity of one renderable document."""

    name: str
    release: str
    package: str
    section: str
    language: str

    @property
    def main_section(self) -> str:
        return self.section[:1]

    def serving_path(self, suffix: str = ".html") -> str:
        return f"/{self.release}/{self.package}/{self.name}.{self.section}.{self.language}{suffix}"

    def sort_key(self) -> tuple[str, str, str, str]:
        return (self.release, self.package, self.section, self.language)

    @classmethod
    def from_meta(cls, meta: Meta) -> "IndexEntry":
        return cls(
            name=meta.name,
            release=meta.release,
            package=meta.package,
            section=meta.section,
            language=meta.language,
        )


@dataclass(frozen=True, slots=True)
class PathKey:
    """What a request path says about the wanted document; empty means unspecified."""

    name: str = ""
    release: str = ""
    package: str = ""
    section: str = ""
    language: str = ""

    def matches(self, entry: IndexEntry) -> bool:
        """True when ``entry`` is exactly the document this key fully specifies."""

        return (
            entry.release == self.release
            and entry.package == self.package
            and entry.section == self.section
            and entry.language == self.language
        )

    @property
    def fully_specified(self) -> bool:
        return bool(self.release and self.package and self.section and self.language)


@dataclass(frozen=True, slots=True)
class Vocabulary:
    """Known release aliases, sections and languages used to interpret request paths."""

    releases: Mapping[str, str] = field(default_factory=dict)
    sections: frozenset[str] = frozenset()
    languages: frozenset[str] = frozenset()

    def is_release(self, value: str) -> bool:
        return value in self.releases

    def is_section(self, value: str) -> bool:
        return value in self.sections

    def is_language(self, value: str) -> bool:
        return value in self.languages

    def canonical_release(self, value: str) -> str:
        return self.releases.get(value, value)


@dataclass(frozen=True, slots=True)
class Index:
    """Read-only snapshot of all documents; replaced as a whole, never mutated."""

    entries: Mapping[str, tuple[IndexEntry, ...]] = field(default_factory=dict)
    suites: Mapping[str, str] = field(default_factory=dict)
    langs: frozenset[str] = frozenset()
    sections: frozenset[str] = frozenset()

    @property
    def vocabulary(self) -> Vocabulary:
        return Vocabulary(releases=self.suites, sections=self.sections, languages=self.langs)

    def lookup(self, name: str) -> tuple[IndexEntry, ...]:
        return self.entries.get(name.lower(), ())

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self.entries.values())

    def iter_entries(self) -> Iterable[IndexEntry]:
        for name in sorted(self.entries):
            yield from self.entries[name]

    @classmethod
    def from_entries(
        cls,
        entries: Iterable[IndexEntry],
        release_aliases: Mapping[str, str],
        *,
        languages: Iterable[str] = (),
        sections: Iterable[str] = (),
    ) -> "Index":
        """Build an index; buckets are sorted by (release, package, section, language).

        Languages and sections of the entries are added to the given
        vocabulary, as are main sections and the legacy ``0`` section.
        """

        buckets: dict[str, list[IndexEntry]] = {}
        known_languages = set(languages)
        known_sections = set(sections)
        known_sections.add(ANY_SECTION)
        for entry in entries:
            buckets.setdefault(entry.name.lower(), []).append(entry)
            known_languages.add(entry.language)
            known_sections.add(entry.section)
            known_sections.add(entry.main_section)

        return cls(
            entries={
                name: tuple(sorted(set(bucket), key=IndexEntry.sort_key))
                for name, bucket in buckets.items()
            },
            suites=dict(release_aliases),
            langs=frozenset(known_languages),
            sections=frozenset(known_sections),
        )

    @classmethod
    def from_xref(cls, xref: Mapping[str, Iterable[Meta]], release_aliases: Mapping[str, str]) -> "Index":
        return cls.from_entries(
            (IndexEntry.from_meta(meta) for metas in xref.values() for meta in metas),
            release_aliases,
        )


@dataclass(slots=True)
class NotFoundError(LookupError):
    """No document matches; ``best_choice`` is another variant of the same name, if any."""

    manpage: str = ""
    best_choice: IndexEntry | None = None

    def __str__(self) -> str:
        return "No such man page"
