"""Document identity and the path codec between identities and path strings."""

from __future__ import annotations

from dataclasses import dataclass, field
import re

import langcodes
from debian.debian_support import Version

from manmirror.manpage.tag import LocaleError, resolve_tag, strip_codeset


DEFAULT_LANGUAGE = "en"
_ENGLISH_LOCALES = {"C", "POSIX"}


@dataclass(slots=True)
class MalformedPathError(ValueError):
    """Raised for paths that do not follow a known documentation layout."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (path={self.path!r})"


@dataclass(frozen=True, slots=True)
class PkgMeta:
    """The release/package context a document was found in."""

    package: str
    release: str
    version: Version | None = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class Meta:
    """One renderable document: name, package context, section and language."""

    name: str
    pkg: PkgMeta
    section: str
    language: str
    language_tag: langcodes.Language = field(compare=False, repr=False)

    @property
    def release(self) -> str:
        return self.pkg.release

    @property
    def package(self) -> str:
        return self.pkg.package

    @property
    def main_section(self) -> str:
        return self.section[:1]

    def serving_path(self) -> str:
        return f"{self.pkg.release}/{self.pkg.package}/{self.name}.{self.section}.{self.language}"

    def raw_path(self) -> str:
        """Path of the raw (compressed) document, locked to its language."""

        return self.serving_path() + ".gz"

    def permalink(self) -> str:
        return f"{self.pkg.release}/{self.pkg.package}/{self.name}.{self.section}"

    def __str__(self) -> str:
        return self.serving_path()


def normalize_language(locale: str) -> str:
    """Strip the codeset and map the ``C``/``POSIX`` locales to English."""

    value = strip_codeset(locale)
    if value in _ENGLISH_LOCALES:
        return DEFAULT_LANGUAGE
    return value


def _language_tag(language: str, path: str) -> langcodes.Language:
    try:
        return resolve_tag(language)
    except LocaleError as exc:
        raise MalformedPathError(path=path, message=f"Cannot parse language {language!r}: {exc}") from exc


def from_man_path(path: str, pkg: PkgMeta) -> Meta:
    """Build a document identity from a path relative to ``usr/share/man``.

    The expected layout is ``[<lang>/]man<section>/<name>.<section>[<sub>][.gz]``.
    """

    language = DEFAULT_LANGUAGE
    parts = path.split("/")
    if len(parts) == 3:
        language = normalize_language(parts[0])
        parts = parts[1:]

    if len(parts) != 2:
        raise MalformedPathError(path=path, message="Unexpected path format")

    directory, filename = parts
    if not directory.startswith("man") or len(directory) == len("man"):
        raise MalformedPathError(path=path, message="Expected a man<section> directory")
    tag = _language_tag(language, path)

    if not filename.endswith(".gz"):
        filename += ".gz"

    section = directory[len("man") :]
    pattern = re.compile(rf"\.{re.escape(section)}([^.]*)\.gz$")
    match = pattern.search(filename)
    if match is None:
        raise MalformedPathError(path=path, message=f"File name does not match {pattern.pattern}")
    section += match.group(1)

    name = filename[: -len(f".{section}.gz")]
    if not name:
        raise MalformedPathError(path=path, message="Empty document name")

    return Meta(name=name, pkg=pkg, section=section, language=language, language_tag=tag)


def from_serving_path(path: str, serving_dir: str | None = None) -> Meta:
    """Build a document identity from ``<release>/<package>/<name>.<section>.<lang>[.gz]``."""

    relpath = path
    if serving_dir:
        prefix = serving_dir.rstrip("/") + "/"
        if relpath.startswith(prefix):
            relpath = relpath[len(prefix) :]
    relpath = relpath.lstrip("/")

    path_parts = relpath.split("/")
    if len(path_parts) != 3:
        raise MalformedPathError(path=path, message="Unexpected path format")

    base = path_parts[2]
    if base.endswith(".gz"):
        base = base[: -len(".gz")]

    # The name itself can contain dots, so split from the right.
    name_parts = base.rsplit(".", 2)
    if len(name_parts) < 3 or not all(name_parts):
        raise MalformedPathError(path=path, message=f"Unexpected file name format {base!r}")
    name, section, language = name_parts

    return Meta(
        name=name,
        pkg=PkgMeta(package=path_parts[1], release=path_parts[0]),
        section=section,
        language=language,
        language_tag=_language_tag(language, path),
    )
