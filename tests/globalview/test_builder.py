from __future__ import annotations

import gzip
import hashlib
import io
import json
import logging
from pathlib import Path

import pytest

from manmirror.archive.getter import Release
from manmirror.globalview.builder import (
    Distribution,
    GlobalView,
    Identifier,
    UnknownPackageError,
    build_global_view,
    distributions,
    mark_present,
)
from manmirror.manpage.meta import MalformedPathError, PkgMeta
from manmirror.redirect.models import Index
from manmirror.redirect.resolver import resolve


CONTENTS_AMD64 = "\n".join(
    [
        "usr/share/man/fr.UTF-8/man1/i3.1.gz     x11/i3-wm",
        "usr/share/man/fr/man1/i3.1.gz           x11/i3-wm",
        "usr/share/man/man1/i3.1.gz              x11/i3-wm",
        "usr/share/man/man1/orphan.1.gz          x11/orphan",
        "usr/share/man/man5/broken.gz            x11/i3-wm",
    ]
) + "\n"


def _paragraph(package: str, version: str) -> str:
    digest = hashlib.sha256(package.encode()).hexdigest()
    return (
        f"Package: {package}\n"
        f"Version: {version}\n"
        f"Filename: pool/main/{package}_{version}_amd64.deb\n"
        "Size: 1234\n"
        f"SHA256: {digest}\n"
    )


class _FakeArchive:
    def __init__(self) -> None:
        self.files = {
            "dists/jessie/main/Contents-amd64.gz": CONTENTS_AMD64.encode(),
            "dists/jessie/main/binary-amd64/Packages.gz": (
                _paragraph("i3-wm", "4.8-2") + "\n" + _paragraph("vim", "2:7.4.488-7")
            ).encode(),
            "dists/jessie/contrib/binary-amd64/Packages.gz": b"",
        }
        self.release = Release(
            codename="jessie",
            suite="stable",
            architectures=("amd64",),
            sha256={path.removeprefix("dists/jessie/"): "00" for path in self.files},
        )

    def get_release(self, name: str) -> Release:
        return self.release

    def get(self, path: str, sha256_hex: str):
        return io.BytesIO(self.files[path])


def _alternatives_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "alternatives"
    directory.mkdir()
    with gzip.open(directory / "jessie.json.gz", "wt", encoding="utf-8") as handle:
        json.dump(
            [{"binpackage": "vim", "from": "/usr/share/man/man1/vi.1.gz", "to": "/usr/share/man/man1/vim.1.gz"}],
            handle,
        )
    return directory


def _build(tmp_path: Path) -> GlobalView:
    return build_global_view(
        _FakeArchive(),
        distributions(["jessie"], []),
        alternatives_dir=_alternatives_dir(tmp_path),
        max_workers=2,
    )


def test_distributions_skip_blank_names() -> None:
    assert distributions([" jessie ", ""], ["testing"]) == [
        Distribution("jessie", Identifier.CODENAME),
        Distribution("testing", Identifier.SUITE),
    ]


def test_build_global_view_records_aliases_and_packages(tmp_path: Path) -> None:
    view = _build(tmp_path)

    assert view.releases == {"jessie"}
    assert view.release_aliases == {"jessie": "jessie", "stable": "jessie"}
    assert sorted(entry.package for entry in view.packages) == ["i3-wm", "vim"]
    assert set(view.content_by_path) == {
        "fr.UTF-8/man1/i3.1.gz",
        "fr/man1/i3.1.gz",
        "man1/i3.1.gz",
        "man1/orphan.1.gz",
        "man5/broken.gz",
    }


def test_build_global_view_deduplicates_encodings_and_adds_alternatives(tmp_path: Path) -> None:
    view = _build(tmp_path)

    assert [meta.serving_path() for meta in view.xref["i3"]] == ["jessie/i3-wm/i3.1.fr", "jessie/i3-wm/i3.1.en"]
    assert [meta.serving_path() for meta in view.xref["vi"]] == ["jessie/vim/vi.1.en"]
    assert "orphan" not in view.xref


def test_build_global_view_collects_known_issues(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        view = _build(tmp_path)

    assert set(view.known_issues) == {"jessie/i3-wm", "jessie/orphan"}
    assert isinstance(view.known_issues["jessie/orphan"][0], UnknownPackageError)
    assert isinstance(view.known_issues["jessie/i3-wm"][0], MalformedPathError)
    assert "jessie/orphan" in caplog.text


def test_resolve_reference_prefers_language_of_current_page(tmp_path: Path) -> None:
    view = _build(tmp_path)
    english, french = view.xref["i3"][1], view.xref["i3"][0]

    assert view.resolve_reference(english, "vi(1)") == "/jessie/vim/vi.1.en.html"
    assert view.resolve_reference(french, "i3(1)") == "/jessie/i3-wm/i3.1.fr.html"
    assert view.resolve_reference(english, "i3(1)") == "/jessie/i3-wm/i3.1.en.html"
    assert view.resolve_reference(english, "i3(5)") == ""
    assert view.resolve_reference(english, "unknown(1)") == ""
    assert view.resolve_reference(english, "no-section") == ""


def test_global_view_feeds_the_redirect_index(tmp_path: Path) -> None:
    view = _build(tmp_path)

    index = Index.from_xref(view.xref, view.release_aliases)

    assert resolve(index, "/i3") == "/jessie/i3-wm/i3.1.en.html"
    assert resolve(index, "/stable/i3.fr") == "/jessie/i3-wm/i3.1.fr.html"
    assert resolve(index, "/vi.1") == "/jessie/vim/vi.1.en.html"


def test_mark_present_rejects_unknown_packages() -> None:
    with pytest.raises(UnknownPackageError, match="jessie/ghost"):
        mark_present({}, {}, "usr/share/man/man1/ghost.1.gz", "jessie/ghost")


def test_mark_present_skips_duplicate_serving_paths() -> None:
    latest = {"jessie/less": PkgMeta(package="less", release="jessie")}
    xref: dict = {}

    first = mark_present(latest, xref, "usr/share/man/man1/less.1.gz", "jessie/less")
    second = mark_present(latest, xref, "man1/less.1.gz", "jessie/less")

    assert first is not None
    assert second is None
    assert len(xref["less"]) == 1
