from __future__ import annotations

import pytest

from manmirror.redirect.models import Index, IndexEntry, NotFoundError
from manmirror.redirect.resolver import Overrides, parse_request, resolve


SUITES = {
    "testing": "testing",
    "unstable": "unstable",
    "sid": "sid",
    "experimental": "experimental",
    "jessie": "jessie",
    "stable": "jessie",
    "wheezy": "wheezy",
    "oldstable": "wheezy",
    "stretch": "testing",
}


def _entries() -> list[IndexEntry]:
    rows = [
        ("i3", "jessie", "i3-wm", "1", "en"),
        ("i3", "jessie", "i3-wm", "5", "fr"),
        ("i3", "jessie", "i3-wm", "5", "en"),
        ("i3", "jessie", "i3-wm", "1", "fr"),
        ("i3", "testing", "i3-wm", "1", "en"),
        ("i3", "testing", "i3-wm", "1", "fr"),
        ("i3", "testing", "i3-wm", "5", "fr"),
        ("i3", "testing", "i3-wm", "5", "en"),
        ("systemd.service", "jessie", "systemd", "5", "en"),
        ("editline", "jessie", "libedit-dev", "3edit", "en"),
        ("editline", "jessie", "libeditline-dev", "3", "en"),
        ("javafxpackager", "testing", "openjfx", "1", "en"),
        ("dup", "jessie", "manpages-pl-dev", "2", "pl"),
        ("dup", "jessie", "manpages-dev", "2", "en"),
        ("git-commit", "jessie", "git-man", "1", "en"),
        ("man-db", "jessie", "man-db", "8", "en"),
    ]
    return [IndexEntry(name=n, release=r, package=p, section=s, language=l) for n, r, p, s, l in rows]


def _index() -> Index:
    return Index.from_entries(_entries(), SUITES, languages=["en", "fr"], sections=["1", "3", "3edit", "5"])


def _assert_table(table: list[tuple[str, str]], **kwargs) -> None:
    index = _index()
    for url, want in table:
        got = resolve(index, "/" + url, default_release="jessie", **kwargs)
        assert got == "/" + want, url


def test_underspecified_requests_fill_in_defaults() -> None:
    _assert_table(
        [
            ("i3", "jessie/i3-wm/i3.1.en.html"),
            ("systemd.service", "jessie/systemd/systemd.service.5.en.html"),
            ("javafxpackager", "testing/openjfx/javafxpackager.1.en.html"),
            ("i3.en", "jessie/i3-wm/i3.1.en.html"),
            ("systemd.service.en", "jessie/systemd/systemd.service.5.en.html"),
            ("i3.fr", "jessie/i3-wm/i3.1.fr.html"),
            ("i3.1", "jessie/i3-wm/i3.1.en.html"),
            ("i3(1)", "jessie/i3-wm/i3.1.en.html"),
            ("systemd.service.5", "jessie/systemd/systemd.service.5.en.html"),
            ("systemd.service(5)", "jessie/systemd/systemd.service.5.en.html"),
            ("i3.5", "jessie/i3-wm/i3.5.en.html"),
            ("editline.3", "jessie/libeditline-dev/editline.3.en.html"),
            ("editline.3edit", "jessie/libedit-dev/editline.3edit.en.html"),
            ("i3.1.fr", "jessie/i3-wm/i3.1.fr.html"),
            ("i3.5.fr", "jessie/i3-wm/i3.5.fr.html"),
            ("i3(5).fr", "jessie/i3-wm/i3.5.fr.html"),
            ("systemd.service.5.en", "jessie/systemd/systemd.service.5.en.html"),
            ("editline.3.en", "jessie/libeditline-dev/editline.3.en.html"),
        ]
    )


def test_package_qualified_requests() -> None:
    _assert_table(
        [
            ("i3-wm/i3", "jessie/i3-wm/i3.1.en.html"),
            ("i3-wm/i3.fr", "jessie/i3-wm/i3.1.fr.html"),
            ("i3-wm/i3.1", "jessie/i3-wm/i3.1.en.html"),
            ("i3-wm/i3.5", "jessie/i3-wm/i3.5.en.html"),
            ("i3-wm/i3(5)", "jessie/i3-wm/i3.5.en.html"),
            ("libedit-dev/editline.3", "jessie/libedit-dev/editline.3edit.en.html"),
            ("i3-wm/i3.1.fr", "jessie/i3-wm/i3.1.fr.html"),
            ("i3-wm/i3.5.fr", "jessie/i3-wm/i3.5.fr.html"),
            ("i3-wm/i3(5).fr", "jessie/i3-wm/i3.5.fr.html"),
            ("i3-wm/i3(5)fr", "jessie/i3-wm/i3.5.fr.html"),
            ("libedit-dev/editline.3.en", "jessie/libedit-dev/editline.3edit.en.html"),
        ]
    )


def test_release_qualified_requests() -> None:
    _assert_table(
        [
            ("jessie/i3", "jessie/i3-wm/i3.1.en.html"),
            ("testing/i3", "testing/i3-wm/i3.1.en.html"),
            ("stable/i3", "jessie/i3-wm/i3.1.en.html"),
            ("stretch/i3", "testing/i3-wm/i3.1.en.html"),
            ("jessie/i3.fr", "jessie/i3-wm/i3.1.fr.html"),
            ("testing/i3.fr", "testing/i3-wm/i3.1.fr.html"),
            ("jessie/i3.1", "jessie/i3-wm/i3.1.en.html"),
            ("testing/i3.5", "testing/i3-wm/i3.5.en.html"),
            ("jessie/libedit-dev/editline.3", "jessie/libedit-dev/editline.3edit.en.html"),
            ("jessie/i3.1.fr", "jessie/i3-wm/i3.1.fr.html"),
            ("testing/i3.5.fr", "testing/i3-wm/i3.5.fr.html"),
            ("jessie/editline.3.en", "jessie/libeditline-dev/editline.3.en.html"),
            ("jessie/i3-wm/i3", "jessie/i3-wm/i3.1.en.html"),
            ("testing/i3-wm/i3", "testing/i3-wm/i3.1.en.html"),
            ("jessie/i3-wm/i3.fr", "jessie/i3-wm/i3.1.fr.html"),
            ("testing/i3-wm/i3.fr", "testing/i3-wm/i3.1.fr.html"),
            ("jessie/i3-wm/i3.1", "jessie/i3-wm/i3.1.en.html"),
            ("testing/i3-wm/i3.5", "testing/i3-wm/i3.5.en.html"),
            ("jessie/i3-wm/i3.1.fr", "jessie/i3-wm/i3.1.fr.html"),
            ("testing/i3-wm/i3.1.fr", "testing/i3-wm/i3.1.fr.html"),
            ("jessie/libedit-dev/editline.3.en", "jessie/libedit-dev/editline.3edit.en.html"),
        ]
    )


def test_legacy_urls() -> None:
    _assert_table(
        [
            ("man/i3", "jessie/i3-wm/i3.1.en.html"),
            ("man/fr/i3", "jessie/i3-wm/i3.1.fr.html"),
            ("man/1/i3", "jessie/i3-wm/i3.1.en.html"),
            ("man1/i3", "jessie/i3-wm/i3.1.en.html"),
            ("man5/i3", "jessie/i3-wm/i3.5.en.html"),
            ("1/i3", "jessie/i3-wm/i3.1.en.html"),
            ("5/i3", "jessie/i3-wm/i3.5.en.html"),
            ("fr/man1/i3", "jessie/i3-wm/i3.1.fr.html"),
            ("fr/man5/i3", "jessie/i3-wm/i3.5.fr.html"),
            ("man/testing/5/i3", "testing/i3-wm/i3.5.en.html"),
            ("man/testing/fr/5/i3", "testing/i3-wm/i3.5.fr.html"),
            ("man/jessie/0/i3", "jessie/i3-wm/i3.1.en.html"),
        ]
    )


def test_package_named_like_legacy_prefix_is_not_legacy() -> None:
    _assert_table([("man-db/man-db", "jessie/man-db/man-db.8.en.html")])


def test_accept_language_picks_preferred_variant() -> None:
    header = "fr-CH, fr;q=0.9, en;q=0.8, de;q=0.7, *;q=0.5"

    _assert_table(
        [
            ("i3", "jessie/i3-wm/i3.1.fr.html"),
            ("dup", "jessie/manpages-dev/dup.2.en.html"),
        ],
        accept_language=header,
    )


def test_explicit_language_beats_accept_language() -> None:
    _assert_table([("i3.en", "jessie/i3-wm/i3.1.en.html")], accept_language="fr")


def test_garbage_accept_language_selects_default() -> None:
    _assert_table([("i3", "jessie/i3-wm/i3.1.en.html")], accept_language=";q=1, *")


def test_referrer_release_wins_over_default_release() -> None:
    _assert_table([("i3", "testing/i3-wm/i3.1.en.html")], referrer_release="testing")
    _assert_table([("i3", "testing/i3-wm/i3.1.en.html")], referrer_release="stretch")
    _assert_table([("jessie/i3", "jessie/i3-wm/i3.1.en.html")], referrer_release="testing")


def test_referrer_release_without_document_falls_back_to_default() -> None:
    _assert_table([("i3", "jessie/i3-wm/i3.1.en.html")], referrer_release="wheezy")


def test_overrides_replace_path_fields() -> None:
    _assert_table([("i3", "jessie/i3-wm/i3.1.fr.html")], overrides=Overrides(language="fr"))
    _assert_table([("jessie/i3", "testing/i3-wm/i3.5.en.html")], overrides=Overrides(release="stretch", section="5"))
    _assert_table([("editline", "jessie/libedit-dev/editline.3edit.en.html")], overrides=Overrides(package="libedit-dev"))


def test_raw_requests_redirect_to_raw_documents() -> None:
    _assert_table(
        [
            ("i3.1.gz", "jessie/i3-wm/i3.1.en.gz"),
            ("jessie/i3-wm/i3.1.fr.gz", "jessie/i3-wm/i3.1.fr.gz"),
            ("i3.html", "jessie/i3-wm/i3.1.en.html"),
            ("i3.1.html.gz", "jessie/i3-wm/i3.1.en.html"),
        ]
    )


def test_names_are_case_insensitive_and_retry_separators() -> None:
    _assert_table(
        [
            ("I3", "jessie/i3-wm/i3.1.en.html"),
            ("git commit", "jessie/git-man/git-commit.1.en.html"),
            ("git.commit", "jessie/git-man/git-commit.1.en.html"),
        ]
    )


def test_release_without_document_is_not_found_with_suggestion() -> None:
    with pytest.raises(NotFoundError) as excinfo:
        resolve(_index(), "/experimental/i3", default_release="jessie")

    assert excinfo.value.manpage == "i3"
    assert excinfo.value.best_choice == IndexEntry(name="i3", release="jessie", package="i3-wm", section="1", language="en")
    assert str(excinfo.value) == "No such man page"


def test_missing_explicit_fields_are_not_found() -> None:
    index = _index()
    for url in ("/i3.3", "/jessie/i3.1.pl", "/systemd/i3", "/testing/editline"):
        with pytest.raises(NotFoundError):
            resolve(index, url, default_release="jessie")


def test_missing_section_suggests_another_variant() -> None:
    index = _index()

    with pytest.raises(NotFoundError) as excinfo:
        resolve(index, "/i3.3", default_release="jessie")
    assert excinfo.value.best_choice == IndexEntry(name="i3", release="jessie", package="i3-wm", section="1", language="en")

    with pytest.raises(NotFoundError) as excinfo:
        resolve(index, "/testing/editline", default_release="jessie")
    assert excinfo.value.best_choice == IndexEntry(
        name="editline", release="jessie", package="libeditline-dev", section="3", language="en"
    )


def test_any_section_override_keeps_section_open() -> None:
    _assert_table(
        [
            ("i3", "jessie/i3-wm/i3.1.en.html"),
            ("testing/i3.fr", "testing/i3-wm/i3.1.fr.html"),
        ],
        overrides=Overrides(section="0"),
    )


def test_unknown_name_has_no_suggestion() -> None:
    with pytest.raises(NotFoundError) as excinfo:
        resolve(_index(), "/doesnotexist", default_release="jessie")

    assert excinfo.value.manpage == "doesnotexist"
    assert excinfo.value.best_choice is None


def test_reserved_paths_are_not_resolved() -> None:
    index = _index()
    for url in ("/", "/jessie/", "/jessie/index.html", "/contents-jessie.html"):
        with pytest.raises(NotFoundError) as excinfo:
            resolve(index, url, default_release="jessie")
        assert excinfo.value.best_choice is None, url


def test_index_and_favicon_never_suggest() -> None:
    entries = _entries() + [IndexEntry(name="favicon", release="jessie", package="web", section="7", language="en")]
    index = Index.from_entries(entries, SUITES)

    with pytest.raises(NotFoundError) as excinfo:
        resolve(index, "/experimental/favicon", default_release="jessie")

    assert excinfo.value.best_choice is None


def test_parse_request_canonicalizes_release_and_legacy_any_section() -> None:
    index = _index()

    key, suffix = parse_request(index, "/man/stable/0/i3")

    assert (key.name, key.release, key.section, suffix) == ("i3", "jessie", "", ".html")


def test_resolution_is_deterministic_regardless_of_entry_order() -> None:
    forward = _index()
    backward = Index.from_entries(list(reversed(_entries())), SUITES, languages=["en", "fr"])

    for url in ("/i3", "/editline.3", "/dup", "/i3.5"):
        assert resolve(forward, url, default_release="jessie") == resolve(backward, url, default_release="jessie")
