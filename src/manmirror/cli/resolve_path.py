"""CLI entrypoint for resolving request paths against an index file."""

from __future__ import annotations

import argparse
import json

from manmirror.redirect.models import NotFoundError
from manmirror.redirect.narrow import DEFAULT_RELEASE
from manmirror.redirect.repository import IndexFileError, read_index
from manmirror.redirect.resolver import Overrides, resolve


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Resolve manpage request paths to serving paths")
    parser.add_argument("paths", nargs="+", help="Request paths, e.g. /i3 or /jessie/i3.1.fr")
    parser.add_argument("--index-path", default="auxserver.idx", help="Index file path")
    parser.add_argument("--accept-language", default=None, help="Accept-Language header value")
    parser.add_argument("--default-release", default=DEFAULT_RELEASE, help="Release preferred when unspecified")
    parser.add_argument("--referrer-release", default="", help="Release of the referring page")
    parser.add_argument("--release", default="", help="Explicit release override")
    parser.add_argument("--package", default="", help="Explicit binary package override")
    parser.add_argument("--section", default="", help="Explicit section override")
    parser.add_argument("--language", default="", help="Explicit language override")
    args = parser.parse_args(argv)

    try:
        index = read_index(args.index_path)
    except IndexFileError as exc:
        print(json.dumps({"error": str(exc)}, ensure_ascii=True, indent=2))
        return 2

    overrides = Overrides(
        release=args.release,
        package=args.package,
        section=args.section,
        language=args.language,
    )

    results = []
    failures = 0
    for path in args.paths:
        request_path = path if path.startswith("/") else "/" + path
        try:
            target = resolve(
                index,
                request_path,
                accept_language=args.accept_language,
                overrides=overrides,
                referrer_release=args.referrer_release,
                default_release=args.default_release,
            )
        except NotFoundError as exc:
            failures += 1
            results.append(
                {
                    "path": request_path,
                    "found": False,
                    "manpage": exc.manpage,
                    "best_choice": exc.best_choice.serving_path() if exc.best_choice else None,
                }
            )
            continue
        results.append({"path": request_path, "found": True, "target": target})

    print(json.dumps({"results": results}, ensure_ascii=True, indent=2))
    return 0 if failures == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
