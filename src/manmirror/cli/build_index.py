"""CLI entrypoint for building the redirect index from a package archive."""

from __future__ import annotations

import argparse
import json
import logging

from dotenv import load_dotenv

from manmirror.archive.getter import DEFAULT_MIRROR_URL, ArchiveError, ArchiveGetter
from manmirror.globalview.builder import build_global_view, distributions
from manmirror.globalview.pool import DEFAULT_WORKERS, WorkCancelledError
from manmirror.redirect.models import Index
from manmirror.redirect.repository import write_index


def _split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )

    parser = argparse.ArgumentParser(description="Build the manpage redirect index from a Debian archive")
    parser.add_argument("--sync-codenames", default="", help="Comma-separated codenames to index, e.g. bookworm")
    parser.add_argument("--sync-suites", default="testing", help="Comma-separated suites to index, e.g. testing")
    parser.add_argument("--local-mirror", default=None, help="Read archive files from this local mirror directory")
    parser.add_argument("--mirror-url", default=DEFAULT_MIRROR_URL, help="Archive mirror base URL")
    parser.add_argument("--alternatives-dir", default=None, help="Directory of <release>.json.gz alternatives files")
    parser.add_argument("--index-path", default="auxserver.idx", help="Destination index file")
    parser.add_argument("--workers", type=int, default=DEFAULT_WORKERS, help="Parallel downloads per listing")
    parser.add_argument("--retries", type=int, default=3, help="Retries for transient download errors")
    args = parser.parse_args(argv)

    dists = distributions(_split_list(args.sync_codenames), _split_list(args.sync_suites))
    if not dists:
        parser.error("at least one of --sync-codenames or --sync-suites is required")

    try:
        with ArchiveGetter(
            local_mirror=args.local_mirror,
            mirror_url=args.mirror_url,
            max_retries=max(0, args.retries),
        ) as getter:
            view = build_global_view(
                getter,
                dists,
                alternatives_dir=args.alternatives_dir,
                max_workers=max(1, args.workers),
            )
    except (ArchiveError, WorkCancelledError, OSError, ValueError) as exc:
        print(json.dumps({"error": str(exc)}, ensure_ascii=True, indent=2))
        return 1

    index = Index.from_xref(view.xref, view.release_aliases)
    write_index(args.index_path, index)

    payload = {
        "index_path": args.index_path,
        "releases": sorted(view.releases),
        "release_aliases": dict(sorted(view.release_aliases.items())),
        "packages": len(view.packages),
        "names": len(index.entries),
        "documents": len(index),
        "packages_with_issues": len(view.known_issues),
    }
    print(json.dumps(payload, ensure_ascii=True, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
