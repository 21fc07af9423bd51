"""CLI entrypoint for prefix suggestions from an index file."""

from __future__ import annotations

import argparse
import json

from manmirror.redirect.repository import IndexFileError, read_index
from manmirror.redirect.suggest import MAX_SUGGESTIONS, SuggestionIndex


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Suggest <name>.<section> completions for a prefix")
    parser.add_argument("--index-path", default="auxserver.idx", help="Index file path")
    parser.add_argument("--query", required=True, help="Name prefix to complete")
    parser.add_argument("--limit", type=int, default=MAX_SUGGESTIONS, help="Maximum number of completions")
    args = parser.parse_args(argv)
    safe_limit = max(1, min(args.limit, MAX_SUGGESTIONS))

    try:
        index = read_index(args.index_path)
    except IndexFileError as exc:
        print(json.dumps({"error": str(exc)}, ensure_ascii=True, indent=2))
        return 2

    completions = SuggestionIndex.from_index(index).suggest(args.query, limit=safe_limit)
    print(json.dumps({"query": args.query, "limit": safe_limit, "results": completions}, ensure_ascii=True, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
