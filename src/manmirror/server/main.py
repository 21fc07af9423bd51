"""Redirect server entrypoint: load the index, serve, hot-reload on index updates."""

from __future__ import annotations

import logging
import sys

from dotenv import load_dotenv
import uvicorn

load_dotenv()

from manmirror.redirect.repository import IndexFileError, read_index
from manmirror.redirect.store import IndexStore, IndexValidationError
from manmirror.server.app import create_app
from manmirror.server.config import ServerSettings


logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)


def build_store(settings: ServerSettings) -> IndexStore:
    """Load the index file and validate it like any later swap."""

    index = read_index(settings.index_path)
    store = IndexStore(
        index,
        default_release=settings.default_release,
        canary_path=settings.canary_path,
        canary_suffix=settings.canary_suffix,
    )
    store.validate(index)
    return store


def main() -> None:
    """Main entrypoint for the redirect server."""
    try:
        settings = ServerSettings.from_env()
        logger.info(
            "Loaded server config: index=%s, listen=%s:%d, default_release=%s",
            settings.index_path,
            settings.host,
            settings.port,
            settings.default_release,
        )
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    try:
        store = build_store(settings)
    except (IndexFileError, IndexValidationError) as e:
        logger.error("Could not load index: %s", e)
        sys.exit(1)
    logger.info("Loaded index with %d entries from %s", len(store.index), settings.index_path)

    app = create_app(store, settings, watch_index=True)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
