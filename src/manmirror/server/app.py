"""HTTP dispatcher: redirects, jump, suggestions and development static serving."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import gzip
import html
import logging
import mimetypes
from pathlib import Path
from urllib.parse import urlsplit

from fastapi import FastAPI, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response

from manmirror.redirect.models import NotFoundError
from manmirror.redirect.repository import IndexFileError, read_index
from manmirror.redirect.resolver import Overrides
from manmirror.redirect.store import IndexStore, IndexValidationError
from manmirror.server.config import ServerSettings
from manmirror.server.watcher import IndexFileWatcher


LOGGER = logging.getLogger(__name__)

_NOT_FOUND_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>Not Found</title></head>
<body>
<h1>Not Found</h1>
<p>{message}</p>
</body>
</html>
"""


def _not_found_page(error: NotFoundError, base_url_path: str) -> HTMLResponse:
    if error.manpage:
        message = f"Sorry, the manpage &ldquo;{html.escape(error.manpage)}&rdquo; was not found."
    else:
        message = "Sorry, the requested page was not found."
    if error.best_choice is not None:
        target = base_url_path + error.best_choice.serving_path()
        choice = error.best_choice
        message += (
            f' Did you mean <a href="{html.escape(target)}">'
            f"{html.escape(choice.name)}({html.escape(choice.section)})</a>"
            f" from {html.escape(choice.package)} in {html.escape(choice.release)}?"
        )
    return HTMLResponse(
        _NOT_FOUND_TEMPLATE.format(message=message),
        status_code=404,
        headers={"X-Content-Type-Options": "nosniff"},
    )


def _overrides(request: Request) -> Overrides:
    params = request.query_params
    return Overrides(
        release=params.get("release") or params.get("suite") or "",
        package=params.get("package") or params.get("binarypkg") or "",
        section=params.get("section") or "",
        language=params.get("language") or "",
    )


def _referrer_release(request: Request, store: IndexStore, base_url_path: str) -> str:
    referer = request.headers.get("referer", "")
    if not referer:
        return ""
    path = urlsplit(referer).path
    if base_url_path and path.startswith(base_url_path):
        path = path[len(base_url_path) :]
    first = path.lstrip("/").split("/", 1)[0]
    return first if first and store.is_release(first) else ""


def _serve_file(serving_dir: Path, url_path: str) -> Response | None:
    relative = url_path.lstrip("/") or "index.html"
    path = serving_dir / relative
    compressed = False
    if not path.is_file():
        path = path.with_name(path.name + ".gz")
        compressed = True
        if not path.is_file():
            return None

    content_type, _ = mimetypes.guess_type(relative)
    if content_type is None:
        content_type = "text/html"
    data = path.read_bytes()
    if compressed:
        data = gzip.decompress(data)
    return Response(content=data, media_type=content_type)


def create_app(
    store: IndexStore,
    settings: ServerSettings,
    *,
    watch_index: bool = False,
) -> FastAPI:
    """Build the redirect application around ``store``.

    With ``watch_index`` the index file named in ``settings`` is reloaded
    whenever it is replaced; a failing reload keeps the current index.
    """

    base_url_path = settings.base_url_path

    async def reload_index(path: Path) -> None:
        try:
            index = await asyncio.to_thread(read_index, path)
            await asyncio.to_thread(store.swap, index)
        except (IndexFileError, IndexValidationError) as exc:
            LOGGER.error("Keeping current index, reload of %s failed: %s", path, exc)
            return
        LOGGER.info("Reloaded index from %s", path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        watcher: IndexFileWatcher | None = None
        if watch_index:
            watcher = IndexFileWatcher(
                settings.index_path,
                reload_index,
                debounce_seconds=settings.reload_debounce_seconds,
            )
            await watcher.start()
            LOGGER.info("Watching %s for index updates", settings.index_path)
        yield
        if watcher is not None:
            watcher.stop()

    app = FastAPI(title="manmirror redirector", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.store = store
    app.state.settings = settings

    def redirect(request: Request, path: str) -> Response:
        try:
            target = store.resolve(
                path,
                accept_language=request.headers.get("accept-language"),
                overrides=_overrides(request),
                referrer_release=_referrer_release(request, store, base_url_path),
            )
        except NotFoundError as exc:
            LOGGER.debug("No redirect for %r: %s", path, exc)
            return _not_found_page(exc, base_url_path)
        # 307: the target will likely change, clients must keep asking.
        return RedirectResponse(base_url_path + target, status_code=307)

    @app.get("/jump")
    async def jump(request: Request, q: str = Query(default="")) -> Response:
        if not q.strip():
            return PlainTextResponse("No q= query parameter specified", status_code=400)
        path = q.removeprefix(base_url_path) if base_url_path else q
        return redirect(request, "/" + path.lstrip("/"))

    @app.get("/suggest")
    async def suggest(q: str = Query(default="")) -> Response:
        if not q.strip():
            return PlainTextResponse("No q= query parameter specified", status_code=400)
        return JSONResponse([q, store.suggest(q)])

    @app.get("/{path:path}")
    async def dispatch(request: Request, path: str) -> Response:
        url_path = request.url.path
        if base_url_path and url_path.startswith(base_url_path + "/"):
            url_path = url_path[len(base_url_path) :]

        if settings.serving_dir is not None:
            if ".." in url_path:
                LOGGER.warning("Invalid URL path %r", url_path)
                return PlainTextResponse("invalid URL path", status_code=400)
            served = await asyncio.to_thread(_serve_file, settings.serving_dir, url_path)
            if served is not None:
                return served

        return redirect(request, url_path)

    return app
