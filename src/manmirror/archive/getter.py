"""Content-addressed access to a Debian-style package archive."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
import gzip
import hashlib
import logging
import lzma
from pathlib import Path
import shutil
import tempfile
import threading
import time
from typing import IO

import httpx
from debian.deb822 import Release as Deb822Release


LOGGER = logging.getLogger(__name__)

DEFAULT_MIRROR_URL = "https://deb.debian.org/debian"
DEFAULT_CONNECTIONS_PER_MIRROR = 10
_CHUNK_SIZE = 1 << 16


@dataclass(slots=True)
class ArchiveError(Exception):
    """Non-retryable failure fetching or verifying an archive file."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (path={self.path})"


@dataclass(slots=True)
class TransientArchiveError(ArchiveError):
    """Failure worth retrying: connection problems, timeouts, 5xx responses."""


@dataclass(slots=True)
class HashMismatchError(ArchiveError):
    """The downloaded bytes do not match the expected SHA256 sum."""


@dataclass(frozen=True, slots=True)
class Release:
    """The parts of a ``Release`` file the catalog builder needs."""

    codename: str
    suite: str
    architectures: tuple[str, ...]
    sha256: Mapping[str, str] = field(default_factory=dict)
    acquire_by_hash: bool = False


def parse_release(text: str) -> Release:
    """Parse the body of a ``Release`` file."""

    paragraph = Deb822Release(text)
    hashes = {entry["name"]: entry["sha256"] for entry in paragraph.get("SHA256", [])}
    # There is no Contents-all file; Architecture: all packages are part of
    # every architecture-specific listing.
    architectures = tuple(arch for arch in paragraph.get("Architectures", "").split() if arch != "all")
    return Release(
        codename=paragraph.get("Codename", "").strip(),
        suite=paragraph.get("Suite", "").strip(),
        architectures=architectures,
        sha256=hashes,
        acquire_by_hash=paragraph.get("Acquire-By-Hash", "").strip().lower() == "yes",
    )


class ArchiveGetter:
    """Fetches archive files from a local mirror or over HTTP, verifying hashes.

    Transient errors are retried ``max_retries`` times with exponential
    back-off; at most ``connections_per_mirror`` downloads run at once.
    """

    def __init__(
        self,
        *,
        local_mirror: str | Path | None = None,
        mirror_url: str = DEFAULT_MIRROR_URL,
        connections_per_mirror: int = DEFAULT_CONNECTIONS_PER_MIRROR,
        max_retries: int = 3,
        retry_base_seconds: float = 0.5,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if connections_per_mirror < 1:
            raise ValueError("connections_per_mirror must be >= 1")
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if retry_base_seconds < 0:
            raise ValueError("retry_base_seconds cannot be negative")

        self._local_mirror = Path(local_mirror) if local_mirror is not None else None
        self._mirror_url = mirror_url.rstrip("/")
        self._slots = threading.BoundedSemaphore(connections_per_mirror)
        self._max_retries = max_retries
        self._retry_base_seconds = retry_base_seconds
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self._by_hash: dict[str, bool] = {}
        self._by_hash_lock = threading.Lock()

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "ArchiveGetter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=60.0, follow_redirects=True)
        return self._client

    def get_release(self, name: str) -> Release:
        """Fetch and parse ``dists/<name>/Release``."""

        path = f"dists/{name}/Release"
        with self._slots:
            data = self._with_retries(path, lambda: self._read_all(path))
        release = parse_release(data.decode("utf-8", errors="replace"))

        with self._by_hash_lock:
            for key in (release.codename, release.suite, name):
                if key:
                    self._by_hash[key] = release.acquire_by_hash
        return release

    def get(self, path: str, sha256_hex: str) -> IO[bytes]:
        """Return a decompressed temporary file for ``path``.

        The SHA256 sum is checked against the bytes as stored in the
        archive; ``.gz`` and ``.xz`` files are decompressed afterwards.
        The caller owns (and closes) the returned file.
        """

        with self._slots:
            raw = self._with_retries(path, lambda: self._download(path, sha256_hex))

        try:
            if path.endswith(".gz"):
                return _decompress(raw, gzip.GzipFile(fileobj=raw, mode="rb"))
            if path.endswith(".xz"):
                return _decompress(raw, lzma.LZMAFile(raw, mode="rb"))
        except (OSError, EOFError, lzma.LZMAError) as exc:
            raw.close()
            raise ArchiveError(path=path, message=f"Cannot decompress: {exc}") from exc
        return raw

    def _with_retries(self, path: str, operation: Callable[[], object]):
        attempts = self._max_retries + 1
        last_error: TransientArchiveError | None = None

        for attempt in range(attempts):
            try:
                return operation()
            except TransientArchiveError as exc:
                last_error = exc
                if attempt >= self._max_retries:
                    break
                LOGGER.warning("transient error %s, retrying (attempt %d of %d)", exc, attempt + 1, attempts)
                self._sleep(self._retry_base_seconds * (2**attempt))

        raise ArchiveError(
            path=path,
            message=f"Download failed after {attempts} attempt(s): {last_error}",
        ) from last_error

    def _by_hash_path(self, path: str, sha256_hex: str) -> str:
        if not path.startswith("dists/"):
            return path
        parts = path.split("/")
        with self._by_hash_lock:
            enabled = self._by_hash.get(parts[1], False)
        if not enabled:
            return path
        return "/".join(parts[:-1]) + "/by-hash/SHA256/" + sha256_hex

    def _download(self, path: str, sha256_hex: str) -> IO[bytes]:
        location = self._by_hash_path(path, sha256_hex)
        LOGGER.info("getting %r (hash %s)", path, sha256_hex)

        target = tempfile.TemporaryFile()
        digest = hashlib.sha256()
        try:
            with self._open_stream(location) as chunks:
                for chunk in chunks:
                    digest.update(chunk)
                    target.write(chunk)
        except BaseException:
            target.close()
            raise

        if digest.hexdigest() != sha256_hex.lower():
            target.close()
            raise HashMismatchError(
                path=path,
                message=f"Invalid hash: got {digest.hexdigest()}, want {sha256_hex}",
            )
        target.seek(0)
        return target

    def _read_all(self, path: str) -> bytes:
        with self._open_stream(path) as chunks:
            return b"".join(chunks)

    @contextmanager
    def _open_stream(self, path: str) -> Iterator[Iterator[bytes]]:
        if self._local_mirror is not None:
            local_path = self._local_mirror / path
            try:
                handle = local_path.open("rb")
            except OSError as exc:
                raise ArchiveError(path=path, message=f"Cannot open local mirror file: {exc}") from exc
            with handle:
                yield iter(lambda: handle.read(_CHUNK_SIZE), b"")
            return

        url = f"{self._mirror_url}/{path}"
        try:
            with self._http().stream("GET", url) as response:
                status = response.status_code
                if status != 200:
                    message = f"Unexpected HTTP status code: got {status}, want 200"
                    if status < 400 or status >= 500:
                        raise TransientArchiveError(path=path, message=message)
                    raise ArchiveError(path=path, message=message)
                yield response.iter_bytes(_CHUNK_SIZE)
        except httpx.TransportError as exc:
            raise TransientArchiveError(path=path, message=f"Transport error: {exc}") from exc


def _decompress(raw: IO[bytes], reader: IO[bytes]) -> IO[bytes]:
    target = tempfile.TemporaryFile()
    try:
        with reader:
            shutil.copyfileobj(reader, target, _CHUNK_SIZE)
    except BaseException:
        target.close()
        raise
    finally:
        raw.close()
    target.seek(0)
    return target
