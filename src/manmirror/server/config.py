"""Runtime configuration for the redirect server."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Mapping

from manmirror.redirect.narrow import DEFAULT_RELEASE
from manmirror.redirect.store import DEFAULT_CANARY_PATH, DEFAULT_CANARY_SUFFIX


DEFAULT_INDEX_PATH = "auxserver.idx"
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8089
DEFAULT_RELOAD_DEBOUNCE_SECONDS = 2.0


def _parse_port(*, name: str, raw_value: str) -> int:
    try:
        value = int(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if not 1 <= value <= 65535:
        raise ValueError(f"{name} must be between 1 and 65535")
    return value


def _parse_positive_float(*, name: str, raw_value: str, minimum: float = 0.0) -> float:
    try:
        value = float(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _required(source: Mapping[str, str], name: str, default: str) -> str:
    value = source.get(name, default).strip()
    if not value:
        raise ValueError(f"{name} cannot be empty")
    return value


@dataclass(frozen=True, slots=True)
class ServerSettings:
    """Validated redirect server settings."""

    index_path: Path
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    default_release: str = DEFAULT_RELEASE
    base_url_path: str = ""
    serving_dir: Path | None = None
    reload_debounce_seconds: float = DEFAULT_RELOAD_DEBOUNCE_SECONDS
    canary_path: str = DEFAULT_CANARY_PATH
    canary_suffix: str = DEFAULT_CANARY_SUFFIX

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ServerSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        index_path = _required(source, "MANMIRROR_INDEX_PATH", DEFAULT_INDEX_PATH)
        host = _required(source, "MANMIRROR_HOST", DEFAULT_HOST)
        port = _parse_port(name="MANMIRROR_PORT", raw_value=_required(source, "MANMIRROR_PORT", str(DEFAULT_PORT)))
        default_release = _required(source, "MANMIRROR_DEFAULT_RELEASE", DEFAULT_RELEASE)
        debounce = _parse_positive_float(
            name="MANMIRROR_RELOAD_DEBOUNCE_SECONDS",
            raw_value=_required(source, "MANMIRROR_RELOAD_DEBOUNCE_SECONDS", str(DEFAULT_RELOAD_DEBOUNCE_SECONDS)),
        )
        canary_path = _required(source, "MANMIRROR_CANARY_PATH", DEFAULT_CANARY_PATH)
        if not canary_path.startswith("/"):
            raise ValueError("MANMIRROR_CANARY_PATH must start with /")
        canary_suffix = _required(source, "MANMIRROR_CANARY_SUFFIX", DEFAULT_CANARY_SUFFIX)

        base_url_path = source.get("MANMIRROR_BASE_URL_PATH", "").strip().rstrip("/")
        if base_url_path and not base_url_path.startswith("/"):
            raise ValueError("MANMIRROR_BASE_URL_PATH must be empty or start with /")

        serving_dir_raw = source.get("MANMIRROR_SERVING_DIR", "").strip()
        serving_dir = Path(serving_dir_raw) if serving_dir_raw else None

        return cls(
            index_path=Path(index_path),
            host=host,
            port=port,
            default_release=default_release,
            base_url_path=base_url_path,
            serving_dir=serving_dir,
            reload_debounce_seconds=debounce,
            canary_path=canary_path,
            canary_suffix=canary_suffix,
        )
