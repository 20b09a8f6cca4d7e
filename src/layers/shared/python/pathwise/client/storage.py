"""Client-side storage backends.

The agent keeps its identifiers in two kinds of store:

- a cookie store: short-lived entries with a TTL, the first place the
  session id is read from;
- a durable store: entries without expiry (visitor id, session id copy,
  session-start marker, consent decision).

Hosts pick the backends that fit where the agent runs. The in-memory
versions are what tests use.
"""

import json
import time
from http.cookies import CookieError, SimpleCookie
from pathlib import Path
from typing import Callable, Protocol

import structlog

logger = structlog.get_logger()

SECONDS_PER_DAY = 24 * 60 * 60


class CookieStore(Protocol):
    """Key/value store whose entries expire."""

    def get(self, name: str) -> str | None: ...

    def set(self, name: str, value: str, days: int) -> None: ...


class DurableStore(Protocol):
    """Key/value store whose entries never expire."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryCookieStore:
    """In-process cookie jar honoring TTLs against an injectable clock."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._cookies: dict[str, tuple[str, float]] = {}

    def get(self, name: str) -> str | None:
        entry = self._cookies.get(name)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._cookies[name]
            return None
        return value

    def set(self, name: str, value: str, days: int) -> None:
        self._cookies[name] = (value, self._clock() + days * SECONDS_PER_DAY)

    def clear(self) -> None:
        """Drop every cookie (simulates a browser blocking or wiping cookies)."""
        self._cookies.clear()


class HeaderCookieStore:
    """Cookie store backed by an HTTP request's Cookie header.

    Reads come from the incoming header (or from values set during this
    request); writes are collected as Set-Cookie header values for the
    response.
    """

    def __init__(
        self,
        cookie_header: str | None = None,
        path: str = "/",
        domain: str | None = None,
        secure: bool = True,
    ):
        self._incoming = SimpleCookie()
        if cookie_header:
            try:
                self._incoming.load(cookie_header)
            except CookieError as e:
                logger.warning("Ignoring malformed Cookie header", error=str(e))
        self._outgoing = SimpleCookie()
        self.path = path
        self.domain = domain
        self.secure = secure

    def get(self, name: str) -> str | None:
        if name in self._outgoing:
            return self._outgoing[name].value
        if name in self._incoming:
            return self._incoming[name].value
        return None

    def set(self, name: str, value: str, days: int) -> None:
        self._outgoing[name] = value
        morsel = self._outgoing[name]
        morsel["path"] = self.path
        morsel["max-age"] = str(days * SECONDS_PER_DAY)
        morsel["samesite"] = "Lax"
        if self.domain:
            morsel["domain"] = self.domain
        if self.secure:
            morsel["secure"] = True

    def set_cookie_headers(self) -> list[str]:
        """Set-Cookie header values for everything written."""
        return [morsel.OutputString() for morsel in self._outgoing.values()]


class MemoryDurableStore:
    """In-process durable store."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def clear(self) -> None:
        self._data.clear()


class JsonFileDurableStore:
    """Durable store persisted as a JSON object on disk."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._data: dict[str, str] | None = None

    def _load(self) -> dict[str, str]:
        if self._data is None:
            self._data = {}
            if self.path.exists():
                try:
                    with open(self.path, "r", encoding="utf-8") as f:
                        loaded = json.load(f)
                except json.JSONDecodeError as e:
                    logger.warning(
                        "Durable store unreadable, starting empty",
                        path=str(self.path),
                        error=str(e),
                    )
                    return self._data
                if not isinstance(loaded, dict):
                    logger.warning(
                        "Durable store is not a JSON object, starting empty",
                        path=str(self.path),
                    )
                    return self._data
                self._data = {str(k): str(v) for k, v in loaded.items()}
        return self._data

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        tmp_path.replace(self.path)
