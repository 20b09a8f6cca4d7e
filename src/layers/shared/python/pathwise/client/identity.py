"""Visitor and session identity.

Visitor IDs live in the durable store and are never regenerated once
present. Session IDs are read from the cookie first, then the durable store,
and only synthesized when both are empty. A session rotates when its start
marker is older than the configured timeout.
"""

import hashlib
import secrets
import string
import time
from typing import Any, Callable

import structlog

from pathwise.client.config import AgentConfig
from pathwise.client.storage import CookieStore, DurableStore

logger = structlog.get_logger()

SESSION_COOKIE = "pw_session"
SESSION_KEY = "pw_session_id"
VISITOR_KEY = "pw_visitor_id"
SESSION_START_KEY = "pw_session_start"

BASE36_ALPHABET = string.digits + string.ascii_lowercase
FINGERPRINT_LENGTH = 8


def random_base36(length: int) -> str:
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def generate_fingerprint(surface: Callable[[], str | bytes] | None) -> str:
    """Derive a short, low-entropy device fingerprint.

    Args:
        surface: Host callable returning a rendering signature (for example
            a canvas data URL). May be None when no surface exists.

    Returns:
        First hex characters of the signature's SHA-256, or "" when the
        surface is missing or fails.
    """
    if surface is None:
        return ""
    try:
        signature = surface()
    except Exception as e:
        logger.debug("Fingerprint surface unavailable", error=str(e))
        return ""
    if not signature:
        return ""
    if isinstance(signature, str):
        signature = signature.encode("utf-8")
    return hashlib.sha256(signature).hexdigest()[:FINGERPRINT_LENGTH]


class IdentityManager:
    """Owns the visitor ID, session ID and session-start marker."""

    def __init__(
        self,
        config: AgentConfig,
        cookies: CookieStore,
        storage: DurableStore,
        fingerprint_source: Callable[[], str | bytes] | None = None,
        clock: Callable[[], float] = time.time,
        log: Any = None,
    ):
        """Initialize the identity manager.

        Args:
            config: Agent settings (timeouts, TTLs, visitor prefix).
            cookies: Expiring store for the session cookie.
            storage: Durable store.
            fingerprint_source: Rendering signature callable for session IDs.
            clock: Seconds since the epoch. Injectable for tests.
            log: structlog-compatible logger. Defaults to the module logger.
        """
        self.config = config
        self.cookies = cookies
        self.storage = storage
        self.fingerprint_source = fingerprint_source
        self.clock = clock
        self.logger = log or logger.bind(component="identity")

    def now_ms(self) -> int:
        return int(self.clock() * 1000)

    def resolve_visitor_id(self) -> str:
        """Return the visitor ID, creating and persisting it on first use."""
        visitor_id = self._read(self.storage, VISITOR_KEY)
        if visitor_id:
            return visitor_id

        visitor_id = f"{self.config.visitor_prefix}{self.now_ms()}_{random_base36(13)}"
        self._write(self.storage, VISITOR_KEY, visitor_id)
        self.logger.debug("Created visitor ID", visitor_id=visitor_id)
        return visitor_id

    def resolve_session_id(self) -> str:
        """Return the current session ID, synthesizing one if none is stored."""
        session_id = self._read(self.cookies, SESSION_COOKIE) or self._read(
            self.storage, SESSION_KEY
        )
        if session_id:
            return session_id
        return self.rotate_session_id()

    def adopt_session_id(self, session_id: str) -> None:
        """Make the given session ID current in both stores."""
        self._write_cookie(SESSION_COOKIE, session_id)
        self._write(self.storage, SESSION_KEY, session_id)

    def rotate_session_id(self) -> str:
        """Synthesize a fresh session ID and make it current."""
        fingerprint = generate_fingerprint(self.fingerprint_source)
        session_id = f"pw_{self.now_ms()}_{fingerprint}_{random_base36(9)}"
        self.adopt_session_id(session_id)
        self.logger.debug("Started new session", session_id=session_id)
        return session_id

    def session_started_at(self) -> int | None:
        """Epoch millis of the session-start marker, if one is stored."""
        raw = self._read(self.storage, SESSION_START_KEY)
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            self.logger.warning("Ignoring malformed session start marker", value=raw)
            return None

    def session_expired(self) -> bool:
        """True when a marker exists and is older than the session timeout."""
        started_at = self.session_started_at()
        if started_at is None:
            return False
        return self.now_ms() - started_at > self.config.session_timeout_ms

    def mark_session_start(self) -> None:
        self._write(self.storage, SESSION_START_KEY, str(self.now_ms()))

    def _read(self, store: CookieStore | DurableStore, key: str) -> str | None:
        try:
            return store.get(key)
        except Exception as e:
            self.logger.warning("Storage read failed", key=key, error=str(e))
            return None

    def _write(self, store: DurableStore, key: str, value: str) -> None:
        try:
            store.set(key, value)
        except Exception as e:
            self.logger.warning("Storage write failed", key=key, error=str(e))

    def _write_cookie(self, name: str, value: str) -> None:
        try:
            self.cookies.set(name, value, self.config.cookie_ttl_days)
        except Exception as e:
            self.logger.warning("Cookie write failed", key=name, error=str(e))
