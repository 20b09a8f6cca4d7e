"""Tests for visitor and session identity."""

import re

import pytest

from pathwise.client import (
    AgentConfig,
    IdentityManager,
    MemoryCookieStore,
    MemoryDurableStore,
    generate_fingerprint,
)
from pathwise.client.identity import (
    SESSION_COOKIE,
    SESSION_KEY,
    SESSION_START_KEY,
    VISITOR_KEY,
)


class FailingStore:
    """Store whose every operation raises."""

    def get(self, key):
        raise OSError("storage blocked")

    def set(self, key, value, *args):
        raise OSError("storage blocked")


@pytest.fixture
def stores(clock):
    """Fresh cookie and durable stores sharing the test clock."""
    return MemoryCookieStore(clock=clock), MemoryDurableStore()


@pytest.fixture
def identity(agent_config, stores, clock):
    """Identity manager over in-memory stores."""
    cookies, storage = stores
    return IdentityManager(agent_config, cookies, storage, clock=clock)


class TestVisitorId:
    """Tests for visitor ID resolution."""

    def test_format(self, identity):
        """Visitor IDs carry the prefix, creation millis and a base36 suffix."""
        visitor_id = identity.resolve_visitor_id()
        assert re.fullmatch(r"pw_v_\d+_[0-9a-z]{13}", visitor_id)

    def test_idempotent(self, identity, stores):
        """Repeated resolution returns the stored ID."""
        first = identity.resolve_visitor_id()
        assert identity.resolve_visitor_id() == first
        assert stores[1].get(VISITOR_KEY) == first

    def test_existing_id_never_regenerated(self, agent_config, clock):
        """A stored visitor ID is reused as-is."""
        storage = MemoryDurableStore({VISITOR_KEY: "pw_v_1_existing"})
        identity = IdentityManager(agent_config, MemoryCookieStore(clock=clock), storage, clock=clock)
        assert identity.resolve_visitor_id() == "pw_v_1_existing"


class TestSessionId:
    """Tests for session ID resolution and rotation."""

    def test_synthesized_and_written_to_both_stores(self, identity, stores):
        """A new session ID is persisted in the cookie and the durable store."""
        session_id = identity.resolve_session_id()

        assert session_id.startswith("pw_")
        assert stores[0].get(SESSION_COOKIE) == session_id
        assert stores[1].get(SESSION_KEY) == session_id

    def test_stable_across_calls(self, identity):
        """The session ID does not change without rotation or adoption."""
        assert identity.resolve_session_id() == identity.resolve_session_id()

    def test_cookie_read_first(self, agent_config, clock):
        """The cookie wins over the durable copy."""
        cookies = MemoryCookieStore(clock=clock)
        cookies.set(SESSION_COOKIE, "from-cookie", 30)
        storage = MemoryDurableStore({SESSION_KEY: "from-storage"})

        identity = IdentityManager(agent_config, cookies, storage, clock=clock)

        assert identity.resolve_session_id() == "from-cookie"

    def test_durable_copy_survives_cookie_loss(self, identity, stores):
        """Clearing cookies falls back to the durable store."""
        session_id = identity.resolve_session_id()
        stores[0].clear()
        assert identity.resolve_session_id() == session_id

    def test_cookie_expires_after_ttl(self, identity, stores, clock):
        """The session cookie honors its 30 day TTL."""
        identity.resolve_session_id()
        clock.advance(31 * 24 * 60 * 60)
        assert stores[0].get(SESSION_COOKIE) is None

    def test_adopt(self, identity, stores):
        """Adopting an ID makes it current everywhere."""
        identity.resolve_session_id()
        identity.adopt_session_id("pw_handed_over")

        assert identity.resolve_session_id() == "pw_handed_over"
        assert stores[1].get(SESSION_KEY) == "pw_handed_over"

    def test_rotate(self, identity):
        """Rotation produces a different, current session ID."""
        before = identity.resolve_session_id()
        after = identity.rotate_session_id()

        assert after != before
        assert identity.resolve_session_id() == after

    def test_fingerprint_embedded(self, agent_config, stores, clock):
        """The fingerprint is the second segment of the session ID."""
        cookies, storage = stores
        identity = IdentityManager(
            agent_config, cookies, storage, fingerprint_source=lambda: "canvas-data", clock=clock
        )
        session_id = identity.resolve_session_id()
        assert session_id.split("_")[2] == generate_fingerprint(lambda: "canvas-data")


class TestSessionTimeout:
    """Tests for the session-start marker."""

    def test_no_marker_is_not_expired(self, identity):
        """Without a marker the session is not considered expired."""
        assert identity.session_started_at() is None
        assert identity.session_expired() is False

    def test_marker_within_timeout(self, identity, clock):
        """A marker younger than 30 minutes keeps the session alive."""
        identity.mark_session_start()
        clock.advance(29 * 60)
        assert identity.session_expired() is False

    def test_marker_past_timeout(self, identity, clock):
        """A marker older than 30 minutes expires the session."""
        identity.mark_session_start()
        clock.advance(31 * 60)
        assert identity.session_expired() is True

    def test_malformed_marker_ignored(self, agent_config, clock, mock_logger):
        """A non-numeric marker reads as absent."""
        storage = MemoryDurableStore({SESSION_START_KEY: "yesterday"})
        identity = IdentityManager(
            agent_config, MemoryCookieStore(clock=clock), storage, clock=clock, log=mock_logger
        )

        assert identity.session_started_at() is None
        mock_logger.warning.assert_called_once()

    def test_custom_timeout(self, stores, clock):
        """The timeout comes from the agent config."""
        config = AgentConfig(project_key="pk", session_timeout_minutes=5)
        identity = IdentityManager(config, *stores, clock=clock)

        identity.mark_session_start()
        clock.advance(6 * 60)

        assert identity.session_expired() is True


class TestStorageFailures:
    """Tests for blocked storage."""

    def test_failures_logged_and_swallowed(self, agent_config, clock, mock_logger):
        """Blocked storage never raises; identifiers are still produced."""
        identity = IdentityManager(
            agent_config, FailingStore(), FailingStore(), clock=clock, log=mock_logger
        )

        assert identity.resolve_visitor_id().startswith("pw_v_")
        assert identity.resolve_session_id().startswith("pw_")
        identity.mark_session_start()

        assert mock_logger.warning.called


class TestFingerprint:
    """Tests for fingerprint generation."""

    def test_missing_surface(self):
        """No rendering surface yields an empty fingerprint."""
        assert generate_fingerprint(None) == ""

    def test_failing_surface(self):
        """A surface that raises yields an empty fingerprint."""

        def broken():
            raise RuntimeError("canvas blocked")

        assert generate_fingerprint(broken) == ""

    def test_deterministic(self):
        """The same signature gives the same short fingerprint."""
        first = generate_fingerprint(lambda: b"signature")
        assert first == generate_fingerprint(lambda: "signature")
        assert len(first) == 8
