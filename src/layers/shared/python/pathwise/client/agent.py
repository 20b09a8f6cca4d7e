"""Embeddable tracking agent.

TrackingAgent wires identity, consent, cross-domain propagation and event
emission together for one page. Every public method is safe to call from
host code: failures are logged, never raised, and an agent built without a
project key stays disabled and does nothing.

Typical use::

    agent = TrackingAgent(
        AgentConfig(project_key="pk_live_123"),
        Page(url="https://shop.example.com/?utm_source=google"),
    )
    agent.start()
    agent.track_lead("ana@example.com", "Ana")
"""

import functools
import time
from typing import Any, Callable

import structlog

from pathwise.client.config import AgentConfig
from pathwise.client.consent import ConsentGate, ConsentState
from pathwise.client.cross_domain import CrossDomainPropagator
from pathwise.client.emitter import EventEmitter
from pathwise.client.identity import IdentityManager
from pathwise.client.page import Link, Page
from pathwise.client.storage import (
    CookieStore,
    DurableStore,
    MemoryCookieStore,
    MemoryDurableStore,
)
from pathwise.client.transport import BeaconTransport, Dispatcher, HttpTransport, Transport
from pathwise.utils.exceptions import ConfigurationError

logger = structlog.get_logger()

SESSION_START_EVENT = "session_start"
PAGE_VIEW_EVENT = "page_view"


def _guarded(default: Any = None):
    """Return ``default`` when the agent is disabled or the call fails."""

    def decorator(method: Callable) -> Callable:
        @functools.wraps(method)
        def wrapper(self: "TrackingAgent", *args, **kwargs):
            if not self.enabled:
                return default
            try:
                return method(self, *args, **kwargs)
            except Exception as e:
                self.logger.warning(
                    "Tracking agent call failed", method=method.__name__, error=str(e)
                )
                return default

        return wrapper

    return decorator


class TrackingAgent:
    """Client-side attribution agent for a single page."""

    def __init__(
        self,
        config: AgentConfig,
        page: Page,
        cookies: CookieStore | None = None,
        storage: DurableStore | None = None,
        send_beacon: Callable[[str, bytes], bool] | None = None,
        transports: list[Transport] | None = None,
        fingerprint_source: Callable[[], str | bytes] | None = None,
        clock: Callable[[], float] = time.time,
        log: Any = None,
    ):
        """Initialize the agent.

        Args:
            config: Agent settings.
            page: The page the agent is embedded in.
            cookies: Session cookie store. Defaults to an in-memory jar.
            storage: Durable store. Defaults to an in-memory store.
            send_beacon: Host beacon primitive, preferred over HTTP when given.
            transports: Explicit transport chain; overrides send_beacon.
            fingerprint_source: Rendering signature callable.
            clock: Seconds since the epoch. Injectable for tests.
            log: structlog-compatible logger for every component.
        """
        self.config = config
        self.page = page
        self.logger = log or logger.bind(component="agent")
        self.enabled = False
        self.started = False

        try:
            config.ensure_startable()
        except ConfigurationError as e:
            self.logger.error(
                "Tracking agent disabled", reason=e.message, setting=e.details.get("setting")
            )
            return

        if transports is None:
            transports = []
            if send_beacon is not None:
                transports.append(BeaconTransport(send_beacon))
            transports.append(HttpTransport(timeout=config.request_timeout))

        self.dispatcher = Dispatcher(transports, log=log)
        self.identity = IdentityManager(
            config,
            cookies if cookies is not None else MemoryCookieStore(clock=clock),
            storage if storage is not None else MemoryDurableStore(),
            fingerprint_source=fingerprint_source,
            clock=clock,
            log=log,
        )
        self.consent = ConsentGate(
            config, self.identity.storage, self.identity, self.dispatcher, log=log
        )
        self.propagator = CrossDomainPropagator(self.identity, log=log)
        self.emitter = EventEmitter(
            config, page, self.identity, self.consent, self.dispatcher, log=log
        )
        self.enabled = True

    @_guarded()
    def start(self) -> None:
        """Run the page-load sequence once.

        A session ID in the landing URL wins over both the stored ID and
        rotation. ``session_start`` fires when the session marker is missing
        or stale, then ``page_view`` always fires.
        """
        if self.started:
            return
        self.started = True

        recovered = self.propagator.recover(self.page)
        expired = self.identity.session_expired()
        if expired and not recovered:
            self.identity.rotate_session_id()

        session_id = self.identity.resolve_session_id()
        visitor_id = self.identity.resolve_visitor_id()

        if expired or self.identity.session_started_at() is None:
            self.emitter.track(SESSION_START_EVENT)
            self.identity.mark_session_start()

        self.emitter.track(PAGE_VIEW_EVENT)

        self.logger.info(
            "Tracking agent started",
            session_id=session_id,
            visitor_id=visitor_id,
            recovered=bool(recovered),
        )

    @_guarded()
    def track(self, event_type: str, data: dict[str, Any] | None = None) -> None:
        self.emitter.track(event_type, data)

    @_guarded()
    def track_lead(self, email: str, name: str | None = None) -> None:
        """Record a signup."""
        self.emitter.track("signup", {"email": email, "name": name})

    @_guarded()
    def identify(self, email: str, name: str | None = None) -> None:
        self.emitter.track("identify", {"email": email, "name": name})

    @_guarded()
    def track_purchase(
        self,
        amount: float,
        currency: str = "BRL",
        order_id: str | None = None,
        email: str | None = None,
    ) -> None:
        """Record a purchase for revenue attribution."""
        self.emitter.track(
            "purchase",
            {
                "amount": amount,
                "currency": currency or "BRL",
                "order_id": order_id,
                "customer_email": email,
            },
        )

    @_guarded()
    def set_consent(self, given: bool) -> None:
        self.consent.set_consent(given)

    @_guarded(default=ConsentState.PENDING)
    def has_consent(self) -> ConsentState:
        return self.consent.has_consent()

    @_guarded(default=False)
    def handle_link_click(self, link: Link) -> bool:
        """Decorate an outbound link before the browser follows it."""
        return self.propagator.handle_click(link, self.page)

    @_guarded()
    def get_session_id(self) -> str | None:
        return self.identity.resolve_session_id()

    @_guarded()
    def get_visitor_id(self) -> str | None:
        return self.identity.resolve_visitor_id()

    async def drain(self) -> None:
        """Wait for deliveries scheduled on the running event loop."""
        if self.enabled:
            await self.dispatcher.drain()

    def join(self, timeout: float | None = None) -> None:
        """Wait for deliveries running on the background thread."""
        if self.enabled:
            self.dispatcher.join(timeout=timeout)

    def close(self) -> None:
        """Finish background deliveries and release the worker and HTTP clients."""
        if self.enabled:
            self.dispatcher.close()
