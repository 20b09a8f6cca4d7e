"""Event assembly and emission."""

from typing import Any

import structlog

from pathwise.client.config import AgentConfig
from pathwise.client.consent import ConsentGate
from pathwise.client.identity import IdentityManager
from pathwise.client.page import Page, classify_device, utm_params
from pathwise.client.transport import Dispatcher
from pathwise.models.event import TrackingEvent

logger = structlog.get_logger()


class EventEmitter:
    """Builds TrackingEvents from the page context and dispatches them."""

    def __init__(
        self,
        config: AgentConfig,
        page: Page,
        identity: IdentityManager,
        consent: ConsentGate,
        dispatcher: Dispatcher,
        log: Any = None,
    ):
        self.config = config
        self.page = page
        self.identity = identity
        self.consent = consent
        self.dispatcher = dispatcher
        self.logger = log or logger.bind(component="emitter")

    def track(self, event_type: str, data: dict[str, Any] | None = None) -> None:
        """Send an event if consent allows it. Never raises, never waits.

        Args:
            event_type: Event name, e.g. "page_view" or "signup".
            data: Caller fields; they override everything assembled here.
        """
        try:
            if not self.consent.allows(event_type):
                self.logger.debug("Event blocked by consent", event_type=event_type)
                return
            event = self.build_event(event_type, data)
        except Exception as e:
            self.logger.warning("Failed to assemble event", event_type=event_type, error=str(e))
            return

        self.dispatcher.dispatch(self.config.api_url, event.to_payload())

    def build_event(self, event_type: str, data: dict[str, Any] | None = None) -> TrackingEvent:
        """Assemble an event; later layers override earlier ones.

        Layers: identity, page, UTM parameters, device, caller data.
        """
        identity = {
            "project_key": self.config.project_key,
            "session_id": self.identity.resolve_session_id(),
            "visitor_id": self.identity.resolve_visitor_id(),
            "event_type": event_type,
        }
        page = {
            "page_url": self.page.url,
            "referrer": self.page.referrer or None,
        }
        device = {
            "device_type": classify_device(self.page.user_agent),
            "user_agent": self.page.user_agent or None,
            "screen_width": self.page.screen_width,
            "screen_height": self.page.screen_height,
            "language": self.page.language,
        }

        return TrackingEvent.assemble(
            identity,
            page,
            utm_params(self.page.url),
            device,
            data or {},
        )
