"""Consent gate.

The decision is stored as "true"/"false" in the durable store. Page views are
always allowed; everything else depends on the stored decision and the
deployment's consent mode.
"""

from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from pathwise.client.config import AgentConfig, ConsentMode
from pathwise.client.identity import IdentityManager
from pathwise.client.storage import DurableStore
from pathwise.models.event import ESSENTIAL_EVENT_TYPE, ConsentPayload

if TYPE_CHECKING:
    from pathwise.client.transport import Dispatcher

logger = structlog.get_logger()

CONSENT_KEY = "pw_consent"


class ConsentState(str, Enum):
    """Stored consent decision."""

    GRANTED = "granted"
    DENIED = "denied"
    PENDING = "pending"


class ConsentGate:
    """Reads, records and enforces the visitor's consent decision."""

    def __init__(
        self,
        config: AgentConfig,
        storage: DurableStore,
        identity: IdentityManager,
        dispatcher: "Dispatcher",
        log: Any = None,
    ):
        self.config = config
        self.storage = storage
        self.identity = identity
        self.dispatcher = dispatcher
        self.logger = log or logger.bind(component="consent")

    def has_consent(self) -> ConsentState:
        """Current consent state.

        Unset reads as PENDING when the deployment requires consent, and as
        GRANTED otherwise.
        """
        try:
            stored = self.storage.get(CONSENT_KEY)
        except Exception as e:
            self.logger.warning("Storage read failed", key=CONSENT_KEY, error=str(e))
            stored = None

        if stored is None:
            return ConsentState.PENDING if self.config.require_consent else ConsentState.GRANTED
        return ConsentState.GRANTED if stored == "true" else ConsentState.DENIED

    def set_consent(self, given: bool) -> None:
        """Record a decision; a grant is also reported to the consent endpoint.

        Calling it again simply overwrites the previous decision.
        """
        try:
            self.storage.set(CONSENT_KEY, "true" if given else "false")
        except Exception as e:
            self.logger.warning("Storage write failed", key=CONSENT_KEY, error=str(e))

        self.logger.info("Consent updated", consent_given=given)

        if given:
            payload = ConsentPayload.for_decision(
                project_key=self.config.project_key or "",
                visitor_id=self.identity.resolve_visitor_id(),
                given=True,
            )
            self.dispatcher.dispatch(self.config.resolved_consent_url, payload.model_dump())

    def allows(self, event_type: str) -> bool:
        """Whether an event of this type may be sent under the current state."""
        if event_type == ESSENTIAL_EVENT_TYPE:
            return True

        state = self.has_consent()
        if state == ConsentState.GRANTED:
            return True
        if state == ConsentState.DENIED:
            return False
        return self.config.consent_mode == ConsentMode.OPT_OUT
