"""Client-side tracking agent."""

from pathwise.client.agent import TrackingAgent
from pathwise.client.config import AgentConfig, ConsentMode
from pathwise.client.consent import ConsentGate, ConsentState
from pathwise.client.cross_domain import CrossDomainPropagator, same_domain_family
from pathwise.client.emitter import EventEmitter
from pathwise.client.identity import IdentityManager, generate_fingerprint
from pathwise.client.page import Link, Page, classify_device, utm_params
from pathwise.client.storage import (
    HeaderCookieStore,
    JsonFileDurableStore,
    MemoryCookieStore,
    MemoryDurableStore,
)
from pathwise.client.transport import BeaconTransport, Dispatcher, HttpTransport, Transport

__all__ = [
    "AgentConfig",
    "BeaconTransport",
    "ConsentGate",
    "ConsentMode",
    "ConsentState",
    "CrossDomainPropagator",
    "Dispatcher",
    "EventEmitter",
    "HeaderCookieStore",
    "HttpTransport",
    "IdentityManager",
    "JsonFileDurableStore",
    "Link",
    "MemoryCookieStore",
    "MemoryDurableStore",
    "Page",
    "TrackingAgent",
    "Transport",
    "classify_device",
    "generate_fingerprint",
    "same_domain_family",
    "utm_params",
]
