"""Pydantic models for Pathwise entities."""

from pathwise.models.base import BaseModel, TimestampMixin
from pathwise.models.event import ConsentPayload, TrackingEvent
from pathwise.models.journey import (
    CriterionType,
    FirstSource,
    Journey,
    JourneyQuery,
    JourneySort,
    JourneyStats,
    JourneyStatus,
    StatusFilter,
)
from pathwise.models.lead import Lead
from pathwise.models.payment import Payment, PaymentStatus
from pathwise.models.touchpoint import Touchpoint

__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    # Wire events
    "ConsentPayload",
    "TrackingEvent",
    # Stored records
    "Lead",
    "Payment",
    "PaymentStatus",
    "Touchpoint",
    # Journey
    "CriterionType",
    "FirstSource",
    "Journey",
    "JourneyQuery",
    "JourneySort",
    "JourneyStats",
    "JourneyStatus",
    "StatusFilter",
]
