"""Repository classes for DynamoDB data access."""

from pathwise.repositories.base import BaseRepository
from pathwise.repositories.lead import LeadRepository
from pathwise.repositories.payment import PaymentRepository
from pathwise.repositories.touchpoint import TouchpointRepository

__all__ = [
    "BaseRepository",
    "LeadRepository",
    "PaymentRepository",
    "TouchpointRepository",
]
