"""Service classes for business logic."""

from pathwise.services.journey_report import export_csv, present, summarize
from pathwise.services.journey_service import JourneyService

__all__ = [
    "JourneyService",
    "export_csv",
    "present",
    "summarize",
]
