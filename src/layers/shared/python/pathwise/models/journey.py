"""Journey models.

A Journey is a derived, read-only view of one visitor: touchpoints in time
order, the attributed lead (if any) and payments in time order. It is never
stored. Every summary value is computed from those three parts.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel as PydanticBaseModel, Field, computed_field

from pathwise.models.lead import Lead
from pathwise.models.payment import Payment
from pathwise.models.touchpoint import Touchpoint

# Reporting windows for "recent visitors" queries, in days
PERIODS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
}


class JourneyStatus(str, Enum):
    """Funnel stage reached by a visitor."""

    VISITOR = "visitor"
    LEAD = "lead"
    CUSTOMER = "customer"


class StatusFilter(str, Enum):
    """Status filter applied to a journey listing."""

    ALL = "all"
    VISITORS = "visitors"
    LEADS = "leads"
    CUSTOMERS = "customers"


class JourneySort(str, Enum):
    """Presentation order of a journey listing."""

    NONE = "none"
    REVENUE = "revenue"
    TOUCHPOINTS = "touchpoints"


class CriterionType(str, Enum):
    """How candidate visitors are selected."""

    VISITOR_ID = "visitor_id"
    EMAIL = "email"
    RECENT = "recent"


class FirstSource(PydanticBaseModel):
    """UTM attribution of a visitor's earliest touchpoint."""

    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None


class Journey(PydanticBaseModel):
    """One visitor's attributed timeline."""

    visitor_id: str
    touchpoints: list[Touchpoint] = Field(default_factory=list)
    lead: Lead | None = None
    payments: list[Payment] = Field(default_factory=list)

    @computed_field
    @property
    def total_revenue(self) -> float:
        return sum(p.amount for p in self.payments)

    @computed_field
    @property
    def events_count(self) -> int:
        return len(self.touchpoints)

    @computed_field
    @property
    def first_seen(self) -> datetime | None:
        return self.touchpoints[0].created_at if self.touchpoints else None

    @computed_field
    @property
    def last_seen(self) -> datetime | None:
        return self.touchpoints[-1].created_at if self.touchpoints else None

    @computed_field
    @property
    def first_source(self) -> FirstSource:
        if not self.touchpoints:
            return FirstSource()
        first = self.touchpoints[0]
        return FirstSource(
            utm_source=first.utm_source,
            utm_medium=first.utm_medium,
            utm_campaign=first.utm_campaign,
        )

    @computed_field
    @property
    def devices(self) -> list[str]:
        return _distinct(t.device_type for t in self.touchpoints)

    @computed_field
    @property
    def countries(self) -> list[str]:
        return _distinct(t.country_code for t in self.touchpoints)

    @computed_field
    @property
    def status(self) -> JourneyStatus:
        if self.payments:
            return JourneyStatus.CUSTOMER
        if self.lead:
            return JourneyStatus.LEAD
        return JourneyStatus.VISITOR

    def matches(self, status_filter: StatusFilter | str) -> bool:
        """Check whether this journey passes a status filter."""
        status_filter = StatusFilter(status_filter)
        if status_filter == StatusFilter.VISITORS:
            return self.lead is None and not self.payments
        if status_filter == StatusFilter.LEADS:
            return self.lead is not None and not self.payments
        if status_filter == StatusFilter.CUSTOMERS:
            return bool(self.payments)
        return True


class JourneyStats(PydanticBaseModel):
    """Aggregate figures over a set of journeys."""

    total_visitors: int = 0
    total_leads: int = 0
    total_customers: int = 0
    total_revenue: float = 0.0
    avg_touchpoints: float = 0.0
    conversion_rate: float = 0.0


class JourneyQuery(PydanticBaseModel):
    """Search criterion for journey reconstruction."""

    criterion: CriterionType = CriterionType.RECENT
    value: str | None = None
    period: str = Field(default="30d", pattern=r"^(7d|30d|90d)$")
    status: StatusFilter = StatusFilter.ALL
    sort: JourneySort = JourneySort.NONE

    @classmethod
    def for_visitor(cls, visitor_id: str, **kwargs) -> "JourneyQuery":
        return cls(criterion=CriterionType.VISITOR_ID, value=visitor_id, **kwargs)

    @classmethod
    def for_email(cls, fragment: str, **kwargs) -> "JourneyQuery":
        return cls(criterion=CriterionType.EMAIL, value=fragment, **kwargs)

    @classmethod
    def recent(cls, **kwargs) -> "JourneyQuery":
        return cls(criterion=CriterionType.RECENT, **kwargs)

    @classmethod
    def from_search(cls, text: str | None, **kwargs) -> "JourneyQuery":
        """Interpret free search text the way the reporting UI sends it.

        Text containing ``@`` is an email fragment, any other text is a
        visitor id, and empty text asks for the most recent visitors.
        """
        text = (text or "").strip()
        if not text:
            return cls.recent(**kwargs)
        if "@" in text:
            return cls.for_email(text, **kwargs)
        return cls.for_visitor(text, **kwargs)

    @property
    def period_days(self) -> int:
        return PERIODS[self.period]


def _distinct(values) -> list[str]:
    """Unique truthy values in first-seen order."""
    seen: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen
