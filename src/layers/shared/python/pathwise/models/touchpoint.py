"""Touchpoint model: one persisted row per emitted tracking event.

Touchpoints are append-only. They are never updated or deleted by this
package.

DynamoDB keys:
    PK: PROJ#{project_id}
    SK: TOUCH#{visitor_id}#{created_at}#{id}
    GSI1PK: PROJ#{project_id}#TOUCHES
    GSI1SK: {created_at}#{visitor_id}
    GSI2PK: PROJ#{project_id}#SESSION#{session_id}
    GSI2SK: TOUCH#{created_at}
"""

from typing import Any, ClassVar

from pydantic import Field

from pathwise.models.base import BaseModel, sort_key
from pathwise.models.event import TrackingEvent


class Touchpoint(BaseModel):
    """A visitor interaction attributed to a traffic source."""

    _pk_prefix: ClassVar[str] = "PROJ#"
    _sk_prefix: ClassVar[str] = "TOUCH#"

    project_id: str = Field(..., description="Owning project ID")
    visitor_id: str = Field(..., description="Permanent browser/device identifier")
    session_id: str = Field(..., description="Session active when the event fired")
    event_type: str = Field(..., description="page_view, session_start, signup, ...")

    page_url: str = ""
    referrer: str | None = None

    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    utm_term: str | None = None
    utm_content: str | None = None

    # Resolved server-side from the UTM parameters
    source_id: str | None = None
    source_name: str | None = None

    device_type: str | None = None
    browser: str | None = None
    os: str | None = None
    country_code: str | None = None
    city: str | None = None

    properties: dict[str, Any] = Field(
        default_factory=dict,
        description="Custom fields attached by the caller",
    )

    def get_pk(self) -> str:
        """Get partition key: PROJ#{project_id}."""
        return f"PROJ#{self.project_id}"

    def get_sk(self) -> str:
        """Get sort key ordered by visitor, then time."""
        return f"TOUCH#{self.visitor_id}#{sort_key(self.created_at)}#{self.id}"

    def get_gsi1_keys(self) -> dict[str, str]:
        """Get GSI1 keys for project-wide recency queries."""
        return {
            "GSI1PK": f"PROJ#{self.project_id}#TOUCHES",
            "GSI1SK": f"{sort_key(self.created_at)}#{self.visitor_id}",
        }

    def get_gsi2_keys(self) -> dict[str, str]:
        """Get GSI2 keys for session lookups."""
        return {
            "GSI2PK": f"PROJ#{self.project_id}#SESSION#{self.session_id}",
            "GSI2SK": f"TOUCH#{sort_key(self.created_at)}",
        }

    @classmethod
    def from_event(cls, project_id: str, event: TrackingEvent, **resolved: Any) -> "Touchpoint":
        """Build a touchpoint from an ingested event.

        Args:
            project_id: Project the event's project key resolved to.
            event: The received event.
            **resolved: Server-side enrichment (source_id, browser, country_code, ...).

        Returns:
            Unsaved Touchpoint.
        """
        return cls(
            project_id=project_id,
            visitor_id=event.visitor_id,
            session_id=event.session_id,
            event_type=event.event_type,
            page_url=event.page_url or "",
            referrer=event.referrer,
            utm_source=event.utm_source,
            utm_medium=event.utm_medium,
            utm_campaign=event.utm_campaign,
            utm_term=event.utm_term,
            utm_content=event.utm_content,
            device_type=event.device_type,
            properties=dict(event.extra),
            **resolved,
        )
