"""Wire models sent by the tracking agent.

TrackingEvent is the body POSTed to the ingestion endpoint. Known fields are
typed; anything else the caller attaches travels in ``extra`` and is merged
into the top level of the JSON payload.
"""

from typing import Any

from pydantic import BaseModel as PydanticBaseModel, Field

ESSENTIAL_EVENT_TYPE = "page_view"

UTM_FIELDS = ("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content")


class TrackingEvent(PydanticBaseModel):
    """A single attribution event assembled on the client."""

    project_key: str
    session_id: str
    visitor_id: str
    event_type: str

    page_url: str | None = None
    referrer: str | None = None

    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    utm_term: str | None = None
    utm_content: str | None = None

    device_type: str | None = None
    user_agent: str | None = None
    screen_width: int | None = None
    screen_height: int | None = None
    language: str | None = None

    extra: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def known_fields(cls) -> frozenset[str]:
        """Names of the typed payload fields."""
        return frozenset(name for name in cls.model_fields if name != "extra")

    @classmethod
    def assemble(cls, *layers: dict[str, Any]) -> "TrackingEvent":
        """Build an event from ordered field layers; later layers win.

        Keys that are not typed fields are collected into ``extra``.
        """
        merged: dict[str, Any] = {}
        for layer in layers:
            merged.update(layer)

        known = cls.known_fields()
        fields = {k: v for k, v in merged.items() if k in known}
        extra = {k: v for k, v in merged.items() if k not in known}
        return cls(**fields, extra=extra)

    @property
    def is_essential(self) -> bool:
        return self.event_type == ESSENTIAL_EVENT_TYPE

    def to_payload(self) -> dict[str, Any]:
        """Flatten to the JSON body expected by the ingestion endpoint."""
        payload = self.model_dump(mode="json", exclude={"extra"})
        payload.update(self.extra)
        return payload


class ConsentPayload(PydanticBaseModel):
    """Body POSTed to the consent endpoint."""

    project_key: str
    visitor_id: str
    consent_given: bool
    consent_analytics: bool
    consent_marketing: bool

    @classmethod
    def for_decision(cls, project_key: str, visitor_id: str, given: bool) -> "ConsentPayload":
        """Build a payload applying one decision to every consent category."""
        return cls(
            project_key=project_key,
            visitor_id=visitor_id,
            consent_given=given,
            consent_analytics=given,
            consent_marketing=given,
        )
