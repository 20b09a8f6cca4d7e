"""Tracking agent configuration.

One AgentConfig instance is built per deployment and handed to the agent.
Nothing is read from module globals, so several agents can run side by side.
"""

import os
from enum import Enum

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field

from pathwise.utils.exceptions import ConfigurationError

DEFAULT_API_URL = "https://api.pathwise.dev/functions/v1/track-event"


class ConsentMode(str, Enum):
    """Whether tracking is opt-out (default) or opt-in."""

    OPT_OUT = "opt_out"
    OPT_IN = "opt_in"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class AgentConfig(PydanticBaseModel):
    """Settings for one tracking agent."""

    model_config = ConfigDict(frozen=True)

    # A missing key is accepted here; the agent refuses to start without one
    project_key: str | None = None
    api_url: str = DEFAULT_API_URL
    consent_url: str | None = None

    require_consent: bool = True
    consent_mode: ConsentMode = ConsentMode.OPT_OUT

    session_timeout_minutes: int = Field(default=30, gt=0)
    cookie_ttl_days: int = Field(default=30, gt=0)
    request_timeout: float = Field(default=5.0, gt=0)
    visitor_prefix: str = "pw_v_"

    @property
    def resolved_consent_url(self) -> str:
        """Consent endpoint; derived from the ingestion URL when not set."""
        if self.consent_url:
            return self.consent_url
        return self.api_url.replace("track-event", "track-consent")

    @property
    def session_timeout_ms(self) -> int:
        return self.session_timeout_minutes * 60 * 1000

    def ensure_startable(self) -> None:
        """Raise if the agent cannot run with these settings.

        Raises:
            ConfigurationError: If the project key is missing.
        """
        if not self.project_key or not self.project_key.strip():
            raise ConfigurationError("Project key is required", setting="project_key")

    @classmethod
    def from_env(cls, **overrides) -> "AgentConfig":
        """Build a config from PATHWISE_* environment variables.

        Args:
            **overrides: Values that take precedence over the environment.

        Returns:
            AgentConfig.
        """
        values = {
            "project_key": os.environ.get("PATHWISE_PROJECT_KEY"),
            "api_url": os.environ.get("PATHWISE_API_URL", DEFAULT_API_URL),
            "consent_url": os.environ.get("PATHWISE_CONSENT_URL") or None,
            "require_consent": _env_bool("PATHWISE_REQUIRE_CONSENT", True),
            "consent_mode": os.environ.get("PATHWISE_CONSENT_MODE", ConsentMode.OPT_OUT.value),
        }
        values.update(overrides)
        return cls(**values)
