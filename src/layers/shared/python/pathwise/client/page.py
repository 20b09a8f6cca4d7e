"""Host page context the agent runs against."""

import re
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import parse_qs, urlsplit

from pathwise.models.event import UTM_FIELDS

TABLET_PATTERN = re.compile(r"tablet|ipad|playbook|silk", re.IGNORECASE)
MOBILE_PATTERN = re.compile(
    r"mobile|iphone|ipod|android|blackberry|opera mini|iemobile", re.IGNORECASE
)


@dataclass
class Link:
    """An anchor element; ``href`` may be rewritten in place."""

    href: str


@dataclass
class Page:
    """The document the agent is embedded in.

    ``replace_state`` mirrors history.replaceState: the URL changes without
    a navigation. Hosts pass ``on_replace_state`` to reflect it in the real
    address bar.
    """

    url: str
    referrer: str | None = None
    user_agent: str = ""
    screen_width: int | None = None
    screen_height: int | None = None
    language: str | None = None
    on_replace_state: Callable[[str], None] | None = field(default=None, repr=False)

    @property
    def hostname(self) -> str | None:
        try:
            return urlsplit(self.url).hostname
        except ValueError:
            return None

    def replace_state(self, url: str) -> None:
        self.url = url
        if self.on_replace_state:
            self.on_replace_state(url)


def classify_device(user_agent: str | None) -> str:
    """Classify a user agent string as tablet, mobile or desktop.

    Tablet is checked first, since tablet agents often also say "mobile"
    or "android".
    """
    ua = user_agent or ""
    if TABLET_PATTERN.search(ua):
        return "tablet"
    if MOBILE_PATTERN.search(ua):
        return "mobile"
    return "desktop"


def utm_params(url: str) -> dict[str, str]:
    """Extract UTM parameters present in a URL's query string."""
    try:
        query = parse_qs(urlsplit(url).query)
    except ValueError:
        return {}
    return {name: query[name][0] for name in UTM_FIELDS if query.get(name)}
