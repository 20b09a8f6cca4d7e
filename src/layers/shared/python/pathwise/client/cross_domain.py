"""Cross-domain session propagation.

Outbound links to a sibling domain (same last two labels, different host)
get the current session ID appended as ``_pw_sid``. On landing, the agent
adopts that ID and strips the parameter from the address bar.

The family rule is coarse: ``a.example.co.uk`` and
``b.other.co.uk`` count as the same family.
"""

from typing import Any
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

import structlog

from pathwise.client.identity import IdentityManager
from pathwise.client.page import Link, Page

logger = structlog.get_logger()

SESSION_PARAM = "_pw_sid"
PROPAGATED_SCHEMES = ("http", "https")


def root_domain(hostname: str) -> str:
    return ".".join(hostname.lower().split(".")[-2:])


def same_domain_family(a: str, b: str) -> bool:
    """Whether two hostnames share their last two labels."""
    if not a or not b:
        return False
    return root_domain(a) == root_domain(b)


def with_session_param(url: str, session_id: str) -> str:
    """Return ``url`` with ``_pw_sid`` set, keeping other parameters."""
    parts = urlsplit(url)
    params = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k != SESSION_PARAM
    ]
    params.append((SESSION_PARAM, session_id))
    return urlunsplit(parts._replace(query=urlencode(params)))


def without_session_param(url: str) -> tuple[str, str | None]:
    """Strip ``_pw_sid`` from a URL.

    Returns:
        (url without the parameter, its first non-empty value or None)
    """
    parts = urlsplit(url)
    session_id = None
    kept = []
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if key == SESSION_PARAM:
            if value and session_id is None:
                session_id = value
            continue
        kept.append((key, value))
    return urlunsplit(parts._replace(query=urlencode(kept))), session_id


class CrossDomainPropagator:
    """Carries the session ID across sibling domains."""

    def __init__(self, identity: IdentityManager, log: Any = None):
        self.identity = identity
        self.logger = log or logger.bind(component="cross_domain")

    def rewrite_href(self, href: str, page_url: str, session_id: str) -> str | None:
        """Compute the rewritten href for a link, if it needs one.

        Returns:
            The new absolute URL, or None when the link must stay untouched.
        """
        try:
            target = urlsplit(urljoin(page_url, href))
            current_host = urlsplit(page_url).hostname
            target_host = target.hostname
        except ValueError:
            return None

        if target.scheme not in PROPAGATED_SCHEMES or not target_host or not current_host:
            return None
        if target_host == current_host or not same_domain_family(target_host, current_host):
            return None

        return with_session_param(urlunsplit(target), session_id)

    def handle_click(self, link: Link, page: Page) -> bool:
        """Decorate a clicked link with the session ID when it crosses domains.

        Returns:
            True if ``link.href`` was rewritten.
        """
        try:
            rewritten = self.rewrite_href(
                link.href, page.url, self.identity.resolve_session_id()
            )
        except Exception as e:
            self.logger.warning("Link decoration failed", href=link.href, error=str(e))
            return False

        if rewritten is None:
            return False

        link.href = rewritten
        self.logger.debug("Decorated cross-domain link", href=rewritten)
        return True

    def recover(self, page: Page) -> str | None:
        """Adopt a session ID handed over in the landing URL.

        Returns:
            The adopted session ID, or None if the URL carried none.
        """
        try:
            cleaned, session_id = without_session_param(page.url)
        except ValueError:
            return None

        if not session_id:
            return None

        self.identity.adopt_session_id(session_id)
        try:
            page.replace_state(cleaned)
        except Exception as e:
            self.logger.warning("URL cleanup failed", url=cleaned, error=str(e))
        self.logger.info("Recovered cross-domain session", session_id=session_id)
        return session_id
