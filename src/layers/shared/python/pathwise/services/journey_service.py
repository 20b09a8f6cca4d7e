"""Journey reconstruction service.

Merges a visitor's touchpoints, lead conversion and payments into one
chronological, revenue-attributed timeline.

Pipeline for a query:
1. Resolve candidate visitor IDs (explicit ID, email fragment, or the most
   recently active visitors).
2. Build every candidate's journey in parallel, one worker per candidate.
   A candidate that misses the timeout or fails is left out; the rest of
   the batch is still returned.
3. Drop candidates without touchpoints.

The three reads for one visitor are not isolated from each other. A lead or
payment written while a journey is being built may or may not appear in it.
"""

import os
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timedelta

import structlog

from pathwise.models.base import utc_now
from pathwise.models.journey import CriterionType, Journey, JourneyQuery
from pathwise.repositories.lead import LeadRepository
from pathwise.repositories.payment import PaymentRepository
from pathwise.repositories.touchpoint import TouchpointRepository

logger = structlog.get_logger()

DEFAULT_MAX_CANDIDATES = 20
MAX_CANDIDATES_CAP = 50
DEFAULT_CANDIDATE_TIMEOUT = 10.0

# Leads matched per email search, and touchpoints scanned for "recent"
EMAIL_LEAD_LIMIT = 20
RECENT_SCAN_LIMIT = 100


class JourneyService:
    """Builds visitor journeys from the attribution store."""

    def __init__(
        self,
        touchpoint_repo: TouchpointRepository | None = None,
        lead_repo: LeadRepository | None = None,
        payment_repo: PaymentRepository | None = None,
        max_candidates: int | None = None,
        candidate_timeout: float | None = None,
    ):
        """Initialize the journey service.

        Args:
            touchpoint_repo: Touchpoint store. Defaults to a new repository.
            lead_repo: Lead store. Defaults to a new repository.
            payment_repo: Payment store. Defaults to a new repository.
            max_candidates: Visitors examined per query. Defaults to
                JOURNEY_MAX_CANDIDATES env var, capped at 50.
            candidate_timeout: Seconds allowed per candidate. Defaults to
                JOURNEY_CANDIDATE_TIMEOUT env var.
        """
        self.touchpoint_repo = touchpoint_repo or TouchpointRepository()
        self.lead_repo = lead_repo or LeadRepository()
        self.payment_repo = payment_repo or PaymentRepository()

        if max_candidates is None:
            max_candidates = int(os.environ.get("JOURNEY_MAX_CANDIDATES", DEFAULT_MAX_CANDIDATES))
        if candidate_timeout is None:
            candidate_timeout = float(
                os.environ.get("JOURNEY_CANDIDATE_TIMEOUT", DEFAULT_CANDIDATE_TIMEOUT)
            )

        self.max_candidates = max(1, min(max_candidates, MAX_CANDIDATES_CAP))
        self.candidate_timeout = candidate_timeout
        self.logger = logger.bind(service="journey_service")

    def build_journeys(
        self,
        project_id: str,
        query: JourneyQuery,
        now: datetime | None = None,
    ) -> list[Journey]:
        """Build the journeys matching a query, in candidate order.

        Status filtering and sorting are left to the caller (see
        journey_report.present).

        Args:
            project_id: The project ID.
            query: Search criterion.
            now: Reference time for the "recent" window. Defaults to now.

        Returns:
            Journeys with at least one touchpoint.
        """
        candidates = self.find_candidates(project_id, query, now=now)

        self.logger.info(
            "Building journeys",
            project_id=project_id,
            criterion=query.criterion,
            candidates=len(candidates),
        )

        return self.build_for_visitors(project_id, candidates)

    def find_candidates(
        self,
        project_id: str,
        query: JourneyQuery,
        now: datetime | None = None,
    ) -> list[str]:
        """Resolve a query to candidate visitor IDs.

        Args:
            project_id: The project ID.
            query: Search criterion.
            now: Reference time for the "recent" window.

        Returns:
            Distinct visitor IDs, at most max_candidates.
        """
        if query.criterion == CriterionType.VISITOR_ID:
            candidates = [query.value] if query.value else []

        elif query.criterion == CriterionType.EMAIL:
            leads = self.lead_repo.search_by_email(
                project_id, query.value or "", limit=EMAIL_LEAD_LIMIT
            )
            if not leads:
                self.logger.debug("No leads match email fragment", project_id=project_id)
                return []
            candidates = self.touchpoint_repo.visitor_ids_for_sessions(
                project_id, [lead.session_id for lead in leads]
            )

        else:
            since = (now or utc_now()) - timedelta(days=query.period_days)
            candidates = self.touchpoint_repo.recent_visitor_ids(
                project_id,
                since=since,
                scan_limit=RECENT_SCAN_LIMIT,
                limit=self.max_candidates,
            )

        return list(dict.fromkeys(candidates))[: self.max_candidates]

    def build_for_visitors(self, project_id: str, visitor_ids: list[str]) -> list[Journey]:
        """Build journeys for several visitors concurrently.

        Args:
            project_id: The project ID.
            visitor_ids: Candidate visitor IDs.

        Returns:
            Journeys in candidate order, without timed-out, failed or empty
            candidates.
        """
        if not visitor_ids:
            return []

        results: dict[str, Journey] = {}
        pool = ThreadPoolExecutor(max_workers=len(visitor_ids))
        try:
            futures = {
                pool.submit(self.build_journey, project_id, visitor_id): visitor_id
                for visitor_id in visitor_ids
            }
            done, not_done = wait(futures, timeout=self.candidate_timeout)

            for future in not_done:
                future.cancel()
                self.logger.warning(
                    "Journey candidate timed out",
                    project_id=project_id,
                    visitor_id=futures[future],
                    timeout=self.candidate_timeout,
                )

            for future in done:
                visitor_id = futures[future]
                try:
                    journey = future.result()
                except Exception as e:
                    self.logger.error(
                        "Journey candidate failed",
                        project_id=project_id,
                        visitor_id=visitor_id,
                        error=str(e),
                    )
                    continue
                if journey is not None:
                    results[visitor_id] = journey
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        return [results[v] for v in visitor_ids if v in results]

    def build_journey(self, project_id: str, visitor_id: str) -> Journey | None:
        """Build one visitor's journey.

        Payments are fetched alongside touchpoints; the lead lookup waits for
        the touchpoints because it needs the visitor's session IDs.

        Args:
            project_id: The project ID.
            visitor_id: The visitor ID.

        Returns:
            Journey, or None when the visitor has no touchpoints.
        """
        with ThreadPoolExecutor(max_workers=1) as fetch_pool:
            payments_future = fetch_pool.submit(
                self.payment_repo.list_by_visitor, project_id, visitor_id
            )

            touchpoints = self.touchpoint_repo.list_by_visitor(project_id, visitor_id)
            if not touchpoints:
                payments_future.cancel()
                return None

            session_ids = list(dict.fromkeys(t.session_id for t in touchpoints))
            lead = self.lead_repo.first_by_sessions(project_id, session_ids)
            payments = payments_future.result()

        return Journey(
            visitor_id=visitor_id,
            touchpoints=sorted(touchpoints, key=lambda t: (t.created_at, t.id)),
            lead=lead,
            payments=sorted(payments, key=lambda p: (p.created_at, p.id)),
        )
