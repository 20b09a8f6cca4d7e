"""Tests for journey reconstruction."""

import threading
import time
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import MagicMock

from pathwise.models import JourneyQuery, Lead, Touchpoint
from pathwise.services import JourneyService

PROJECT_ID = "proj-test-001"
BASE_TIME = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(repositories):
    """Journey service over the mocked table."""
    return JourneyService(
        touchpoint_repo=repositories["touchpoints"],
        lead_repo=repositories["leads"],
        payment_repo=repositories["payments"],
        candidate_timeout=5,
    )


class TestBuildJourney:
    """Tests for single-visitor reconstruction."""

    def test_reference_journey(self, service, seed_journey):
        """Touchpoints, the lead and payments come back ordered with revenue summed."""
        seeded = seed_journey()

        journey = service.build_journey(PROJECT_ID, "v1")

        assert [t.id for t in journey.touchpoints] == [seeded["t1"].id, seeded["t2"].id]
        assert journey.lead.id == seeded["lead"].id
        assert [p.id for p in journey.payments] == [seeded["p1"].id, seeded["p2"].id]
        assert journey.total_revenue == 80.0
        assert journey.first_seen == BASE_TIME
        assert journey.last_seen == BASE_TIME + timedelta(minutes=5)
        assert journey.first_source.utm_source == "google"
        assert journey.devices == ["desktop", "mobile"]
        assert journey.countries == ["BR"]
        assert journey.status == "customer"

    def test_zero_touchpoints_is_none(self, service, repositories):
        """A visitor with payments but no touchpoints has no journey."""
        from pathwise.models import Payment

        repositories["payments"].create_payment(
            Payment(project_id=PROJECT_ID, visitor_id="ghost", amount=10.0)
        )

        assert service.build_journey(PROJECT_ID, "ghost") is None

    def test_missing_parts(self, service, repositories):
        """No lead reads as None and no payments as an empty list."""
        repositories["touchpoints"].record(
            Touchpoint(
                project_id=PROJECT_ID,
                visitor_id="v2",
                session_id="s2",
                event_type="page_view",
            )
        )

        journey = service.build_journey(PROJECT_ID, "v2")

        assert journey.lead is None
        assert journey.payments == []
        assert journey.total_revenue == 0

    def test_naive_and_aware_timestamps_ordered(self, service, repositories):
        """A naive timestamp is read as UTC instead of failing the visitor."""
        for created_at in (
            datetime(2026, 3, 1, 10, 0, 0),
            datetime(2026, 3, 1, 10, 5, 0, tzinfo=timezone.utc),
        ):
            repositories["touchpoints"].record(
                Touchpoint(
                    project_id=PROJECT_ID,
                    visitor_id="v3",
                    session_id="s3",
                    event_type="page_view",
                    created_at=created_at,
                )
            )

        journeys = service.build_for_visitors(PROJECT_ID, ["v3"])

        assert [j.visitor_id for j in journeys] == ["v3"]
        assert journeys[0].first_seen == datetime(2026, 3, 1, 10, 0, 0, tzinfo=timezone.utc)

    def test_earliest_lead_wins(self, service, repositories):
        """With leads in several sessions, the earliest is attributed."""
        for minutes, session_id in ((0, "sa"), (60, "sb")):
            repositories["touchpoints"].record(
                Touchpoint(
                    project_id=PROJECT_ID,
                    visitor_id="v3",
                    session_id=session_id,
                    event_type="page_view",
                    created_at=BASE_TIME + timedelta(minutes=minutes),
                )
            )
        late = Lead(
            project_id=PROJECT_ID,
            session_id="sa",
            email="late@example.com",
            created_at=BASE_TIME + timedelta(minutes=90),
        )
        early = Lead(
            project_id=PROJECT_ID,
            session_id="sb",
            email="early@example.com",
            created_at=BASE_TIME + timedelta(minutes=61),
        )
        repositories["leads"].create_lead(late)
        repositories["leads"].create_lead(early)

        journey = service.build_journey(PROJECT_ID, "v3")

        assert journey.lead.email == "early@example.com"

    def test_lead_tie_broken_by_id(self, service, repositories):
        """Leads created at the same instant resolve to the smaller ID."""
        repositories["touchpoints"].record(
            Touchpoint(
                project_id=PROJECT_ID,
                visitor_id="v4",
                session_id="s4",
                event_type="page_view",
            )
        )
        for lead_id in ("01B", "01A"):
            repositories["leads"].create_lead(
                Lead(
                    id=lead_id,
                    project_id=PROJECT_ID,
                    session_id="s4",
                    email=f"{lead_id}@example.com",
                    created_at=BASE_TIME,
                )
            )

        assert service.build_journey(PROJECT_ID, "v4").lead.id == "01A"

    def test_read_window_not_isolated(self, service, repositories, seed_journey):
        """A payment written after reconstruction only shows up on the next build.

        The three reads of one visitor are independent, so a concurrent write
        may land in either build.
        """
        from pathwise.models import Payment

        seed_journey()
        before = service.build_journey(PROJECT_ID, "v1")

        repositories["payments"].create_payment(
            Payment(project_id=PROJECT_ID, visitor_id="v1", amount=20.0)
        )
        after = service.build_journey(PROJECT_ID, "v1")

        assert before.total_revenue == 80.0
        assert after.total_revenue == 100.0


class TestFindCandidates:
    """Tests for candidate resolution."""

    def test_visitor_id(self, service):
        """An explicit visitor ID is the only candidate."""
        assert service.find_candidates(PROJECT_ID, JourneyQuery.for_visitor("v9")) == ["v9"]

    def test_email_fragment(self, service, seed_journey):
        """Email fragments resolve through lead sessions, case-insensitively."""
        seed_journey("v1", "s1")
        seed_journey("v2", "s2")

        candidates = service.find_candidates(PROJECT_ID, JourneyQuery.for_email("V2@EXAMPLE"))

        assert candidates == ["v2"]

    def test_email_without_match(self, service, seed_journey):
        """An unknown email yields no candidates."""
        seed_journey()
        assert service.find_candidates(PROJECT_ID, JourneyQuery.for_email("nobody@")) == []

    def test_recent_window(self, service, seed_journey):
        """Recent visitors are limited to the period and newest first."""
        seed_journey("old", "s-old", start=BASE_TIME - timedelta(days=40))
        seed_journey("v1", "s1", start=BASE_TIME)
        seed_journey("v2", "s2", start=BASE_TIME + timedelta(hours=1))

        candidates = service.find_candidates(
            PROJECT_ID,
            JourneyQuery.recent(period="30d"),
            now=BASE_TIME + timedelta(days=1),
        )

        assert candidates == ["v2", "v1"]

    def test_candidate_cap(self, repositories):
        """The candidate count never exceeds the configured maximum."""
        service = JourneyService(
            touchpoint_repo=repositories["touchpoints"],
            lead_repo=repositories["leads"],
            payment_repo=repositories["payments"],
            max_candidates=1000,
        )
        assert service.max_candidates == 50


class TestBuildJourneys:
    """Tests for batch reconstruction."""

    def test_zero_touchpoint_candidates_excluded(self, service, seed_journey):
        """Candidates without touchpoints are dropped from the result."""
        seed_journey("v1", "s1")

        journeys = service.build_for_visitors(PROJECT_ID, ["ghost", "v1"])

        assert [j.visitor_id for j in journeys] == ["v1"]

    def test_query_end_to_end(self, service, seed_journey):
        """A recent query returns every active visitor in candidate order."""
        seed_journey("v1", "s1", start=BASE_TIME)
        seed_journey("v2", "s2", start=BASE_TIME + timedelta(hours=1))

        journeys = service.build_journeys(
            PROJECT_ID, JourneyQuery.recent(), now=BASE_TIME + timedelta(days=3)
        )

        assert [j.visitor_id for j in journeys] == ["v2", "v1"]
        assert all(j.total_revenue == 80.0 for j in journeys)


class TestCandidateFailures:
    """Tests for per-candidate timeouts and errors."""

    def _service(self, touchpoint_repo, timeout=5.0):
        lead_repo = MagicMock()
        lead_repo.first_by_sessions.return_value = None
        payment_repo = MagicMock()
        payment_repo.list_by_visitor.return_value = []
        return JourneyService(
            touchpoint_repo=touchpoint_repo,
            lead_repo=lead_repo,
            payment_repo=payment_repo,
            candidate_timeout=timeout,
        )

    def test_timed_out_candidate_omitted(self):
        """A slow candidate is left out and the rest are returned."""
        release = threading.Event()

        def list_by_visitor(project_id, visitor_id):
            if visitor_id == "slow":
                release.wait(5)
            return [
                Touchpoint(
                    project_id=project_id,
                    visitor_id=visitor_id,
                    session_id="s",
                    event_type="page_view",
                )
            ]

        touchpoint_repo = MagicMock()
        touchpoint_repo.list_by_visitor.side_effect = list_by_visitor
        service = self._service(touchpoint_repo, timeout=0.5)

        started = time.monotonic()
        journeys = service.build_for_visitors(PROJECT_ID, ["fast", "slow"])
        elapsed = time.monotonic() - started
        release.set()

        assert [j.visitor_id for j in journeys] == ["fast"]
        assert elapsed < 4

    def test_failing_candidate_omitted(self):
        """A candidate whose reads fail is logged and left out."""

        def list_by_visitor(project_id, visitor_id):
            if visitor_id == "broken":
                raise RuntimeError("throttled")
            return [
                Touchpoint(
                    project_id=project_id,
                    visitor_id=visitor_id,
                    session_id="s",
                    event_type="page_view",
                )
            ]

        touchpoint_repo = MagicMock()
        touchpoint_repo.list_by_visitor.side_effect = list_by_visitor
        service = self._service(touchpoint_repo)
        service.logger = MagicMock()

        journeys = service.build_for_visitors(PROJECT_ID, ["ok", "broken"])

        assert [j.visitor_id for j in journeys] == ["ok"]
        service.logger.error.assert_called_once()
