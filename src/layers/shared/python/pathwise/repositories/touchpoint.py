"""Touchpoint repository for DynamoDB operations.

Touchpoints are append-only, so the repository exposes no update or delete.
"""

from datetime import datetime

from pathwise.models.base import sort_key
from pathwise.models.touchpoint import Touchpoint
from pathwise.repositories.base import BaseRepository


class TouchpointRepository(BaseRepository[Touchpoint]):
    """Repository for Touchpoint entities."""

    def __init__(self, table_name: str | None = None):
        """Initialize touchpoint repository."""
        super().__init__(Touchpoint, table_name)

    def record(self, touchpoint: Touchpoint) -> Touchpoint:
        """Persist a new touchpoint.

        Args:
            touchpoint: The touchpoint to store.

        Returns:
            The stored touchpoint.
        """
        gsi_keys = touchpoint.get_gsi1_keys()
        gsi_keys.update(touchpoint.get_gsi2_keys())
        return self.create(touchpoint, gsi_keys=gsi_keys)

    def list_by_visitor(self, project_id: str, visitor_id: str) -> list[Touchpoint]:
        """List every touchpoint of a visitor, oldest first.

        Args:
            project_id: The project ID.
            visitor_id: The visitor ID.

        Returns:
            Touchpoints ordered ascending by created_at.
        """
        return self.query_all(
            pk=f"PROJ#{project_id}",
            sk_begins_with=f"TOUCH#{visitor_id}#",
        )

    def visitor_ids_for_sessions(self, project_id: str, session_ids: list[str]) -> list[str]:
        """Find the visitors observed in any of the given sessions using GSI2.

        Args:
            project_id: The project ID.
            session_ids: Session IDs to look up.

        Returns:
            Distinct visitor IDs in lookup order.
        """
        visitor_ids: list[str] = []
        for session_id in dict.fromkeys(session_ids):
            touchpoints = self.query_all(
                pk=f"PROJ#{project_id}#SESSION#{session_id}",
                sk_begins_with="TOUCH#",
                index_name="GSI2",
            )
            for touchpoint in touchpoints:
                if touchpoint.visitor_id not in visitor_ids:
                    visitor_ids.append(touchpoint.visitor_id)
        return visitor_ids

    def recent_visitor_ids(
        self,
        project_id: str,
        since: datetime,
        scan_limit: int = 100,
        limit: int = 20,
    ) -> list[str]:
        """Find the most recently active visitors using GSI1.

        Only the newest ``scan_limit`` touchpoints since ``since`` are read,
        so a very chatty visitor can crowd others out of the window.

        Args:
            project_id: The project ID.
            since: Oldest touchpoint time considered.
            scan_limit: Maximum touchpoints read.
            limit: Maximum visitor IDs returned.

        Returns:
            Distinct visitor IDs, most recent first.
        """
        touchpoints, _ = self.query(
            pk=f"PROJ#{project_id}#TOUCHES",
            sk_from=sort_key(since),
            index_name="GSI1",
            scan_forward=False,
            limit=scan_limit,
        )

        visitor_ids: list[str] = []
        for touchpoint in touchpoints:
            if touchpoint.visitor_id not in visitor_ids:
                visitor_ids.append(touchpoint.visitor_id)
        return visitor_ids[:limit]
