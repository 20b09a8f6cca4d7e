"""Lead repository for DynamoDB operations."""

from pathwise.models.lead import Lead
from pathwise.repositories.base import BaseRepository


class LeadRepository(BaseRepository[Lead]):
    """Repository for Lead entities."""

    def __init__(self, table_name: str | None = None):
        """Initialize lead repository."""
        super().__init__(Lead, table_name)

    def get_by_id(self, project_id: str, lead_id: str) -> Lead | None:
        """Get lead by ID.

        Args:
            project_id: The project ID.
            lead_id: The lead ID.

        Returns:
            Lead or None if not found.
        """
        return self.get(pk=f"PROJ#{project_id}", sk=f"LEAD#{lead_id}")

    def create_lead(self, lead: Lead) -> Lead:
        """Create a new lead.

        Args:
            lead: The lead to create.

        Returns:
            The created lead.
        """
        return self.create(lead, gsi_keys=lead.get_gsi2_keys())

    def first_by_sessions(self, project_id: str, session_ids: list[str]) -> Lead | None:
        """Get the earliest lead converted in any of the given sessions.

        Ties on created_at are broken by lead ID so the answer does not
        depend on query order.

        Args:
            project_id: The project ID.
            session_ids: Session IDs observed for a visitor.

        Returns:
            The earliest matching Lead, or None.
        """
        candidates: list[Lead] = []
        for session_id in dict.fromkeys(session_ids):
            candidates.extend(
                self.query_all(
                    pk=f"PROJ#{project_id}#SESSION#{session_id}",
                    sk_begins_with="LEAD#",
                    index_name="GSI2",
                )
            )

        if not candidates:
            return None
        return min(candidates, key=lambda lead: (lead.created_at, lead.id))

    def search_by_email(self, project_id: str, fragment: str, limit: int = 20) -> list[Lead]:
        """Find leads whose email contains a fragment (case-insensitive).

        Args:
            project_id: The project ID.
            fragment: Part of an email address.
            limit: Maximum leads to return.

        Returns:
            Matching leads.
        """
        fragment = fragment.strip().lower()
        if not fragment:
            return []

        return self.query_all(
            pk=f"PROJ#{project_id}",
            sk_begins_with="LEAD#",
            filter_expression="contains(email, :fragment)",
            expression_values={":fragment": fragment},
            max_items=limit,
        )
