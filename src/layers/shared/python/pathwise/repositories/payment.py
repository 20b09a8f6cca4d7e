"""Payment repository for DynamoDB operations."""

from pathwise.models.payment import Payment
from pathwise.repositories.base import BaseRepository


class PaymentRepository(BaseRepository[Payment]):
    """Repository for Payment entities."""

    def __init__(self, table_name: str | None = None):
        """Initialize payment repository."""
        super().__init__(Payment, table_name)

    def create_payment(self, payment: Payment) -> Payment:
        """Create a new payment.

        Args:
            payment: The payment to create.

        Returns:
            The created payment.
        """
        return self.create(payment)

    def list_by_visitor(self, project_id: str, visitor_id: str) -> list[Payment]:
        """List a visitor's payments, oldest first.

        Args:
            project_id: The project ID.
            visitor_id: The visitor ID.

        Returns:
            Payments ordered ascending by created_at.
        """
        return self.query_all(
            pk=f"PROJ#{project_id}",
            sk_begins_with=f"PAY#{visitor_id}#",
        )
