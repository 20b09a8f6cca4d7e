"""Payment model for revenue attribution."""

from enum import Enum
from typing import ClassVar

from pydantic import Field

from pathwise.models.base import BaseModel, sort_key


class PaymentStatus(str, Enum):
    """Payment lifecycle status."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class Payment(BaseModel):
    """A monetary transaction attributed to a visitor.

    Linked by visitor_id rather than session_id because payment usually
    happens in a later session than the conversion.

    Key Pattern:
        PK: PROJ#{project_id}
        SK: PAY#{visitor_id}#{created_at}#{id}
    """

    _pk_prefix: ClassVar[str] = "PROJ#"
    _sk_prefix: ClassVar[str] = "PAY#"

    project_id: str = Field(..., description="Owning project ID")
    visitor_id: str = Field(..., description="Visitor the payment is attributed to")
    amount: float = Field(default=0.0, description="Amount in currency units")
    currency: str = Field(default="BRL", min_length=3, max_length=3)
    status: PaymentStatus = Field(default=PaymentStatus.PAID)
    customer_email: str | None = None
    order_id: str | None = None

    def get_pk(self) -> str:
        """Get partition key: PROJ#{project_id}."""
        return f"PROJ#{self.project_id}"

    def get_sk(self) -> str:
        """Get sort key ordered by visitor, then time."""
        return f"PAY#{self.visitor_id}#{sort_key(self.created_at)}#{self.id}"
