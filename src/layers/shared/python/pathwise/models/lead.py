"""Lead model for conversion tracking."""

from typing import ClassVar

from pydantic import Field, field_validator

from pathwise.models.base import BaseModel, sort_key


class Lead(BaseModel):
    """A conversion (e.g. signup), linked to the session active at conversion.

    Key Pattern:
        PK: PROJ#{project_id}
        SK: LEAD#{id}
        GSI2PK: PROJ#{project_id}#SESSION#{session_id}
        GSI2SK: LEAD#{created_at}
    """

    _pk_prefix: ClassVar[str] = "PROJ#"
    _sk_prefix: ClassVar[str] = "LEAD#"

    project_id: str = Field(..., description="Owning project ID")
    session_id: str = Field(..., description="Session active at conversion time")
    email: str = Field(..., max_length=320)
    name: str | None = Field(None, max_length=255)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Store emails lowercased so fragment search is case-insensitive."""
        return v.strip().lower()

    def get_pk(self) -> str:
        """Get partition key: PROJ#{project_id}."""
        return f"PROJ#{self.project_id}"

    def get_sk(self) -> str:
        """Get sort key: LEAD#{id}."""
        return f"LEAD#{self.id}"

    def get_gsi2_keys(self) -> dict[str, str]:
        """Get GSI2 keys for session lookups."""
        return {
            "GSI2PK": f"PROJ#{self.project_id}#SESSION#{self.session_id}",
            "GSI2SK": f"LEAD#{sort_key(self.created_at)}",
        }
