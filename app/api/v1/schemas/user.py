from typing import Any, Dict, Literal

from pydantic import Field

from app.api.v1.schemas.look import CamelModel

# Credential fields that never leave the server
SENSITIVE_FIELDS = ("hashedPassword", "salt", "password")


class User(CamelModel):
    """
    Account record stored at user:{email}.

    Credentials are verified elsewhere; this service only reads and
    updates the approval status.
    """

    username: str = Field(default="")
    email: str = Field(..., min_length=1, max_length=255)
    status: Literal["pending", "approved"] = Field(default="pending")
    role: Literal["user", "admin"] = Field(default="user")
    created_at: int = 0

    def public_view(self) -> Dict[str, Any]:
        """Stored record with credential fields stripped."""
        data = self.to_store()
        for field in SENSITIVE_FIELDS:
            data.pop(field, None)
        return data
