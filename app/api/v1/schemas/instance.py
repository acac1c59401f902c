"""
Schemas for shared lookboard instances (client-specific share links).
"""

from typing import Dict, List, Literal, Optional

from pydantic import Field

from app.api.v1.schemas.look import CamelModel

Feedback = Literal["liked", "disliked"]


class Comment(CamelModel):
    id: str
    author: str = Field(..., description="'stylist' or 'client'")
    text: str
    created_at: int = 0


class SharedLookboardInstance(CamelModel):
    """
    Feedback layer on top of a lookboard, created per client.

    Expires automatically; updates keep the original expiration.
    """

    id: str = Field(..., description="Opaque instance token")
    lookboard_public_id: str
    shared_by: str
    shared_by_username: Optional[str] = None
    client_name: Optional[str] = None
    created_at: int = 0
    # Keyed by look ID (JSON object keys are strings)
    feedbacks: Dict[str, Feedback] = Field(default_factory=dict)
    comments: Dict[str, List[Comment]] = Field(default_factory=dict)
    title: Optional[str] = None
    note: Optional[str] = None
