"""
Schemas for looks and lookboards as they are stored in the key-value store.

Field names are snake_case in Python and camelCase on the wire (the stored
JSON and the API bodies share one shape). Unknown fields are kept so that
client-side metadata survives a save/load round trip.

Reference: https://docs.pydantic.dev/latest/concepts/alias/
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Visibility = Literal["public", "private"]


class CamelModel(BaseModel):
    """Base model reading and writing camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_store(self) -> Dict[str, Any]:
        """Canonical dict used both for storage and for change detection."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Look(CamelModel):
    """
    A composited fashion image/video with its product references.

    A look lives either in its creator's private collection or in the
    global public hash, depending on `visibility`.
    """

    id: int = Field(..., description="Look ID, unique across the creator's looks and public looks")
    model: Optional[Any] = Field(None, description="Model the look was generated on")
    products: List[Any] = Field(default_factory=list, description="Product SKUs worn in the look")
    final_image: str = Field(default="", description="Main image or video URL")
    variations: List[str] = Field(default_factory=list, description="Alternate image/video URLs")
    created_at: int = Field(default=0, description="Creation time (ms since epoch)")
    visibility: Visibility = Field(default="private")
    created_by: Optional[str] = Field(None, description="Creator email")
    created_by_username: Optional[str] = Field(None, description="Creator display name")
    tags: Optional[List[str]] = None


class Lookboard(CamelModel):
    """
    A named, ordered collection of look IDs shared through its publicId.
    """

    id: int = Field(..., description="Lookboard ID")
    public_id: str = Field(
        ...,
        min_length=1,
        max_length=128,
        pattern=r"^[A-Za-z0-9_-]+$",
        description="Globally unique, URL-safe share token. Immutable once created.",
    )
    title: str = Field(default="")
    note: Optional[str] = None
    look_ids: List[int] = Field(default_factory=list, description="Ordered look IDs")
    created_at: int = Field(default=0, description="Creation time (ms since epoch)")
    visibility: Visibility = Field(default="private")
    created_by: Optional[str] = Field(None, description="Creator email")
    created_by_username: Optional[str] = Field(None, description="Creator display name")


class LookOverride(CamelModel):
    """A viewer's local replacement of a look's main image."""

    final_image: str


# lookId (as a string key) -> override
LookOverrides = Dict[str, LookOverride]
