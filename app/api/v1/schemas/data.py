"""
Schemas for the /data endpoint: loading a user's merged view, chunked
imports and overrides.

POST bodies carry an `action` field; FastAPI picks the matching model.
Reference: https://docs.pydantic.dev/latest/concepts/unions/#discriminated-unions
"""
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.api.v1.schemas.look import Look, Lookboard, LookOverride


class ActionRequest(BaseModel):
    """Base for action-dispatched request bodies (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class MessageResponse(BaseModel):
    message: str


class UserDataResponse(BaseModel):
    """A user's looks and boards merged with everything public."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    looks: List[Look]
    lookboards: List[Lookboard]
    overrides: Dict[str, LookOverride]
    version: int = Field(..., description="Pass back as expectedVersion when committing")


class ChunkCounts(BaseModel):
    looks: int = Field(default=0, ge=0)
    lookboards: int = Field(default=0, ge=0)


class SaveChunkRequest(ActionRequest):
    action: Literal["save-chunk"]
    email: str = Field(..., min_length=1)
    import_id: str = Field(..., min_length=1, max_length=128, pattern=r"^[A-Za-z0-9_.-]+$")
    chunk_index: int = Field(..., ge=0)
    chunk_type: Literal["looks", "lookboards"]
    data: List[Any]


class CommitChunksRequest(ActionRequest):
    action: Literal["commit-chunks"]
    email: str = Field(..., min_length=1)
    import_id: str = Field(..., min_length=1, max_length=128, pattern=r"^[A-Za-z0-9_.-]+$")
    chunk_counts: ChunkCounts
    overrides: Dict[str, LookOverride]
    expected_version: Optional[int] = Field(
        None, description="Reject the commit if the stored data moved past this version"
    )


class SaveOverridesRequest(ActionRequest):
    action: Literal["save-overrides"]
    email: str = Field(..., min_length=1)
    overrides: Dict[str, LookOverride]


# Routes select the member by its `action` tag
DataAction = Union[SaveChunkRequest, CommitChunksRequest, SaveOverridesRequest]


class CommitResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str
    version: int
    changes: Dict[str, int]
