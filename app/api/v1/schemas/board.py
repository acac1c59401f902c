"""
Schemas for the /board endpoint: sharing, feedback and single-board edits.
"""
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.api.v1.schemas.data import ActionRequest
from app.api.v1.schemas.instance import Comment, Feedback, SharedLookboardInstance
from app.api.v1.schemas.look import Look, Lookboard, LookOverride


class ShareBoardRequest(ActionRequest):
    action: Literal["share-board"]
    public_id: str = Field(..., min_length=1)
    shared_by: str = Field(..., min_length=1, description="Email of the sharing stylist")
    shared_by_username: Optional[str] = None
    client_name: Optional[str] = None
    title: Optional[str] = None
    note: Optional[str] = None


class UpdateInstanceRequest(ActionRequest):
    action: Literal["update-instance"]
    instance_id: str = Field(..., min_length=1)
    # Provided maps replace the stored ones wholesale
    feedbacks: Optional[Dict[str, Feedback]] = None
    comments: Optional[Dict[str, List[Comment]]] = None


class DuplicateBoardRequest(ActionRequest):
    action: Literal["duplicate-board"]
    public_id: str = Field(..., min_length=1)
    user_email: str = Field(..., min_length=1)
    user_username: Optional[str] = None


class UpdateBoardRequest(ActionRequest):
    action: Literal["update-board"]
    board: Lookboard
    user_email: str = Field(..., min_length=1)


class AddVariationRequest(ActionRequest):
    action: Literal["add-variation-to-look"]
    look_id: int
    variation: str = Field(..., min_length=1, description="Asset URL or base64 data URI")
    user_email: str = Field(..., min_length=1)


class AcceptMainImageRequest(ActionRequest):
    action: Literal["accept-main-image-proposal"]
    look_id: int
    image: str = Field(..., min_length=1)
    user_email: str = Field(..., min_length=1)


BoardAction = Union[
    ShareBoardRequest,
    UpdateInstanceRequest,
    DuplicateBoardRequest,
    UpdateBoardRequest,
    AddVariationRequest,
    AcceptMainImageRequest,
]


class CamelResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShareBoardResponse(CamelResponse):
    instance_id: str


class LookboardResponse(CamelResponse):
    message: str
    lookboard: Lookboard


class LookResponse(CamelResponse):
    message: str
    look: Look
    override: Optional[LookOverride] = None


class PublicBoardResponse(CamelResponse):
    """View-only resolution of a board."""

    lookboard: Lookboard
    looks: List[Look]


class InstanceBoardResponse(PublicBoardResponse):
    """Board resolved through a share instance, with the client's feedback."""

    instance: SharedLookboardInstance
    overrides: Dict[str, LookOverride]


class InstancesResponse(CamelResponse):
    instances: List[SharedLookboardInstance]
