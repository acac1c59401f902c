"""
Schemas for the /admin endpoint.
"""
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from app.api.v1.schemas.data import ActionRequest


class ApproveUserRequest(ActionRequest):
    action: Literal["approve-user"]
    email: str = Field(..., min_length=1)


class MigrateLooksRequest(ActionRequest):
    action: Literal["migrate-looks"]


class ReindexBoardsRequest(ActionRequest):
    action: Literal["reindex-boards"]


class ReconcileInstancesRequest(ActionRequest):
    action: Literal["reconcile-instances"]


class UpdateLogoRequest(ActionRequest):
    action: Literal["update-logo"]
    logo: str = Field(..., min_length=1, description="data:image/... base64 URI")


AdminAction = Union[
    ApproveUserRequest,
    MigrateLooksRequest,
    ReindexBoardsRequest,
    ReconcileInstancesRequest,
    UpdateLogoRequest,
]


class PendingUsersResponse(BaseModel):
    users: List[Dict[str, Any]]


class AdminActionResponse(BaseModel):
    message: str
    count: Optional[int] = None


class LogoResponse(BaseModel):
    logo: Optional[str] = None
