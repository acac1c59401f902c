"""
Administrative routes: user approval, data migrations and index repair.

Authentication happens in front of this service; these handlers only run the
tools against the repository.
"""
from typing import Annotated, Literal

from fastapi import APIRouter, Body, Depends, Query, status

from app.api.v1.schemas.admin import (
    AdminAction,
    AdminActionResponse,
    ApproveUserRequest,
    MigrateLooksRequest,
    PendingUsersResponse,
    ReconcileInstancesRequest,
    ReindexBoardsRequest,
    UpdateLogoRequest,
)
from app.core.dependencies import get_admin_service
from app.services.admin import AdminService

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    responses={
        500: {"description": "Store error"},
    },
)


@router.get(
    "",
    response_model=PendingUsersResponse,
    summary="Admin query",
    description="Supported actions: `get-pending-users`.",
    status_code=status.HTTP_200_OK,
)
async def admin_query(
    action: Literal["get-pending-users"] = Query(..., description="Query to run"),
    admin: AdminService = Depends(get_admin_service),
) -> PendingUsersResponse:
    users = await admin.get_pending_users()
    return PendingUsersResponse(users=users)


@router.post(
    "",
    response_model=AdminActionResponse,
    summary="Admin action",
    description=(
        "Dispatches on `action`: `approve-user`, `migrate-looks`, "
        "`reindex-boards`, `reconcile-instances` or `update-logo`."
    ),
    status_code=status.HTTP_200_OK,
    responses={
        200: {"description": "Action applied"},
        400: {"description": "Missing or invalid fields"},
        404: {"description": "User not found"},
    },
)
async def admin_action(
    payload: Annotated[AdminAction, Body(discriminator="action")],
    admin: AdminService = Depends(get_admin_service),
) -> AdminActionResponse:
    """
    Run one administrative tool.

    - `migrate-looks`: publish looks saved before visibility existed
    - `reindex-boards`: rebuild every publicId index entry
    - `reconcile-instances`: drop share instance ids whose record expired
    """
    if isinstance(payload, ApproveUserRequest):
        email = await admin.approve_user(payload.email)
        return AdminActionResponse(message=f"User {email} approved.")

    if isinstance(payload, MigrateLooksRequest):
        count = await admin.migrate_looks()
        return AdminActionResponse(message=f"Migrated {count} look(s).", count=count)

    if isinstance(payload, ReindexBoardsRequest):
        count = await admin.reindex_boards()
        return AdminActionResponse(message=f"Indexed {count} lookboard(s).", count=count)

    if isinstance(payload, ReconcileInstancesRequest):
        count = await admin.reconcile_instances()
        return AdminActionResponse(message=f"Removed {count} stale instance reference(s).", count=count)

    if isinstance(payload, UpdateLogoRequest):
        await admin.update_logo(payload.logo)
        return AdminActionResponse(message="Logo updated.")
