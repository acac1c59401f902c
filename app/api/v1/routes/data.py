"""
User data routes: load a user's editable state and commit chunked imports.

Large saves are split client-side into chunks (the hosting platform caps
request bodies), uploaded with `save-chunk`, then applied once with
`commit-chunks`.

Reference: https://fastapi.tiangolo.com/tutorial/body/
"""
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, status

from app.api.v1.schemas.data import (
    CommitChunksRequest,
    CommitResponse,
    DataAction,
    MessageResponse,
    SaveChunkRequest,
    SaveOverridesRequest,
    UserDataResponse,
)
from app.core.dependencies import get_ingestion_service, get_sync_engine
from app.services.ingestion import IngestionService
from app.services.sync import SyncEngine

router = APIRouter(
    prefix="/data",
    tags=["data"],
    responses={
        500: {"description": "Store error"},
    },
)


@router.get(
    "",
    response_model=UserDataResponse,
    summary="Load user data",
    description="Returns every public look and lookboard merged with the user's private ones, the user's overrides and the current data version.",
    status_code=status.HTTP_200_OK,
    responses={
        200: {"description": "User data loaded"},
        400: {"description": "Missing or invalid email"},
    },
)
async def get_user_data(
    email: str = Query(..., description="Email of the user whose data to load"),
    engine: SyncEngine = Depends(get_sync_engine),
) -> UserDataResponse:
    """
    Load the merged public/private view for a user.

    Public entries come first; a private entry with the same id replaces the
    public one. Corrupted stored entries are skipped.

    Args:
        email: User email (case-insensitive)
        engine: Synchronization engine

    Returns:
        UserDataResponse with looks, lookboards, overrides and version
    """
    snapshot = await engine.snapshot(email)
    return UserDataResponse(**snapshot)


@router.post(
    "",
    summary="Save or commit user data",
    description="Dispatches on `action`: `save-chunk`, `commit-chunks` or `save-overrides`.",
    status_code=status.HTTP_200_OK,
    responses={
        200: {"description": "Action applied"},
        400: {"description": "Missing or invalid fields"},
        409: {"description": "Data changed since expectedVersion"},
    },
)
async def post_user_data(
    payload: Annotated[DataAction, Body(discriminator="action")],
    ingestion: IngestionService = Depends(get_ingestion_service),
    engine: SyncEngine = Depends(get_sync_engine),
):
    if isinstance(payload, SaveChunkRequest):
        await ingestion.save_chunk(
            payload.email,
            payload.import_id,
            payload.chunk_index,
            payload.chunk_type,
            payload.data,
        )
        return MessageResponse(message=f"Chunk {payload.chunk_index} saved.")

    if isinstance(payload, CommitChunksRequest):
        result = await ingestion.commit_chunks(
            payload.email,
            payload.import_id,
            payload.chunk_counts.model_dump(),
            overrides=payload.overrides,
            expected_version=payload.expected_version,
        )
        message = "Data saved successfully." if result.committed else "No changes to save."
        return CommitResponse(message=message, version=result.version, changes=result.plan.summary())

    if isinstance(payload, SaveOverridesRequest):
        result = await engine.commit(payload.email, overrides=payload.overrides)
        return CommitResponse(
            message="Overrides saved successfully.",
            version=result.version,
            changes=result.plan.summary(),
        )
