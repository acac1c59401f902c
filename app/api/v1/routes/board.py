"""
Lookboard routes: share links, client feedback and single-board actions.

Share links come in two flavors:
- /board/public/{publicId}: view-only, resolved straight from the publicId index
- /board/instance/{instanceId}: a client-specific instance that carries
  likes, dislikes and comments and expires after INSTANCE_TTL_SECONDS

Reference: https://fastapi.tiangolo.com/tutorial/path-params/
"""
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Path, Response, status

from app.api.v1.schemas.board import (
    AcceptMainImageRequest,
    AddVariationRequest,
    BoardAction,
    DuplicateBoardRequest,
    InstanceBoardResponse,
    InstancesResponse,
    LookboardResponse,
    LookResponse,
    PublicBoardResponse,
    ShareBoardRequest,
    ShareBoardResponse,
    UpdateBoardRequest,
    UpdateInstanceRequest,
)
from app.api.v1.schemas.data import MessageResponse
from app.core.dependencies import get_board_service, get_share_service
from app.services.board import BoardService
from app.services.sharing import ShareService

router = APIRouter(
    prefix="/board",
    tags=["board"],
    responses={
        500: {"description": "Store error"},
    },
)


@router.post(
    "",
    summary="Lookboard action",
    description=(
        "Dispatches on `action`: `share-board` (201), `update-instance`, "
        "`duplicate-board` (201), `update-board`, `add-variation-to-look` "
        "or `accept-main-image-proposal`."
    ),
    status_code=status.HTTP_200_OK,
    responses={
        200: {"description": "Action applied"},
        201: {"description": "Share instance or board copy created"},
        400: {"description": "Missing or invalid fields"},
        403: {"description": "User is not the creator"},
        404: {"description": "Board, look or instance not found"},
        409: {"description": "User data changed concurrently"},
    },
)
async def board_action(
    payload: Annotated[BoardAction, Body(discriminator="action")],
    response: Response,
    shares: ShareService = Depends(get_share_service),
    boards: BoardService = Depends(get_board_service),
):
    """
    Apply one lookboard action.

    **Ownership:** `update-board` and `add-variation-to-look` are restricted to
    the entity's creator. `accept-main-image-proposal` changes the look for its
    creator and stores a personal override for anyone else.
    """
    if isinstance(payload, ShareBoardRequest):
        instance_id = await shares.create_instance(
            payload.public_id,
            payload.shared_by,
            shared_by_username=payload.shared_by_username,
            client_name=payload.client_name,
            title=payload.title,
            note=payload.note,
        )
        response.status_code = status.HTTP_201_CREATED
        return ShareBoardResponse(instance_id=instance_id)

    if isinstance(payload, UpdateInstanceRequest):
        await shares.update_instance(
            payload.instance_id,
            feedbacks=payload.feedbacks,
            comments=payload.comments,
        )
        return MessageResponse(message="Feedback saved.")

    if isinstance(payload, DuplicateBoardRequest):
        copy = await boards.duplicate_board(
            payload.public_id,
            payload.user_email,
            user_username=payload.user_username,
        )
        response.status_code = status.HTTP_201_CREATED
        return LookboardResponse(message="Lookboard duplicated.", lookboard=copy)

    if isinstance(payload, UpdateBoardRequest):
        board = await boards.update_board(payload.board, payload.user_email)
        return LookboardResponse(message="Lookboard updated.", lookboard=board)

    if isinstance(payload, AddVariationRequest):
        look = await boards.add_variation(payload.look_id, payload.variation, payload.user_email)
        return LookResponse(message="Variation added.", look=look)

    if isinstance(payload, AcceptMainImageRequest):
        result = await boards.accept_main_image_proposal(
            payload.look_id, payload.image, payload.user_email
        )
        return LookResponse(message="Main image updated.", **result)


@router.get(
    "/public/{public_id}",
    response_model=PublicBoardResponse,
    summary="View a shared lookboard",
    description="Resolves a board and its looks by publicId. No feedback capability.",
    status_code=status.HTTP_200_OK,
    responses={
        200: {"description": "Board resolved"},
        404: {"description": "No board with this publicId"},
    },
)
async def get_public_board(
    public_id: str = Path(..., description="Share token of the board"),
    shares: ShareService = Depends(get_share_service),
) -> PublicBoardResponse:
    resolved = await shares.resolve_public_board(public_id)
    return PublicBoardResponse(**resolved)


@router.get(
    "/instance/{instance_id}",
    response_model=InstanceBoardResponse,
    summary="Open a client share link",
    description="Resolves a share instance to its board, looks, the client's feedback and the creator's overrides.",
    status_code=status.HTTP_200_OK,
    responses={
        200: {"description": "Instance resolved"},
        404: {"description": "Instance expired or its board was deleted"},
    },
)
async def get_instance(
    instance_id: str = Path(..., description="Share instance id"),
    shares: ShareService = Depends(get_share_service),
) -> InstanceBoardResponse:
    resolved = await shares.resolve_instance(instance_id)
    return InstanceBoardResponse(**resolved)


@router.get(
    "/instances/{public_id}",
    response_model=InstancesResponse,
    summary="List share instances of a board",
    description="Returns every live share instance of a board, newest first.",
    status_code=status.HTTP_200_OK,
)
async def list_instances(
    public_id: str = Path(..., description="Share token of the board"),
    shares: ShareService = Depends(get_share_service),
) -> InstancesResponse:
    """Expired instances are left out even if their id is still in the board's set."""
    instances = await shares.list_instances(public_id)
    return InstancesResponse(instances=instances)
