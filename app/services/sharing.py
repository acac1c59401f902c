"""
Share instances: client-specific, expiring views of a lookboard that carry
the client's likes, dislikes and comments without touching the board itself.

Lifecycle: created by share-board, updated any number of times (the
expiration set at creation is kept), removed by expiry or when the parent
board is deleted by the SyncEngine.
"""
import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from app.api.v1.schemas.instance import Comment, SharedLookboardInstance
from app.api.v1.schemas.look import Look, Lookboard
from app.core.config import settings
from app.core.exceptions import NotFoundException
from app.services.identity import normalize_email, owner_of
from app.services.repository import LookRepository

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class ShareService:
    """Creates, updates and resolves shared lookboard views."""

    def __init__(self, repository: LookRepository):
        self.repository = repository

    async def create_instance(
        self,
        public_id: str,
        shared_by: str,
        shared_by_username: Optional[str] = None,
        client_name: Optional[str] = None,
        title: Optional[str] = None,
        note: Optional[str] = None,
    ) -> str:
        """
        Create a share instance for the board behind `public_id`.

        Returns:
            The new instance id

        Raises:
            NotFoundException: If no board is indexed under `public_id`
        """
        board = await self.repository.get_board_by_public_id(public_id)
        if board is None:
            raise NotFoundException("The lookboard you are trying to share does not exist.")

        instance = SharedLookboardInstance(
            id=str(uuid.uuid4()),
            lookboard_public_id=public_id,
            shared_by=normalize_email(shared_by),
            shared_by_username=shared_by_username,
            client_name=client_name,
            created_at=_now_ms(),
            feedbacks={},
            comments={},
            title=title,
            note=note,
        )
        await self.repository.create_instance(instance, ttl_seconds=settings.INSTANCE_TTL_SECONDS)

        logger.info(f"Created share instance {instance.id} for board {public_id} by {instance.shared_by}")
        return instance.id

    async def update_instance(
        self,
        instance_id: str,
        feedbacks: Optional[Dict[str, str]] = None,
        comments: Optional[Dict[str, List[Comment]]] = None,
    ) -> SharedLookboardInstance:
        """
        Replace the feedbacks and/or comments of an instance.

        Fields left as None are kept. The instance keeps its original
        expiration.

        Raises:
            NotFoundException: If the instance is missing or expired
        """
        instance = await self.repository.get_instance(instance_id)
        if instance is None:
            raise NotFoundException("Share link not found or has expired.")

        update: Dict[str, Any] = {}
        if feedbacks is not None:
            update["feedbacks"] = {str(look_id): vote for look_id, vote in feedbacks.items()}
        if comments is not None:
            update["comments"] = {str(look_id): thread for look_id, thread in comments.items()}

        updated = instance.model_copy(update=update)
        # Expired or cascade-deleted since the read
        if not await self.repository.save_instance_keep_ttl(updated):
            raise NotFoundException("Share link not found or has expired.")

        logger.info(f"Updated share instance {instance_id}")
        return updated

    async def _looks_for_board(self, board: Lookboard) -> List[Look]:
        if not board.look_ids:
            return []
        creator = owner_of(board) or ""
        available = await self.repository.get_looks_for_creator(creator)
        return [available[look_id] for look_id in board.look_ids if look_id in available]

    async def resolve_instance(self, instance_id: str) -> Dict[str, Any]:
        """
        Board, looks, instance and the creator's overrides for a share link.

        Raises:
            NotFoundException: If the instance expired or its board was deleted
        """
        instance = await self.repository.get_instance(instance_id)
        if instance is None:
            raise NotFoundException("Lookboard link not found or expired.")

        board = await self.repository.get_board_by_public_id(instance.lookboard_public_id)
        if board is None:
            raise NotFoundException("The original lookboard for this link could not be found.")

        looks = await self._looks_for_board(board)
        creator = owner_of(board)
        overrides = await self.repository.get_overrides(creator) if creator else {}
        return {"lookboard": board, "looks": looks, "instance": instance, "overrides": overrides}

    async def resolve_public_board(self, public_id: str) -> Dict[str, Any]:
        """
        View-only resolution of a board by its publicId.

        Raises:
            NotFoundException: If no board is indexed under `public_id`
        """
        board = await self.repository.get_board_by_public_id(public_id)
        if board is None:
            raise NotFoundException("Lookboard not found.")
        return {"lookboard": board, "looks": await self._looks_for_board(board)}

    async def list_instances(self, public_id: str) -> List[SharedLookboardInstance]:
        """Live instances of a board, newest first."""
        instance_ids = await self.repository.get_instance_ids(public_id)
        instances = await self.repository.get_instances(instance_ids)
        return sorted(instances, key=lambda instance: instance.created_at, reverse=True)
