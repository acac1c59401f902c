"""
Single-entity board and look actions (edit a board, duplicate a shared board,
add a variation, accept a main image proposal).

Each action reads the user's current state, edits one entity and hands the
user's complete owned set back to the SyncEngine, so partition moves, the
publicId index and the version counter are handled in one place.
"""
import logging
import secrets
import time
from typing import Any, Dict, Optional

from app.api.v1.schemas.look import Look, Lookboard, LookOverride
from app.core.exceptions import NotFoundException, OwnershipException, ValidationException
from app.services.identity import normalize_email, owner_of
from app.services.repository import LookRepository, UserState
from app.services.storage import StorageService, is_data_uri, parse_data_uri
from app.services.sync import SyncEngine, owned_items

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def new_public_id() -> str:
    """URL-safe share token for a new board."""
    return secrets.token_urlsafe(12)


class BoardService:
    """Board and look edits initiated from the lookbook UI."""

    def __init__(
        self,
        repository: LookRepository,
        engine: SyncEngine,
        storage: Optional[StorageService] = None,
    ):
        self.repository = repository
        self.engine = engine
        self.storage = storage

    @staticmethod
    def _owned_look(state: UserState, look_id: int, email: str) -> Look:
        owned = owned_items(state.private_looks, state.public_looks, email)
        if look_id in owned:
            return owned[look_id]
        if look_id in state.public_looks:
            raise OwnershipException("Only the creator can modify this look.")
        raise NotFoundException("Look not found.")

    async def _commit_look(self, email: str, state: UserState, look: Look) -> None:
        owned = owned_items(state.private_looks, state.public_looks, email)
        owned[look.id] = look
        await self.engine.commit(email, looks=list(owned.values()), expected_version=state.version)

    async def update_board(self, board: Lookboard, user_email: str) -> Lookboard:
        """
        Replace one of the user's boards.

        Raises:
            NotFoundException: If the board does not exist
            OwnershipException: If the user is not the board's creator
        """
        email = normalize_email(user_email)
        state = await self.repository.load_user_state(email)

        owned = owned_items(state.private_lookboards, state.public_lookboards, email)
        existing = owned.get(board.id)
        if existing is None:
            if board.id in state.public_lookboards:
                raise OwnershipException("Only the creator can edit this lookboard.")
            raise NotFoundException("Lookboard not found.")

        updated = board.model_copy(update={
            "created_by": existing.created_by,
            "created_by_username": board.created_by_username or existing.created_by_username,
        })
        owned[board.id] = updated
        await self.engine.commit(email, lookboards=list(owned.values()), expected_version=state.version)

        logger.info(f"Updated lookboard {board.id} for {email}")
        return updated

    async def duplicate_board(
        self,
        public_id: str,
        user_email: str,
        user_username: Optional[str] = None,
    ) -> Lookboard:
        """
        Copy the board behind `public_id` into the user's private boards.

        The copy gets a fresh id and publicId and references the same looks.

        Raises:
            NotFoundException: If no board is indexed under `public_id`
        """
        email = normalize_email(user_email)
        source = await self.repository.get_board_by_public_id(public_id)
        if source is None:
            raise NotFoundException("The lookboard you are trying to duplicate does not exist.")

        state = await self.repository.load_user_state(email)
        owned = owned_items(state.private_lookboards, state.public_lookboards, email)

        used_ids = set(owned) | set(state.public_lookboards)
        board_id = _now_ms()
        while board_id in used_ids:
            board_id += 1

        copy = Lookboard(
            id=board_id,
            public_id=new_public_id(),
            title=f"{source.title} (Copy)" if source.title else "Untitled (Copy)",
            note=source.note,
            look_ids=list(source.look_ids),
            created_at=_now_ms(),
            visibility="private",
            created_by=email,
            created_by_username=user_username,
        )
        owned[copy.id] = copy
        await self.engine.commit(email, lookboards=list(owned.values()), expected_version=state.version)

        logger.info(f"Duplicated lookboard {public_id} into {copy.public_id} for {email}")
        return copy

    async def add_variation(self, look_id: int, variation: str, user_email: str) -> Look:
        """
        Append an image/video to a look's variations.

        Data URIs are uploaded to the asset store when one is configured.

        Raises:
            NotFoundException: If the look does not exist
            OwnershipException: If the user is not the look's creator
            ValidationException: If the variation is empty or a malformed data URI
        """
        if not variation:
            raise ValidationException("Variation is required.")
        email = normalize_email(user_email)
        state = await self.repository.load_user_state(email)
        look = self._owned_look(state, look_id, email)

        if is_data_uri(variation):
            if self.storage is not None:
                variation = await self.storage.upload_data_uri(variation, folder="variations")
            else:
                parse_data_uri(variation)

        variations = list(look.variations)
        if variation != look.final_image and variation not in variations:
            variations.append(variation)
        updated = look.model_copy(update={"variations": variations})

        if updated.variations != look.variations:
            await self._commit_look(email, state, updated)
            logger.info(f"Added variation to look {look_id} for {email}")
        return updated

    async def accept_main_image_proposal(self, look_id: int, image: str, user_email: str) -> Dict[str, Any]:
        """
        Make `image` the main image of a look.

        The creator changes the look itself (the previous main image is kept
        as a variation). Anyone else records a LookOverride for themselves.

        Returns:
            {"look": Look, "override": LookOverride | None}

        Raises:
            NotFoundException: If the look is neither owned nor public
        """
        if not image:
            raise ValidationException("Image is required.")
        email = normalize_email(user_email)
        state = await self.repository.load_user_state(email)

        owned = owned_items(state.private_looks, state.public_looks, email)
        look = owned.get(look_id)
        if look is not None:
            variations = [v for v in look.variations if v != image]
            if look.final_image and look.final_image != image:
                variations.insert(0, look.final_image)
            updated = look.model_copy(update={"final_image": image, "variations": variations})
            await self._commit_look(email, state, updated)
            logger.info(f"Promoted new main image for look {look_id} by {email}")
            return {"look": updated, "override": None}

        public_look = state.public_looks.get(look_id)
        if public_look is None or owner_of(public_look) == email:
            raise NotFoundException("Look not found.")

        override = LookOverride(final_image=image)
        overrides = dict(state.overrides)
        overrides[str(look_id)] = override
        await self.engine.commit(email, overrides=overrides, expected_version=state.version)
        logger.info(f"Stored main image override for look {look_id} by {email}")
        return {"look": public_look, "override": override}
