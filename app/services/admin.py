"""
Administrative repair and migration tools operating on repository primitives.
"""
import logging
from typing import Any, Dict, List, Optional

from app.api.v1.schemas.look import Lookboard
from app.core.config import settings
from app.core.exceptions import NotFoundException, ValidationException
from app.services.identity import normalize_email
from app.services.repository import LookRepository

logger = logging.getLogger(__name__)


class AdminService:
    """User approval, data migrations and index maintenance."""

    def __init__(self, repository: LookRepository):
        self.repository = repository

    async def get_pending_users(self) -> List[Dict[str, Any]]:
        emails = await self.repository.get_pending_emails()
        users = await self.repository.get_users(emails)
        return [user.public_view() for user in users]

    async def approve_user(self, email: str) -> str:
        """
        Mark a pending user as approved.

        Raises:
            NotFoundException: If the user does not exist
            DataCorruptionException: If the user record cannot be read
        """
        email = normalize_email(email)
        user = await self.repository.get_user(email)
        if user is None:
            raise NotFoundException("User not found")

        approved = user.model_copy(update={"status": "approved"})
        await self.repository.batch().save_user(approved).remove_pending_user(email).execute()

        logger.info(f"Approved user {email}")
        return email

    async def migrate_looks(self) -> int:
        """
        Publish legacy looks (stored before looks had a visibility).

        Legacy looks are moved from their user's private collection into the
        public hash and attributed to the migration owner.

        Returns:
            Number of looks migrated
        """
        emails = await self.repository.list_user_emails()
        collections = await self.repository.get_raw_look_collections(emails)

        published: Dict[str, dict] = {}
        remaining: Dict[str, List[dict]] = {}
        for email, looks in collections.items():
            legacy = [look for look in looks if "visibility" not in look and "id" in look]
            if not legacy:
                continue
            for look in legacy:
                published[str(look["id"])] = {
                    **look,
                    "visibility": "public",
                    "createdBy": settings.MIGRATION_OWNER_EMAIL.lower(),
                    "createdByUsername": settings.MIGRATION_OWNER_USERNAME,
                }
            remaining[email] = [look for look in looks if look not in legacy]

        if not published:
            logger.info("No legacy looks found to migrate")
            return 0

        batch = self.repository.batch()
        batch.upsert_public_look_records(published)
        for email, looks in remaining.items():
            batch.set_private_look_collection(email, looks)
        await batch.execute()

        logger.info(f"Migrated {len(published)} legacy look(s) to public")
        return len(published)

    async def reindex_boards(self) -> int:
        """
        Rebuild publicId:{id} entries for every board of every user.

        Returns:
            Number of index entries written
        """
        emails = await self.repository.list_user_emails()
        boards: Dict[int, Lookboard] = {}
        for board in await self.repository.get_private_lookboards_for(emails):
            boards[board.id] = board
        # Public copies win over stale private duplicates
        boards.update(await self.repository.get_public_lookboards())

        if not boards:
            return 0

        await self.repository.batch().upsert_board_index(boards.values()).execute()
        logger.info(f"Indexed {len(boards)} lookboard share link(s)")
        return len(boards)

    async def reconcile_instances(self) -> int:
        """
        Drop instance ids whose instance record no longer exists from every
        instances_for_board set; empty sets are deleted.

        Returns:
            Number of stale instance ids removed
        """
        public_ids = await self.repository.list_instance_set_public_ids()
        instance_sets = await self.repository.get_instance_ids_for_boards(public_ids)

        batch = self.repository.batch()
        removed = 0
        empty_sets = []
        for public_id, instance_ids in instance_sets.items():
            alive = await self.repository.existing_instance_ids(instance_ids)
            stale = set(instance_ids) - alive
            if not stale:
                continue
            removed += len(stale)
            if alive:
                batch.remove_instance_ids(public_id, stale)
            else:
                empty_sets.append(public_id)
        batch.delete_instance_sets(empty_sets)

        await batch.execute()
        if removed:
            logger.info(f"Removed {removed} stale share instance reference(s)")
        return removed

    async def update_logo(self, logo: str) -> None:
        if not logo or not isinstance(logo, str) or not logo.startswith("data:image"):
            raise ValidationException("A valid base64 image string is required.")
        await self.repository.set_logo(logo)
        logger.info("Updated application logo")

    async def get_logo(self) -> Optional[str]:
        return await self.repository.get_logo()
