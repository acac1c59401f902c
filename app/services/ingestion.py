"""
Chunked ingestion of large look/lookboard payloads.

Clients split an export into bounded slices (the transport caps request
bodies), upload each slice with save_chunk(), then call commit_chunks() once.
Slices expire on their own after IMPORT_CHUNK_TTL_SECONDS, so abandoned
imports need no sweep.
"""
import logging
from typing import Any, Dict, List, Literal, Optional

from pydantic import TypeAdapter, ValidationError

from app.api.v1.schemas.look import Look, Lookboard, LookOverride
from app.core.config import settings
from app.core.exceptions import ValidationException
from app.services.identity import normalize_email
from app.services.repository import LookRepository, import_chunk_key
from app.services.sync import SyncEngine, SyncResult

logger = logging.getLogger(__name__)

ChunkType = Literal["looks", "lookboards"]

_looks_adapter = TypeAdapter(List[Look])
_lookboards_adapter = TypeAdapter(List[Lookboard])


class IngestionService:
    """Stores import slices and commits them through the SyncEngine."""

    def __init__(self, repository: LookRepository, engine: SyncEngine):
        self.repository = repository
        self.engine = engine

    async def save_chunk(
        self,
        email: str,
        import_id: str,
        chunk_index: int,
        chunk_type: ChunkType,
        data: List[Any],
    ) -> None:
        """
        Store one slice of an import. Re-sending the same slice overwrites it.
        """
        email = normalize_email(email)
        await self.repository.save_chunk(
            email,
            import_id,
            chunk_type,
            chunk_index,
            data,
            ttl_seconds=settings.IMPORT_CHUNK_TTL_SECONDS,
        )
        logger.debug(f"Stored {chunk_type} chunk {chunk_index} of import {import_id} for {email}")

    async def _reassemble(self, keys: List[str]) -> List[Any]:
        # A zero count never reaches the store (MGET needs at least one key)
        if not keys:
            return []
        items: List[Any] = []
        for key, chunk in zip(keys, await self.repository.get_chunks(keys)):
            if chunk is None:
                logger.warning(f"Chunk {key} is missing or expired; treating it as empty")
                continue
            items.extend(item for item in chunk if item is not None)
        return items

    async def commit_chunks(
        self,
        email: str,
        import_id: str,
        chunk_counts: Dict[str, int],
        overrides: Optional[Dict[str, LookOverride]] = None,
        expected_version: Optional[int] = None,
    ) -> SyncResult:
        """
        Reassemble every slice of an import and commit it.

        Args:
            email: Owner of the import
            import_id: Client-generated import identifier
            chunk_counts: Number of slices per type, e.g. {"looks": 3, "lookboards": 1}
            overrides: The user's complete overrides map
            expected_version: Data version the client based its edits on

        Returns:
            SyncResult from the engine

        Raises:
            ValidationException: If a reassembled entry is not a valid look/lookboard
        """
        email = normalize_email(email)
        look_keys = [
            import_chunk_key(email, import_id, "looks", index)
            for index in range(chunk_counts.get("looks", 0))
        ]
        board_keys = [
            import_chunk_key(email, import_id, "lookboards", index)
            for index in range(chunk_counts.get("lookboards", 0))
        ]

        try:
            raw_looks = await self._reassemble(look_keys)
            raw_boards = await self._reassemble(board_keys)

            try:
                looks = _looks_adapter.validate_python(raw_looks)
                lookboards = _lookboards_adapter.validate_python(raw_boards)
            except ValidationError as e:
                raise ValidationException(
                    f"Import {import_id} contains {e.error_count()} invalid field(s)."
                ) from e

            return await self.engine.commit(
                email,
                looks=looks,
                lookboards=lookboards,
                overrides=overrides,
                expected_version=expected_version,
            )
        finally:
            await self._cleanup(look_keys + board_keys)

    async def _cleanup(self, keys: List[str]) -> None:
        if not keys:
            return
        try:
            await self.repository.delete_keys(keys)
        except Exception as e:
            # Chunks expire on their own; a failed cleanup must not mask the commit result
            logger.warning(f"Failed to delete {len(keys)} import chunk(s): {type(e).__name__}: {e}")
