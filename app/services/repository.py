"""
Look/Lookboard repository.

The only component that issues raw store commands. Everything else (the
synchronization engine, share instances, admin tools, routes) goes through
these methods, so the key layout and the partition rules live in one place.

Key layout:
    user:{email}                       account record
    pending_users                      set of emails awaiting approval
    looks:{email}                      private looks (JSON array)
    lookboards:{email}                 private lookboards (JSON array)
    user_overrides:{email}             LookOverrides map
    data_version:{email}               commit counter (optimistic concurrency)
    public_looks_hash                  lookId -> Look
    public_lookboards_hash             boardId -> Lookboard
    publicId:{publicId}                denormalized Lookboard
    instance:{instanceId}              SharedLookboardInstance (expiring)
    instances_for_board:{publicId}     set of instance ids
    import:{email}:{importId}:{type}:{index}   ingestion chunk (expiring)
    app_logo                           base64 data URI
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel

from app.api.v1.schemas.instance import SharedLookboardInstance
from app.api.v1.schemas.look import Look, Lookboard, LookOverride
from app.api.v1.schemas.user import User
from app.core.exceptions import DataCorruptionException
from app.core.redis import RedisBatch, RedisClient, pairs_to_dict
from app.services.codec import decode_model, decode_record, encode_record

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

PUBLIC_LOOKS_HASH = "public_looks_hash"
PUBLIC_LOOKBOARDS_HASH = "public_lookboards_hash"
PENDING_USERS_KEY = "pending_users"
APP_LOGO_KEY = "app_logo"


def user_key(email: str) -> str:
    return f"user:{email}"


def looks_key(email: str) -> str:
    return f"looks:{email}"


def lookboards_key(email: str) -> str:
    return f"lookboards:{email}"


def overrides_key(email: str) -> str:
    return f"user_overrides:{email}"


def version_key(email: str) -> str:
    return f"data_version:{email}"


def public_id_key(public_id: str) -> str:
    return f"publicId:{public_id}"


def instance_key(instance_id: str) -> str:
    return f"instance:{instance_id}"


def instances_for_board_key(public_id: str) -> str:
    return f"instances_for_board:{public_id}"


def import_chunk_key(email: str, import_id: str, chunk_type: str, index: int) -> str:
    return f"import:{email}:{import_id}:{chunk_type}:{index}"


@dataclass
class UserState:
    """Everything the synchronization engine needs to read before a commit."""

    private_looks: List[Look] = field(default_factory=list)
    private_lookboards: List[Lookboard] = field(default_factory=list)
    public_looks: Dict[int, Look] = field(default_factory=dict)
    public_lookboards: Dict[int, Lookboard] = field(default_factory=dict)
    overrides: Dict[str, LookOverride] = field(default_factory=dict)
    version: int = 0


class LookRepository:
    """Reads and writes looks, lookboards, share instances and their indexes."""

    def __init__(self, client: RedisClient):
        self.client = client

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    @staticmethod
    def _decode_collection(raw: Any, model: Type[ModelT], key: str) -> List[ModelT]:
        """Decode a JSON array, skipping entries that fail to decode."""
        if raw is None:
            return []
        decoded = decode_record(raw)
        if not decoded.ok or not isinstance(decoded.value, list):
            logger.warning(f"Skipping unreadable collection {key}: {decoded.error or 'not an array'}")
            return []

        items: List[ModelT] = []
        for index, entry in enumerate(decoded.value):
            if entry is None:
                continue
            item = decode_model(entry, model)
            if not item.ok:
                logger.warning(f"Skipping corrupted entry {index} in {key}: {item.error}")
                continue
            items.append(item.value)
        return items

    @staticmethod
    def _decode_hash(raw: Any, model: Type[ModelT], key: str) -> Dict[int, ModelT]:
        """Decode a hash of records keyed by their numeric id."""
        items: Dict[int, ModelT] = {}
        for field_name, value in pairs_to_dict(raw).items():
            if value is None:
                continue
            item = decode_model(value, model)
            if not item.ok:
                logger.warning(f"Skipping corrupted field {field_name} in {key}: {item.error}")
                continue
            items[item.value.id] = item.value
        return items

    @staticmethod
    def _decode_overrides(raw: Any, key: str) -> Dict[str, LookOverride]:
        if raw is None:
            return {}
        decoded = decode_record(raw)
        if not decoded.ok or not isinstance(decoded.value, dict):
            logger.warning(f"Skipping unreadable overrides {key}: {decoded.error or 'not an object'}")
            return {}

        overrides: Dict[str, LookOverride] = {}
        for look_id, value in decoded.value.items():
            item = decode_model(value, LookOverride)
            if item.ok:
                overrides[str(look_id)] = item.value
            else:
                logger.warning(f"Skipping corrupted override {look_id} in {key}: {item.error}")
        return overrides

    @staticmethod
    def _decode_one(raw: Any, model: Type[ModelT], key: str) -> Optional[ModelT]:
        """Decode a directly requested record. Corruption is a hard error."""
        if raw is None:
            return None
        item = decode_model(raw, model)
        if not item.ok:
            logger.error(f"Corrupted record at {key}: {item.error}")
            raise DataCorruptionException(f"Stored record {key} is corrupted.")
        return item.value

    @staticmethod
    def _decode_version(raw: Any) -> int:
        try:
            return int(raw) if raw is not None else 0
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-numeric data version: {raw!r}")
            return 0

    # ------------------------------------------------------------------
    # Looks and lookboards
    # ------------------------------------------------------------------

    async def load_user_state(self, email: str) -> UserState:
        """
        Read a user's private collections, both public hashes, overrides and
        data version in one round trip.
        """
        batch = self.client.pipeline()
        batch.get(looks_key(email))
        batch.get(lookboards_key(email))
        batch.hgetall(PUBLIC_LOOKS_HASH)
        batch.hgetall(PUBLIC_LOOKBOARDS_HASH)
        batch.get(overrides_key(email))
        batch.get(version_key(email))
        looks, boards, public_looks, public_boards, overrides, version = await batch.execute()

        return UserState(
            private_looks=self._decode_collection(looks, Look, looks_key(email)),
            private_lookboards=self._decode_collection(boards, Lookboard, lookboards_key(email)),
            public_looks=self._decode_hash(public_looks, Look, PUBLIC_LOOKS_HASH),
            public_lookboards=self._decode_hash(public_boards, Lookboard, PUBLIC_LOOKBOARDS_HASH),
            overrides=self._decode_overrides(overrides, overrides_key(email)),
            version=self._decode_version(version),
        )

    async def get_version(self, email: str) -> int:
        return self._decode_version(await self.client.get(version_key(email)))

    async def get_looks_for_creator(self, email: str) -> Dict[int, Look]:
        """
        Looks visible through a board created by `email`: every public look,
        overlaid with the creator's private looks.
        """
        batch = self.client.pipeline()
        batch.hgetall(PUBLIC_LOOKS_HASH)
        batch.get(looks_key(email))
        public_looks, private_looks = await batch.execute()

        combined = self._decode_hash(public_looks, Look, PUBLIC_LOOKS_HASH)
        for look in self._decode_collection(private_looks, Look, looks_key(email)):
            combined[look.id] = look
        return combined

    async def get_overrides(self, email: str) -> Dict[str, LookOverride]:
        return self._decode_overrides(await self.client.get(overrides_key(email)), overrides_key(email))

    async def get_board_by_public_id(self, public_id: str) -> Optional[Lookboard]:
        key = public_id_key(public_id)
        return self._decode_one(await self.client.get(key), Lookboard, key)

    async def get_boards_by_public_ids(self, public_ids: Iterable[str]) -> Dict[str, Lookboard]:
        """Index entries for several publicIds; missing or corrupted ones are left out."""
        public_ids = list(public_ids)
        if not public_ids:
            return {}
        values = await self.client.mget(*[public_id_key(pid) for pid in public_ids])

        boards: Dict[str, Lookboard] = {}
        for public_id, value in zip(public_ids, values):
            if value is None:
                continue
            item = decode_model(value, Lookboard)
            if item.ok:
                boards[public_id] = item.value
            else:
                logger.warning(f"Skipping corrupted index entry {public_id_key(public_id)}: {item.error}")
        return boards

    async def get_private_lookboards_for(self, emails: List[str]) -> List[Lookboard]:
        if not emails:
            return []
        values = await self.client.mget(*[lookboards_key(email) for email in emails])
        boards: List[Lookboard] = []
        for email, value in zip(emails, values):
            boards.extend(self._decode_collection(value, Lookboard, lookboards_key(email)))
        return boards

    async def get_public_lookboards(self) -> Dict[int, Lookboard]:
        return self._decode_hash(
            await self.client.hgetall(PUBLIC_LOOKBOARDS_HASH),
            Lookboard,
            PUBLIC_LOOKBOARDS_HASH,
        )

    async def get_raw_look_collections(self, emails: List[str]) -> Dict[str, List[dict]]:
        """
        Undecoded private look arrays per user, for migrations that need to
        see which fields are actually present.
        """
        if not emails:
            return {}
        values = await self.client.mget(*[looks_key(email) for email in emails])
        collections: Dict[str, List[dict]] = {}
        for email, value in zip(emails, values):
            if value is None:
                continue
            decoded = decode_record(value)
            if not decoded.ok or not isinstance(decoded.value, list):
                logger.warning(f"Skipping unreadable collection {looks_key(email)}")
                continue
            collections[email] = [entry for entry in decoded.value if isinstance(entry, dict)]
        return collections

    # ------------------------------------------------------------------
    # Share instances
    # ------------------------------------------------------------------

    async def get_instance(self, instance_id: str) -> Optional[SharedLookboardInstance]:
        key = instance_key(instance_id)
        return self._decode_one(await self.client.get(key), SharedLookboardInstance, key)

    async def get_instances(self, instance_ids: List[str]) -> List[SharedLookboardInstance]:
        """Live instances among `instance_ids`; expired ones are skipped."""
        if not instance_ids:
            return []
        values = await self.client.mget(*[instance_key(i) for i in instance_ids])
        instances: List[SharedLookboardInstance] = []
        for instance_id, value in zip(instance_ids, values):
            if value is None:
                continue
            item = decode_model(value, SharedLookboardInstance)
            if item.ok:
                instances.append(item.value)
            else:
                logger.warning(f"Skipping corrupted instance {instance_id}: {item.error}")
        return instances

    async def get_instance_ids(self, public_id: str) -> List[str]:
        return await self.client.smembers(instances_for_board_key(public_id))

    async def get_instance_ids_for_boards(self, public_ids: Iterable[str]) -> Dict[str, List[str]]:
        public_ids = sorted(set(public_ids))
        if not public_ids:
            return {}
        batch = self.client.pipeline()
        for public_id in public_ids:
            batch.smembers(instances_for_board_key(public_id))
        results = await batch.execute()
        return {public_id: list(members or []) for public_id, members in zip(public_ids, results)}

    async def create_instance(self, instance: SharedLookboardInstance, ttl_seconds: int) -> None:
        """Write the instance with its expiration and register it under its board."""
        batch = self.client.transaction()
        batch.set(instance_key(instance.id), encode_record(instance), ex=ttl_seconds)
        batch.sadd(instances_for_board_key(instance.lookboard_public_id), instance.id)
        await batch.execute()

    async def save_instance_keep_ttl(self, instance: SharedLookboardInstance) -> bool:
        """Rewrite a live instance in place. Returns False if it no longer exists."""
        return await self.client.set(
            instance_key(instance.id), encode_record(instance), keepttl=True, xx=True
        )

    async def get_instance_ttl(self, instance_id: str) -> int:
        return await self.client.ttl(instance_key(instance_id))

    async def list_instance_set_public_ids(self) -> List[str]:
        prefix = instances_for_board_key("")
        keys = await self.client.keys(f"{prefix}*")
        return [key[len(prefix):] for key in keys]

    async def existing_instance_ids(self, instance_ids: List[str]) -> set:
        if not instance_ids:
            return set()
        values = await self.client.mget(*[instance_key(i) for i in instance_ids])
        return {instance_id for instance_id, value in zip(instance_ids, values) if value is not None}

    # ------------------------------------------------------------------
    # Import chunks
    # ------------------------------------------------------------------

    async def save_chunk(
        self,
        email: str,
        import_id: str,
        chunk_type: str,
        chunk_index: int,
        data: List[Any],
        ttl_seconds: int,
    ) -> None:
        key = import_chunk_key(email, import_id, chunk_type, chunk_index)
        await self.client.set(key, encode_record(data), ex=ttl_seconds)

    async def get_chunks(self, keys: List[str]) -> List[Optional[list]]:
        """One decoded slice per key; None where the chunk is missing, expired or unreadable."""
        if not keys:
            return []
        chunks: List[Optional[list]] = []
        for key, value in zip(keys, await self.client.mget(*keys)):
            if value is None:
                chunks.append(None)
                continue
            decoded = decode_record(value)
            if not decoded.ok or not isinstance(decoded.value, list):
                logger.warning(f"Skipping unreadable chunk {key}: {decoded.error or 'not an array'}")
                chunks.append(None)
                continue
            chunks.append(decoded.value)
        return chunks

    async def delete_keys(self, keys: List[str]) -> int:
        return await self.client.delete(*keys)

    # ------------------------------------------------------------------
    # Users and branding
    # ------------------------------------------------------------------

    async def get_user(self, email: str) -> Optional[User]:
        key = user_key(email)
        return self._decode_one(await self.client.get(key), User, key)

    async def list_user_emails(self) -> List[str]:
        prefix = user_key("")
        return [key[len(prefix):] for key in await self.client.keys(f"{prefix}*")]

    async def get_pending_emails(self) -> List[str]:
        return await self.client.smembers(PENDING_USERS_KEY)

    async def get_users(self, emails: List[str]) -> List[User]:
        if not emails:
            return []
        users: List[User] = []
        for email, value in zip(emails, await self.client.mget(*[user_key(e) for e in emails])):
            if value is None:
                continue
            item = decode_model(value, User)
            if item.ok:
                users.append(item.value)
            else:
                logger.warning(f"Skipping corrupted user record {user_key(email)}: {item.error}")
        return users

    async def get_logo(self) -> Optional[str]:
        return await self.client.get(APP_LOGO_KEY)

    async def set_logo(self, logo: str) -> None:
        await self.client.set(APP_LOGO_KEY, logo)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def batch(self) -> "RepositoryBatch":
        """Start an atomic batch of repository writes."""
        return RepositoryBatch(self.client.transaction())


class RepositoryBatch:
    """Domain-level writes recorded into a single MULTI/EXEC transaction."""

    def __init__(self, batch: RedisBatch):
        self._batch = batch

    def __len__(self) -> int:
        return len(self._batch)

    def replace_private_looks(self, email: str, looks: List[Look]) -> "RepositoryBatch":
        self._batch.set(looks_key(email), encode_record(looks))
        return self

    def replace_private_lookboards(self, email: str, boards: List[Lookboard]) -> "RepositoryBatch":
        self._batch.set(lookboards_key(email), encode_record(boards))
        return self

    def upsert_public_looks(self, looks: Iterable[Look]) -> "RepositoryBatch":
        self._batch.hset(PUBLIC_LOOKS_HASH, {str(look.id): encode_record(look) for look in looks})
        return self

    def delete_public_looks(self, look_ids: Iterable[int]) -> "RepositoryBatch":
        self._batch.hdel(PUBLIC_LOOKS_HASH, *[str(i) for i in sorted(look_ids)])
        return self

    def upsert_public_lookboards(self, boards: Iterable[Lookboard]) -> "RepositoryBatch":
        self._batch.hset(PUBLIC_LOOKBOARDS_HASH, {str(board.id): encode_record(board) for board in boards})
        return self

    def delete_public_lookboards(self, board_ids: Iterable[int]) -> "RepositoryBatch":
        self._batch.hdel(PUBLIC_LOOKBOARDS_HASH, *[str(i) for i in sorted(board_ids)])
        return self

    def delete_board_index(self, public_ids: Iterable[str]) -> "RepositoryBatch":
        self._batch.delete(*[public_id_key(pid) for pid in sorted(public_ids)])
        return self

    def upsert_board_index(self, boards: Iterable[Lookboard]) -> "RepositoryBatch":
        self._batch.mset({public_id_key(board.public_id): encode_record(board) for board in boards})
        return self

    def delete_instances(self, instance_ids: Iterable[str]) -> "RepositoryBatch":
        self._batch.delete(*[instance_key(i) for i in sorted(instance_ids)])
        return self

    def delete_instance_sets(self, public_ids: Iterable[str]) -> "RepositoryBatch":
        self._batch.delete(*[instances_for_board_key(pid) for pid in sorted(public_ids)])
        return self

    def remove_instance_ids(self, public_id: str, instance_ids: Iterable[str]) -> "RepositoryBatch":
        self._batch.srem(instances_for_board_key(public_id), *sorted(instance_ids))
        return self

    def set_overrides(self, email: str, overrides: Dict[str, LookOverride]) -> "RepositoryBatch":
        self._batch.set(overrides_key(email), encode_record(overrides))
        return self

    def bump_version(self, email: str) -> "RepositoryBatch":
        self._batch.incr(version_key(email))
        return self

    def set_private_look_collection(self, email: str, looks: List[dict]) -> "RepositoryBatch":
        self._batch.set(looks_key(email), encode_record(looks))
        return self

    def upsert_public_look_records(self, records: Dict[str, dict]) -> "RepositoryBatch":
        self._batch.hset(PUBLIC_LOOKS_HASH, {key: encode_record(value) for key, value in records.items()})
        return self

    def save_user(self, user: User) -> "RepositoryBatch":
        self._batch.set(user_key(user.email.lower()), encode_record(user))
        return self

    def remove_pending_user(self, email: str) -> "RepositoryBatch":
        self._batch.srem(PENDING_USERS_KEY, email)
        return self

    async def execute(self) -> List[Any]:
        return await self._batch.execute()
