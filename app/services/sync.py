"""
Synchronization engine for a user's looks and lookboards.

The client submits the complete desired state of the entities it owns (not a
patch). The engine reads the stored state, computes the delta per partition
(the user's private collection vs. the global public hash), keeps the
publicId index in step with the user's boards, cascades share-instance
cleanup for deleted boards, and writes everything in a single MULTI/EXEC
transaction.

Submitting an unchanged state produces an empty plan and no write at all,
which makes client retries safe.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Sequence, Set, Tuple, TypeVar

from app.api.v1.schemas.look import Look, Lookboard, LookOverride
from app.core.exceptions import ValidationException, VersionConflictException
from app.services.identity import normalize_email, owner_of
from app.services.repository import LookRepository, RepositoryBatch, UserState

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", Look, Lookboard)


@dataclass
class PartitionDelta(Generic[EntityT]):
    """Changes for one entity type."""

    # New private collection, or None when it is unchanged
    private: Optional[List[EntityT]] = None
    public_upserts: Dict[int, EntityT] = field(default_factory=dict)
    public_deletes: Set[int] = field(default_factory=set)
    deleted_ids: Set[int] = field(default_factory=set)
    owned_before: Dict[int, EntityT] = field(default_factory=dict)
    owned_after: Dict[int, EntityT] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.private is None and not self.public_upserts and not self.public_deletes


@dataclass
class SyncPlan:
    """Every write needed to move a user from the stored to the submitted state."""

    looks: Optional[PartitionDelta] = None
    lookboards: Optional[PartitionDelta] = None
    index_upserts: Dict[str, Lookboard] = field(default_factory=dict)
    index_deletes: Set[str] = field(default_factory=set)
    deleted_public_ids: Set[str] = field(default_factory=set)
    instance_ids_to_delete: Set[str] = field(default_factory=set)
    overrides: Optional[Dict[str, LookOverride]] = None

    @property
    def is_empty(self) -> bool:
        return (
            (self.looks is None or self.looks.is_empty)
            and (self.lookboards is None or self.lookboards.is_empty)
            and not self.index_upserts
            and not self.index_deletes
            and not self.deleted_public_ids
            and self.overrides is None
        )

    def summary(self) -> Dict[str, int]:
        looks = self.looks or PartitionDelta()
        boards = self.lookboards or PartitionDelta()
        return {
            "looksUpserted": len(looks.public_upserts),
            "looksUnpublished": len(looks.public_deletes),
            "looksDeleted": len(looks.deleted_ids),
            "lookboardsUpserted": len(boards.public_upserts),
            "lookboardsUnpublished": len(boards.public_deletes),
            "lookboardsDeleted": len(boards.deleted_ids),
            "indexUpserted": len(self.index_upserts),
            "indexDeleted": len(self.index_deletes),
            "instancesDeleted": len(self.instance_ids_to_delete),
        }


@dataclass
class SyncResult:
    plan: SyncPlan
    version: int
    committed: bool


def _same(stored: Optional[EntityT], submitted: EntityT) -> bool:
    return stored is not None and stored.to_store() == submitted.to_store()


def owned_items(
    stored_private: Sequence[EntityT],
    public_map: Dict[int, EntityT],
    email: str,
) -> Dict[int, EntityT]:
    """
    All entities of one type owned by `email`, across both partitions.

    Public copies come first; a private copy of the same id replaces it.
    """
    owned = {item_id: item for item_id, item in public_map.items() if owner_of(item) == email}
    for item in stored_private:
        owned[item.id] = item
    return owned


def claim(items: Sequence[EntityT], email: str) -> Tuple[Dict[int, EntityT], List[EntityT]]:
    """
    Split submitted entities into those owned by `email` and foreign ones.

    Entities without a creator are stamped as created by `email`. When the
    same id is submitted twice, the later entry wins.
    """
    owned: Dict[int, EntityT] = {}
    foreign: List[EntityT] = []
    for item in items:
        owner = owner_of(item)
        if owner is None:
            item = item.model_copy(update={"created_by": email})
            owner = email
        if owner == email:
            owned[item.id] = item
        else:
            foreign.append(item)
    return owned, foreign


def diff_partition(
    email: str,
    stored_private: Sequence[EntityT],
    public_map: Dict[int, EntityT],
    submitted: Sequence[EntityT],
    pass_through: bool = False,
) -> PartitionDelta:
    """
    Compute the partition delta for one entity type.

    Args:
        email: Normalized owner
        stored_private: Current private collection of the owner
        public_map: Current global public hash (all creators)
        submitted: Desired state sent by the client
        pass_through: Fold public entities of other creators that arrived in
            the payload into the public hash update

    Returns:
        PartitionDelta with the new private collection (if changed), public
        hash upserts/deletes and the ids the user deleted
    """
    old_public = {item_id: item for item_id, item in public_map.items() if owner_of(item) == email}
    owned_before = owned_items(stored_private, public_map, email)

    owned_after, foreign = claim(submitted, email)
    new_private = [item for item in owned_after.values() if item.visibility != "public"]
    new_public = {item_id: item for item_id, item in owned_after.items() if item.visibility == "public"}

    upserts = {item_id: item for item_id, item in new_public.items() if not _same(public_map.get(item_id), item)}

    if pass_through:
        for item in foreign:
            if item.visibility != "public" or item.id in owned_after:
                continue
            current = public_map.get(item.id)
            # Only refresh copies that are still published by the same creator
            if current is None or owner_of(current) != owner_of(item):
                continue
            if not _same(current, item):
                upserts[item.id] = item

    # Previously public and now deleted or made private
    public_deletes = set(old_public) - set(new_public)
    deleted_ids = set(owned_before) - set(owned_after)

    private_changed = [item.to_store() for item in new_private] != [item.to_store() for item in stored_private]

    return PartitionDelta(
        private=new_private if private_changed else None,
        public_upserts=upserts,
        public_deletes=public_deletes,
        deleted_ids=deleted_ids,
        owned_before=owned_before,
        owned_after=owned_after,
    )


def check_public_ids_free(
    email: str,
    delta: PartitionDelta,
    public_map: Dict[int, EntityT],
    kind: str,
) -> None:
    """
    Refuse to publish an owned entity over another creator's public entry.

    Raises:
        ValidationException: If the public hash already holds the id for someone else
    """
    for item_id in delta.public_upserts:
        if item_id not in delta.owned_after:
            continue
        current = public_map.get(item_id)
        if current is not None and owner_of(current) != email:
            raise ValidationException(f"{kind} id {item_id} is already in use.")


def diff_board_index(boards: PartitionDelta) -> Tuple[Dict[str, Lookboard], Set[str], Set[str]]:
    """
    publicId index changes implied by a lookboard delta.

    Returns:
        (index upserts by publicId, publicIds to drop from the index,
         publicIds of deleted boards)

    Raises:
        ValidationException: If a board's publicId changed or two boards share one
    """
    before: Dict[int, Lookboard] = boards.owned_before
    after: Dict[int, Lookboard] = boards.owned_after

    for board_id, board in after.items():
        previous = before.get(board_id)
        if previous is not None and previous.public_id != board.public_id:
            raise ValidationException(f"The publicId of lookboard {board_id} cannot be changed.")

    after_public_ids = [board.public_id for board in after.values()]
    if len(after_public_ids) != len(set(after_public_ids)):
        raise ValidationException("Each lookboard must have a unique publicId.")

    upserts = {
        board.public_id: board
        for board_id, board in after.items()
        if not _same(before.get(board_id), board)
    }
    deletes = {board.public_id for board in before.values()} - set(after_public_ids)
    deleted_public_ids = {before[board_id].public_id for board_id in boards.deleted_ids}
    return upserts, deletes, deleted_public_ids


def plan_sync(
    email: str,
    state: UserState,
    looks: Optional[Sequence[Look]] = None,
    lookboards: Optional[Sequence[Lookboard]] = None,
    overrides: Optional[Dict[str, LookOverride]] = None,
) -> SyncPlan:
    """
    Pure delta computation. A None argument leaves that part untouched.
    """
    plan = SyncPlan()

    if looks is not None:
        plan.looks = diff_partition(
            email, state.private_looks, state.public_looks, looks, pass_through=True
        )

    if lookboards is not None:
        plan.lookboards = diff_partition(
            email, state.private_lookboards, state.public_lookboards, lookboards
        )
        plan.index_upserts, plan.index_deletes, plan.deleted_public_ids = diff_board_index(plan.lookboards)

    if overrides is not None:
        submitted = {str(look_id): value.to_store() for look_id, value in overrides.items()}
        stored = {look_id: value.to_store() for look_id, value in state.overrides.items()}
        if submitted != stored:
            plan.overrides = {str(look_id): value for look_id, value in overrides.items()}

    return plan


def apply_plan(email: str, plan: SyncPlan, batch: RepositoryBatch) -> RepositoryBatch:
    """Record the plan's writes into a repository batch."""
    if plan.looks is not None:
        if plan.looks.private is not None:
            batch.replace_private_looks(email, plan.looks.private)
        batch.upsert_public_looks(plan.looks.public_upserts.values())
        batch.delete_public_looks(plan.looks.public_deletes)

    if plan.lookboards is not None:
        if plan.lookboards.private is not None:
            batch.replace_private_lookboards(email, plan.lookboards.private)
        batch.upsert_public_lookboards(plan.lookboards.public_upserts.values())
        batch.delete_public_lookboards(plan.lookboards.public_deletes)

    batch.delete_board_index(plan.index_deletes)
    batch.upsert_board_index(plan.index_upserts.values())

    # Cascade: a deleted board must not leave resolvable share links behind
    batch.delete_instances(plan.instance_ids_to_delete)
    batch.delete_instance_sets(plan.deleted_public_ids)

    if plan.overrides is not None:
        batch.set_overrides(email, plan.overrides)
    return batch


class SyncEngine:
    """Reads, diffs and atomically commits a user's submitted state."""

    def __init__(self, repository: LookRepository):
        self.repository = repository

    async def commit(
        self,
        email: str,
        looks: Optional[Sequence[Look]] = None,
        lookboards: Optional[Sequence[Lookboard]] = None,
        overrides: Optional[Dict[str, LookOverride]] = None,
        expected_version: Optional[int] = None,
    ) -> SyncResult:
        """
        Bring the stored state of `email` to the submitted state.

        Args:
            email: Owner of the submitted entities
            looks: Complete desired list of the user's looks (None: untouched)
            lookboards: Complete desired list of the user's boards (None: untouched)
            overrides: Complete desired overrides map (None: untouched)
            expected_version: Data version the client based its edits on

        Returns:
            SyncResult with the applied plan and the resulting data version

        Raises:
            VersionConflictException: If the stored data changed since `expected_version`
            ValidationException: If a publicId is changed, duplicated or taken
            StoreException: If a read or the commit fails (nothing is written
                when a read fails)
        """
        email = normalize_email(email)
        state = await self.repository.load_user_state(email)

        if expected_version is not None and expected_version != state.version:
            raise VersionConflictException()

        plan = plan_sync(email, state, looks, lookboards, overrides)

        if plan.looks is not None:
            check_public_ids_free(email, plan.looks, state.public_looks, "Look")
        if plan.lookboards is not None:
            check_public_ids_free(email, plan.lookboards, state.public_lookboards, "Lookboard")
            await self._check_new_public_ids(email, plan.lookboards)

        if plan.deleted_public_ids:
            instance_sets = await self.repository.get_instance_ids_for_boards(plan.deleted_public_ids)
            plan.instance_ids_to_delete = {
                instance_id for instance_ids in instance_sets.values() for instance_id in instance_ids
            }

        if plan.is_empty:
            logger.info(f"No changes to commit for {email} (version {state.version})")
            return SyncResult(plan=plan, version=state.version, committed=False)

        # Narrow the read-then-write window: refuse if another commit landed meanwhile
        if await self.repository.get_version(email) != state.version:
            raise VersionConflictException()

        batch = apply_plan(email, plan, self.repository.batch())
        batch.bump_version(email)
        results = await batch.execute()
        version = int(results[-1])

        logger.info(f"Committed data for {email} at version {version}: {plan.summary()}")
        return SyncResult(plan=plan, version=version, committed=True)

    async def _check_new_public_ids(self, email: str, boards: PartitionDelta) -> None:
        new_boards = {
            board.public_id: board
            for board_id, board in boards.owned_after.items()
            if board_id not in boards.owned_before
        }
        if not new_boards:
            return
        existing = await self.repository.get_boards_by_public_ids(new_boards)
        for public_id, indexed in existing.items():
            board = new_boards[public_id]
            if indexed.id != board.id or owner_of(indexed) != email:
                raise ValidationException(f"The publicId '{public_id}' is already in use.")

    async def snapshot(self, email: str) -> Dict[str, Any]:
        """
        Everything the client needs to edit: all public looks and boards
        with the user's private copies layered on top, the user's overrides
        and the data version to send back on commit.
        """
        email = normalize_email(email)
        state = await self.repository.load_user_state(email)

        looks: Dict[int, Look] = dict(state.public_looks)
        for look in state.private_looks:
            looks[look.id] = look
        lookboards: Dict[int, Lookboard] = dict(state.public_lookboards)
        for board in state.private_lookboards:
            lookboards[board.id] = board

        return {
            "looks": list(looks.values()),
            "lookboards": list(lookboards.values()),
            "overrides": state.overrides,
            "version": state.version,
        }
