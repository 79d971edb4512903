"""Draft store.

Durable CRUD over activity drafts, scoped per pet, with bounded retention:

- at most `max_drafts_per_pet` drafts per pet (oldest by last_modified
  evicted on create)
- drafts untouched for longer than `expiry` are purged lazily whenever
  the store is touched (no background timer)

The draft store is a convenience layer, not the system of record: a
corrupt or unreadable payload is logged and read as an empty draft set.
Write failures propagate so callers know their edit was not persisted.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import structlog
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from pawdiary.domain.draft.comparison import has_unsaved_changes
from pawdiary.domain.draft.models import (
    Draft,
    DraftInput,
    DraftStats,
    DraftUpdate,
    generate_draft_id,
)
from pawdiary.domain.draft.ports import IDraftStorage
from pawdiary.domain.shared.errors import StorageError

logger = structlog.get_logger(__name__)

_DRAFTS_ADAPTER = TypeAdapter(Dict[str, Draft])

# Fields that cannot be cleared by an update
_NON_NULLABLE = frozenset({"category", "subcategory", "title", "timestamp", "blocks"})


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _newest_first(drafts: List[Draft], order: Dict[str, int]) -> List[Draft]:
    # Ties on last_modified are broken by insertion order (later = newer)
    return sorted(
        drafts,
        key=lambda d: (d.last_modified, order.get(d.id, 0)),
        reverse=True,
    )


class DraftStore:
    """
    Draft persistence service.

    Every public operation runs its load-modify-save cycle under one
    asyncio.Lock, so concurrent callers never interleave partial updates.

    Example:
        >>> store = DraftStore(InMemoryDraftStorage())
        >>> draft = await store.create_draft(
        ...     DraftInput(pet_id=7, category="diet", title="Breakfast")
        ... )
        >>> updated = await store.update_draft(draft.id, DraftUpdate(title="Morning Meal"))
        >>> updated.version
        2
    """

    def __init__(
        self,
        storage: IDraftStorage,
        max_drafts_per_pet: int = 5,
        expiry: timedelta = timedelta(days=7),
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            storage: Durable payload storage adapter
            max_drafts_per_pet: Retention bound per pet
            expiry: Age (from last_modified) after which drafts are purged
            clock: Returns the current UTC time (injectable for tests)
        """
        if max_drafts_per_pet < 1:
            raise ValueError(f"max_drafts_per_pet must be >= 1, got {max_drafts_per_pet}")

        self._storage = storage
        self.max_drafts_per_pet = max_drafts_per_pet
        self.expiry = expiry
        self._clock = clock or _utc_now
        self._lock = asyncio.Lock()

    # ===== Persistence helpers =====

    async def _load(self) -> Dict[str, Draft]:
        try:
            payload = await self._storage.read()
        except StorageError as e:
            logger.warning("Draft storage unreadable, treating as empty", error=str(e))
            return {}

        if not payload:
            return {}

        try:
            return dict(_DRAFTS_ADAPTER.validate_json(payload))
        except PydanticValidationError as e:
            logger.error(
                "Draft storage corrupted, resetting to empty draft set",
                error_count=e.error_count(),
                error=str(e).splitlines()[0],
            )
            return {}

    async def _save(self, drafts: Dict[str, Draft]) -> None:
        payload = _DRAFTS_ADAPTER.dump_json(drafts).decode("utf-8")
        await self._storage.write(payload)

    def _sweep_expired(self, drafts: Dict[str, Draft]) -> List[str]:
        now = self._clock()
        expired = [
            draft_id
            for draft_id, draft in drafts.items()
            if now - draft.last_modified > self.expiry
        ]
        for draft_id in expired:
            del drafts[draft_id]
        return expired

    async def _load_live(self, raise_on_write_error: bool) -> Dict[str, Draft]:
        """Load drafts and purge expired ones, persisting the purge."""
        drafts = await self._load()
        expired = self._sweep_expired(drafts)

        if expired:
            logger.info("Expired drafts purged", count=len(expired), draft_ids=expired)
            try:
                await self._save(drafts)
            except StorageError as e:
                if raise_on_write_error:
                    raise
                logger.warning("Could not persist expiry sweep", error=str(e))

        return drafts

    def _enforce_limit(self, drafts: Dict[str, Draft], pet_id: int) -> List[str]:
        order = {draft_id: i for i, draft_id in enumerate(drafts)}
        pet_drafts = _newest_first(
            [d for d in drafts.values() if d.pet_id == pet_id], order
        )

        evicted = [d.id for d in pet_drafts[self.max_drafts_per_pet:]]
        for draft_id in evicted:
            del drafts[draft_id]
        return evicted

    # ===== Public API =====

    async def create_draft(self, data: Union[DraftInput, Mapping[str, Any]]) -> Draft:
        """
        Create a draft with version 1.

        Args:
            data: DraftInput (or a mapping validated into one)

        Returns:
            The stored Draft

        Raises:
            StorageError: If the draft set cannot be written
        """
        if not isinstance(data, DraftInput):
            data = DraftInput.model_validate(data)

        async with self._lock:
            drafts = await self._load_live(raise_on_write_error=True)
            now = self._clock()

            draft_id = generate_draft_id()
            while draft_id in drafts:
                draft_id = generate_draft_id()

            draft = Draft(
                id=draft_id,
                pet_id=data.pet_id,
                category=data.category,
                subcategory=data.subcategory,
                title=data.title,
                timestamp=data.timestamp or now,
                blocks=dict(data.blocks),
                notes=data.notes,
                tags=list(data.tags) if data.tags is not None else None,
                created_at=now,
                last_modified=now,
                version=1,
            )
            drafts[draft.id] = draft

            evicted = self._enforce_limit(drafts, data.pet_id)
            await self._save(drafts)

        if evicted:
            logger.info(
                "Draft limit reached, evicted oldest drafts",
                pet_id=data.pet_id,
                evicted=evicted,
                max_drafts_per_pet=self.max_drafts_per_pet,
            )
        logger.debug("Draft created", draft_id=draft.id, pet_id=draft.pet_id)
        return draft

    async def update_draft(
        self, draft_id: str, update: Union[DraftUpdate, Mapping[str, Any]]
    ) -> Optional[Draft]:
        """
        Merge explicitly set fields into a draft.

        Sets last_modified to now (never earlier than the previous value)
        and increments version by one.

        Args:
            draft_id: Draft to update
            update: DraftUpdate (or a mapping validated into one); pet_id
                and unknown keys are ignored

        Returns:
            Updated Draft, or None if the draft does not exist (e.g. it
            expired or was discarded elsewhere)

        Raises:
            StorageError: If the draft set cannot be written
        """
        if not isinstance(update, DraftUpdate):
            update = DraftUpdate.model_validate(update)

        changes = {
            field: value
            for field, value in update.model_dump(exclude_unset=True).items()
            if not (value is None and field in _NON_NULLABLE)
        }

        async with self._lock:
            drafts = await self._load_live(raise_on_write_error=True)
            existing = drafts.get(draft_id)

            if existing is None:
                logger.debug("Draft not found for update", draft_id=draft_id)
                return None

            merged = existing.model_dump()
            merged.update(changes)
            merged["last_modified"] = max(self._clock(), existing.last_modified)
            merged["version"] = existing.version + 1

            updated = Draft.model_validate(merged)
            drafts[draft_id] = updated
            await self._save(drafts)

        logger.debug(
            "Draft updated",
            draft_id=draft_id,
            version=updated.version,
            fields=sorted(changes),
        )
        return updated

    async def get_draft(self, draft_id: str) -> Optional[Draft]:
        """Get a draft by id, or None (expired drafts read as absent)."""
        async with self._lock:
            drafts = await self._load_live(raise_on_write_error=False)
        return drafts.get(draft_id)

    async def get_drafts_for_pet(self, pet_id: int) -> List[Draft]:
        """
        Get all live drafts of a pet.

        Runs the expiry sweep first.

        Returns:
            Drafts sorted by last_modified, most recent first
        """
        async with self._lock:
            drafts = await self._load_live(raise_on_write_error=False)

        order = {draft_id: i for i, draft_id in enumerate(drafts)}
        return _newest_first([d for d in drafts.values() if d.pet_id == pet_id], order)

    async def delete_draft(self, draft_id: str) -> bool:
        """
        Delete a draft.

        Returns:
            True if the draft existed and was removed
        """
        async with self._lock:
            drafts = await self._load_live(raise_on_write_error=True)
            if draft_id not in drafts:
                return False

            del drafts[draft_id]
            await self._save(drafts)

        logger.debug("Draft deleted", draft_id=draft_id)
        return True

    async def delete_drafts_for_pet(self, pet_id: int) -> int:
        """
        Delete all drafts of a pet.

        Returns:
            Number of drafts removed
        """
        async with self._lock:
            drafts = await self._load_live(raise_on_write_error=True)
            to_remove = [d.id for d in drafts.values() if d.pet_id == pet_id]
            if not to_remove:
                return 0

            for draft_id in to_remove:
                del drafts[draft_id]
            await self._save(drafts)

        logger.info("Drafts deleted for pet", pet_id=pet_id, count=len(to_remove))
        return len(to_remove)

    @staticmethod
    def has_unsaved_changes(
        draft: Draft, reference: Union[BaseModel, Mapping[str, Any]]
    ) -> bool:
        """See pawdiary.domain.draft.comparison.has_unsaved_changes."""
        return has_unsaved_changes(draft, reference)

    async def get_stats(self) -> DraftStats:
        """Count drafts per pet and report the oldest/newest modification."""
        async with self._lock:
            drafts = await self._load_live(raise_on_write_error=False)

        by_pet: Dict[int, int] = {}
        for draft in drafts.values():
            by_pet[draft.pet_id] = by_pet.get(draft.pet_id, 0) + 1

        modified = sorted(d.last_modified for d in drafts.values())
        return DraftStats(
            total_drafts=len(drafts),
            drafts_by_pet=by_pet,
            oldest_draft=modified[0] if modified else None,
            newest_draft=modified[-1] if modified else None,
        )
