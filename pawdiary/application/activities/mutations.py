"""Optimistic activity mutations.

Each create/update/delete runs the same protocol:

1. Begin: detach in-flight fetches and snapshot every key it will touch
2. Optimistic apply: write the expected post-mutation state (one batch)
3. Remote call through the retry policy
4. Success: overwrite optimistic state with the server result
5. Failure: restore the snapshot, then re-raise
6. Settle (always): invalidate the pet's list key and the detail key

At any instant listeners see the pre-mutation, optimistic or confirmed
state, never a mixture. Two overlapping mutations on the same entity are
not reconciled: the second one's snapshot holds the first one's
optimistic state, and rolling it back restores that.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Union

import structlog

from pawdiary.domain.activity.models import (
    Activity,
    ActivityData,
    ActivityInput,
    ActivityUpdate,
    ConfirmedId,
    TemporaryId,
)
from pawdiary.domain.activity.ports import IActivityService
from pawdiary.domain.shared.errors import CacheError
from pawdiary.infrastructure.cache.keys import ActivityKeys, CacheKey
from pawdiary.infrastructure.cache.query_cache import CacheSnapshot, QueryCache
from pawdiary.infrastructure.retry import RetryPolicy

logger = structlog.get_logger(__name__)

PROVISIONAL_TITLE = "Saving..."


class MutationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class MutationContext:
    """
    State captured when a mutation begins.

    Attributes:
        kind: Mutation type
        pet_id: Owning pet (scopes the list key)
        snapshot: Cache entries as they were before the optimistic apply
        temp_id: Temporary id of the optimistic entity (create only)
        activity_id: Target server id (update/delete only)
    """

    kind: MutationKind
    pet_id: int
    snapshot: CacheSnapshot
    temp_id: Optional[TemporaryId] = None
    activity_id: Optional[int] = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _same_ref(activity: Activity, ref: Union[TemporaryId, ConfirmedId]) -> bool:
    return activity.id == ref


class OptimisticMutationCoordinator:
    """
    Runs activity mutations against the remote store with optimistic
    cache updates, rollback on failure and a final settle.

    Example:
        >>> coordinator = OptimisticMutationCoordinator(cache, service, RetryPolicy())
        >>> activity = await coordinator.create_activity(
        ...     7, ActivityInput(pet_id=7, category="diet", title="Breakfast")
        ... )
        >>> activity.server_id
        1
    """

    def __init__(
        self,
        cache: QueryCache,
        service: IActivityService,
        retry: Optional[RetryPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Initialize coordinator.

        Args:
            cache: Shared query cache
            service: Remote activity store
            retry: Retry policy for remote calls (defaults: 3 attempts, 1s, x1.5)
            clock: Returns current UTC time for provisional timestamps
        """
        self._cache = cache
        self._service = service
        self._retry = retry or RetryPolicy()
        self._clock = clock or _utc_now

    # ===== Protocol steps shared by all mutations =====

    def _begin(
        self,
        kind: MutationKind,
        pet_id: int,
        keys: List[CacheKey],
        temp_id: Optional[TemporaryId] = None,
        activity_id: Optional[int] = None,
    ) -> MutationContext:
        for key in keys:
            self._cache.cancel(key, exact=True)
        context = MutationContext(
            kind=kind,
            pet_id=pet_id,
            snapshot=self._cache.snapshot(keys),
            temp_id=temp_id,
            activity_id=activity_id,
        )
        logger.debug(
            "Mutation started",
            kind=kind.value,
            pet_id=pet_id,
            activity_id=activity_id,
            temp_id=str(temp_id) if temp_id else None,
        )
        return context

    def _rollback(self, context: MutationContext, error: Exception) -> None:
        self._cache.restore(context.snapshot)
        logger.warning(
            "Mutation failed, optimistic changes rolled back",
            kind=context.kind.value,
            pet_id=context.pet_id,
            activity_id=context.activity_id,
            restored_keys=[str(k) for k in context.snapshot.entries],
            error=repr(error),
        )

    def _settle(self, pet_id: int, detail_id: Optional[int]) -> None:
        with self._cache.batch():
            self._cache.invalidate(ActivityKeys.list(pet_id))
            if detail_id is not None:
                self._cache.invalidate(ActivityKeys.detail(detail_id))

    # ===== Create =====

    def _provisional(self, pet_id: int, data: ActivityInput, temp_id: TemporaryId) -> Activity:
        now = self._clock()
        return Activity(
            id=temp_id,
            pet_id=pet_id,
            category=data.category,
            subcategory=data.subcategory,
            title=data.title or PROVISIONAL_TITLE,
            description=data.description,
            activity_date=data.activity_date or now,
            activity_data=ActivityData(
                template_id=data.template_id,
                blocks=dict(data.blocks),
                mode=data.mode,
            ),
            created_at=now,
            updated_at=now,
        )

    def _swap_in_confirmed(self, pet_id: int, temp_id: TemporaryId, confirmed: Activity) -> None:
        """Replace the temporary entity by the server one everywhere."""
        list_key = ActivityKeys.list(pet_id)
        with self._cache.batch():
            current = self._cache.get_data(list_key)
            if current is not None:
                replaced = False
                activities = []
                for activity in current:
                    if _same_ref(activity, temp_id):
                        activities.append(confirmed)
                        replaced = True
                    elif _same_ref(activity, confirmed.id):
                        continue
                    else:
                        activities.append(activity)
                if not replaced:
                    activities.insert(0, confirmed)
                self._cache.set_data(list_key, activities)

            self._cache.remove(ActivityKeys.detail(temp_id), exact=True)
            self._cache.set_data(ActivityKeys.detail(confirmed.id), confirmed)

    async def create_activity(
        self, pet_id: int, data: Union[ActivityInput, Mapping[str, Any]]
    ) -> Activity:
        """
        Create an activity optimistically.

        A provisional entity with a TemporaryId is prepended to the pet's
        cached list (if that list is cached) and stored under its own
        detail key until the server answers.

        Args:
            pet_id: Owning pet
            data: Create payload (pet_id is forced to `pet_id`)

        Returns:
            The server-confirmed Activity

        Raises:
            Exception: The remote error, after rollback and settle
        """
        if isinstance(data, ActivityInput):
            data = data.model_copy(update={"pet_id": pet_id})
        else:
            data = ActivityInput.model_validate({**data, "pet_id": pet_id})

        temp_id = TemporaryId.generate()
        list_key = ActivityKeys.list(pet_id)
        temp_detail_key = ActivityKeys.detail(temp_id)
        context = self._begin(
            MutationKind.CREATE, pet_id, [list_key, temp_detail_key], temp_id=temp_id
        )

        provisional = self._provisional(pet_id, data, temp_id)
        with self._cache.batch():
            current = self._cache.get_data(list_key)
            if current is not None:
                self._cache.set_data(list_key, [provisional, *current])
            self._cache.set_data(temp_detail_key, provisional)

        confirmed_id: Optional[int] = None
        try:
            created = await self._retry.call(self._service.create_activity, data)
            if not isinstance(created.id, ConfirmedId):
                raise CacheError(
                    f"Remote store returned an unconfirmed activity id: {created.id!r}"
                )
        except Exception as e:
            self._rollback(context, e)
            raise
        else:
            self._swap_in_confirmed(pet_id, temp_id, created)
            confirmed_id = created.server_id
            logger.info(
                "Activity created",
                pet_id=pet_id,
                activity_id=confirmed_id,
                temp_id=str(temp_id),
            )
        finally:
            self._settle(pet_id, confirmed_id)

        return created

    # ===== Update =====

    async def update_activity(
        self,
        activity_id: int,
        pet_id: int,
        data: Union[ActivityUpdate, Mapping[str, Any]],
    ) -> Activity:
        """
        Update an activity optimistically.

        The cached detail entry and the matching list entry are patched
        with the set fields and a fresh updated_at.

        Returns:
            The server-confirmed Activity

        Raises:
            Exception: The remote error, after rollback and settle
        """
        if not isinstance(data, ActivityUpdate):
            data = ActivityUpdate.model_validate(data)

        ref = ConfirmedId(server_id=activity_id)
        list_key = ActivityKeys.list(pet_id)
        detail_key = ActivityKeys.detail(ref)
        context = self._begin(
            MutationKind.UPDATE, pet_id, [list_key, detail_key], activity_id=activity_id
        )

        updated_at = self._clock()
        with self._cache.batch():
            current_list = self._cache.get_data(list_key)
            if current_list is not None:
                self._cache.set_data(
                    list_key,
                    [
                        a.apply_update(data, updated_at) if _same_ref(a, ref) else a
                        for a in current_list
                    ],
                )
            current = self._cache.get_data(detail_key)
            if current is not None:
                self._cache.set_data(detail_key, current.apply_update(data, updated_at))

        try:
            updated = await self._retry.call(self._service.update_activity, activity_id, data)
        except Exception as e:
            self._rollback(context, e)
            raise
        else:
            with self._cache.batch():
                current_list = self._cache.get_data(list_key)
                if current_list is not None:
                    self._cache.set_data(
                        list_key,
                        [updated if _same_ref(a, ref) else a for a in current_list],
                    )
                self._cache.set_data(detail_key, updated)
            logger.info("Activity updated", pet_id=pet_id, activity_id=activity_id)
        finally:
            self._settle(pet_id, activity_id)

        return updated

    # ===== Delete =====

    async def delete_activity(self, activity_id: int, pet_id: int) -> int:
        """
        Delete an activity optimistically.

        The entity leaves the pet's cached list at once; its detail entry
        is dropped once the server confirms.

        Returns:
            The deleted activity id

        Raises:
            Exception: The remote error, after rollback and settle
        """
        ref = ConfirmedId(server_id=activity_id)
        list_key = ActivityKeys.list(pet_id)
        detail_key = ActivityKeys.detail(ref)
        context = self._begin(
            MutationKind.DELETE, pet_id, [list_key, detail_key], activity_id=activity_id
        )

        current_list = self._cache.get_data(list_key)
        if current_list is not None:
            self._cache.set_data(list_key, [a for a in current_list if not _same_ref(a, ref)])

        try:
            await self._retry.call(self._service.delete_activity, activity_id)
        except Exception as e:
            self._rollback(context, e)
            raise
        else:
            self._cache.remove(detail_key, exact=True)
            logger.info("Activity deleted", pet_id=pet_id, activity_id=activity_id)
        finally:
            self._settle(pet_id, activity_id)

        return activity_id
