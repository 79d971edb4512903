"""Activity read API over the shared query cache."""

from typing import Callable, List, Optional, Union

import structlog

from pawdiary.domain.activity.models import Activity, ConfirmedId, TemporaryId
from pawdiary.domain.activity.ports import IActivityService
from pawdiary.infrastructure.cache.keys import ActivityKeys
from pawdiary.infrastructure.cache.query_cache import Listener, QueryCache
from pawdiary.infrastructure.retry import RetryPolicy

logger = structlog.get_logger(__name__)


class ActivityQueries:
    """
    Cached reads of activities.

    Fresh entries (younger than `stale_time` and not invalidated) are
    served from the cache; anything else is fetched through the retry
    policy and stored.

    Example:
        >>> queries = ActivityQueries(cache, service, stale_time=30.0)
        >>> activities = await queries.get_activities_for_pet(7)
    """

    def __init__(
        self,
        cache: QueryCache,
        service: IActivityService,
        retry: Optional[RetryPolicy] = None,
        stale_time: float = 30.0,
    ) -> None:
        self._cache = cache
        self._service = service
        self._retry = retry or RetryPolicy()
        self.stale_time = stale_time

    async def get_activities_for_pet(self, pet_id: int) -> List[Activity]:
        """Activities of one pet, in the order the remote store returns them."""

        async def fetch() -> List[Activity]:
            logger.debug("Fetching activities", pet_id=pet_id)
            return await self._retry.call(self._service.get_activities_for_pet, pet_id)

        return await self._cache.fetch(ActivityKeys.list(pet_id), fetch, self.stale_time)

    async def get_activity(self, activity_id: Union[int, TemporaryId, ConfirmedId]) -> Activity:
        """
        One activity by id.

        Temporary ids are only ever served from the cache; they are
        unknown to the remote store.

        Raises:
            ActivityNotFoundError: If the remote store has no such activity
            KeyError: For a temporary id with no cached entry
        """
        key = ActivityKeys.detail(activity_id)

        if isinstance(activity_id, TemporaryId):
            cached = self._cache.get_data(key)
            if cached is None:
                raise KeyError(f"No optimistic activity {activity_id}")
            return cached

        server_id = activity_id.server_id if isinstance(activity_id, ConfirmedId) else activity_id

        async def fetch() -> Activity:
            logger.debug("Fetching activity", activity_id=server_id)
            return await self._retry.call(self._service.get_activity, server_id)

        return await self._cache.fetch(key, fetch, self.stale_time)

    def subscribe_activities(self, pet_id: int, listener: Listener) -> Callable[[], None]:
        return self._cache.subscribe(ActivityKeys.list(pet_id), listener)

    def subscribe_activity(
        self, activity_id: Union[int, TemporaryId, ConfirmedId], listener: Listener
    ) -> Callable[[], None]:
        return self._cache.subscribe(ActivityKeys.detail(activity_id), listener)
