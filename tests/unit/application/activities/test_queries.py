"""Unit tests for ActivityQueries."""

from unittest.mock import AsyncMock

import pytest

from pawdiary.application.activities.queries import ActivityQueries
from pawdiary.domain.activity.models import ConfirmedId, TemporaryId
from pawdiary.domain.shared.errors import ActivityNotFoundError, RemoteServiceError
from pawdiary.infrastructure.cache.keys import ActivityKeys
from pawdiary.infrastructure.cache.query_cache import QueryCache


@pytest.fixture
def cache() -> QueryCache:
    return QueryCache()


@pytest.fixture
def service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def queries(cache, service, retry_policy) -> ActivityQueries:
    return ActivityQueries(cache, service, retry_policy, stale_time=30.0)


class TestActivityQueries:
    """Test cached reads."""

    @pytest.mark.asyncio
    async def test_list_is_served_from_cache_while_fresh(
        self, queries, service, activity_factory
    ) -> None:
        activities = [activity_factory(1)]
        service.get_activities_for_pet.return_value = activities

        assert await queries.get_activities_for_pet(7) == activities
        assert await queries.get_activities_for_pet(7) == activities
        service.get_activities_for_pet.assert_awaited_once_with(7)

    @pytest.mark.asyncio
    async def test_invalidated_list_is_refetched(
        self, queries, cache, service, activity_factory
    ) -> None:
        service.get_activities_for_pet.side_effect = [
            [activity_factory(1)],
            [activity_factory(1), activity_factory(2)],
        ]

        await queries.get_activities_for_pet(7)
        cache.invalidate(ActivityKeys.list(7))

        assert len(await queries.get_activities_for_pet(7)) == 2

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(
        self, queries, service, activity_factory
    ) -> None:
        service.get_activity.side_effect = [RemoteServiceError("reset"), activity_factory(4)]

        activity = await queries.get_activity(4)

        assert activity.server_id == 4
        assert service.get_activity.await_count == 2

    @pytest.mark.asyncio
    async def test_get_activity_accepts_confirmed_ref(
        self, queries, service, activity_factory
    ) -> None:
        service.get_activity.return_value = activity_factory(4)

        await queries.get_activity(ConfirmedId(server_id=4))

        service.get_activity.assert_awaited_once_with(4)

    @pytest.mark.asyncio
    async def test_not_found_propagates(self, queries, service, cache) -> None:
        service.get_activity.side_effect = ActivityNotFoundError("Activity 4 not found")

        with pytest.raises(ActivityNotFoundError):
            await queries.get_activity(4)
        assert not cache.has(ActivityKeys.detail(4))

    @pytest.mark.asyncio
    async def test_temporary_activity_comes_from_cache_only(
        self, queries, cache, service, activity_factory
    ) -> None:
        temp = TemporaryId.generate()
        provisional = activity_factory(1).model_copy(update={"id": temp})
        cache.set_data(ActivityKeys.detail(temp), provisional)

        assert await queries.get_activity(temp) == provisional
        with pytest.raises(KeyError):
            await queries.get_activity(TemporaryId.generate())
        service.get_activity.assert_not_awaited()

    def test_subscriptions(self, queries, cache, activity_factory) -> None:
        list_events, detail_events = [], []
        unsubscribe = queries.subscribe_activities(7, list_events.append)
        queries.subscribe_activity(1, detail_events.append)

        cache.set_data(ActivityKeys.list(7), [])
        cache.set_data(ActivityKeys.detail(1), activity_factory(1))
        unsubscribe()
        cache.set_data(ActivityKeys.list(7), [])

        assert len(list_events) == 1
        assert len(detail_events) == 1
