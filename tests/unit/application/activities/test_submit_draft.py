"""Unit tests for SubmitDraftCommand and handler."""

import pytest

from pawdiary.application.activities.commands.submit_draft import (
    SubmitDraftCommand,
    SubmitDraftCommandHandler,
)
from pawdiary.application.activities.mutations import OptimisticMutationCoordinator
from pawdiary.domain.activity.models import ActivityCategory, ActivityInput
from pawdiary.domain.draft.models import DraftInput
from pawdiary.domain.shared.errors import (
    DraftNotFoundError,
    RemoteServiceError,
    StorageError,
)
from pawdiary.infrastructure.cache.keys import ActivityKeys
from pawdiary.infrastructure.cache.query_cache import QueryCache
from pawdiary.infrastructure.remote.in_memory_activity_service import InMemoryActivityService


@pytest.fixture
def service() -> InMemoryActivityService:
    return InMemoryActivityService()


@pytest.fixture
def cache() -> QueryCache:
    return QueryCache()


@pytest.fixture
def handler(store, cache, service, retry_policy) -> SubmitDraftCommandHandler:
    coordinator = OptimisticMutationCoordinator(cache, service, retry_policy)
    return SubmitDraftCommandHandler(drafts=store, coordinator=coordinator)


@pytest.fixture
def draft_input() -> DraftInput:
    return DraftInput(
        pet_id=7,
        category=ActivityCategory.HEALTH,
        subcategory="Vaccination",
        title="Rabies shot",
        blocks={"vet": {"name": "Dr. Rossi"}},
        notes="No reaction",
    )


class TestSubmitDraftCommandHandler:
    """Test SubmitDraftCommandHandler."""

    @pytest.mark.asyncio
    async def test_submit_creates_activity_and_deletes_draft(
        self, handler, store, service, cache, draft_input
    ) -> None:
        draft = await store.create_draft(draft_input)

        activity = await handler.handle(SubmitDraftCommand(draft_id=draft.id))

        assert activity.server_id == 1
        assert activity.title == "Rabies shot"
        assert activity.subcategory == "Vaccination"
        assert activity.description == "No reaction"
        assert activity.activity_date == draft.timestamp
        assert activity.activity_data.blocks == {"vet": {"name": "Dr. Rossi"}}
        assert await store.get_draft(draft.id) is None
        assert cache.get_data(ActivityKeys.detail(1)) == activity

    @pytest.mark.asyncio
    async def test_submit_updates_existing_activity(
        self, handler, store, service, draft_input
    ) -> None:
        existing = await service.create_activity(
            ActivityInput(pet_id=7, category="health", title="Shot")
        )
        draft = await store.create_draft(draft_input)

        activity = await handler.handle(
            SubmitDraftCommand(draft_id=draft.id, activity_id=existing.server_id)
        )

        assert activity.server_id == existing.server_id
        assert activity.title == "Rabies shot"
        assert service.count() == 1

    @pytest.mark.asyncio
    async def test_missing_draft(self, handler) -> None:
        with pytest.raises(DraftNotFoundError):
            await handler.handle(SubmitDraftCommand(draft_id="draft-0-missing"))

    @pytest.mark.asyncio
    async def test_remote_failure_keeps_draft(
        self, handler, store, service, draft_input, monkeypatch
    ) -> None:
        async def unavailable(_data):
            raise RemoteServiceError("503")

        monkeypatch.setattr(service, "create_activity", unavailable)
        draft = await store.create_draft(draft_input)

        with pytest.raises(RemoteServiceError):
            await handler.handle(SubmitDraftCommand(draft_id=draft.id))

        assert await store.get_draft(draft.id) == draft

    @pytest.mark.asyncio
    async def test_draft_delete_failure_does_not_fail_submit(
        self, handler, store, service, draft_input, monkeypatch
    ) -> None:
        draft = await store.create_draft(draft_input)

        async def broken_delete(_draft_id):
            raise StorageError("read-only filesystem")

        monkeypatch.setattr(store, "delete_draft", broken_delete)

        activity = await handler.handle(SubmitDraftCommand(draft_id=draft.id))

        assert activity.server_id == 1
        assert service.count() == 1
