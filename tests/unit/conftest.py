"""Unit test configuration.

Shared fixtures: a controllable UTC clock, in-memory draft storage and a
retry policy that records its waits instead of sleeping.
"""

from datetime import datetime, timedelta, timezone
from typing import List

import pytest
import structlog

from pawdiary.application.drafts.draft_store import DraftStore
from pawdiary.domain.activity.models import (
    Activity,
    ActivityCategory,
    ActivityData,
    ConfirmedId,
)
from pawdiary.infrastructure.persistence.in_memory.draft_storage import InMemoryDraftStorage
from pawdiary.infrastructure.retry import RetryPolicy

T0 = datetime(2025, 3, 1, 8, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo configure_logging() calls made by a test."""
    yield
    structlog.reset_defaults()


class FakeClock:
    """Callable UTC clock moved by hand."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingSleep:
    """Async sleep replacement that only records the requested waits."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_activity(server_id: int, pet_id: int = 7, title: str = "Walk", **overrides) -> Activity:
    data = {
        "id": ConfirmedId(server_id=server_id),
        "pet_id": pet_id,
        "category": ActivityCategory.LIFESTYLE,
        "title": title,
        "activity_date": T0,
        "activity_data": ActivityData(blocks={"duration": {"minutes": 30}}),
        "created_at": T0,
        "updated_at": T0,
    }
    data.update(overrides)
    return Activity(**data)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> InMemoryDraftStorage:
    return InMemoryDraftStorage()


@pytest.fixture
def store(storage: InMemoryDraftStorage, clock: FakeClock) -> DraftStore:
    """Draft store with the default retention bounds and a fake clock."""
    return DraftStore(storage, clock=clock)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_policy(recording_sleep: RecordingSleep) -> RetryPolicy:
    """Default 3 attempts / 1.0s / x1.5, without real waiting."""
    return RetryPolicy(sleep=recording_sleep)


@pytest.fixture
def activity_factory():
    """Build confirmed activities: activity_factory(server_id, pet_id=7, title="Walk", ...)."""
    return make_activity
