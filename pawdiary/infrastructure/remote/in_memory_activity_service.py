"""In-memory activity service implementation.

Provides an in-memory implementation of IActivityService port for testing
and offline development. Ids are assigned sequentially like a database
primary key.
"""

from copy import deepcopy
from datetime import datetime, timezone
from typing import Dict, List

from pawdiary.domain.activity.models import (
    Activity,
    ActivityData,
    ActivityInput,
    ActivityUpdate,
    ConfirmedId,
)
from pawdiary.domain.shared.errors import ActivityNotFoundError


class InMemoryActivityService:
    """
    In-memory implementation of IActivityService port.

    Thread safety: NOT thread-safe (single event loop only)
    Persistence: Data lost on process restart (in-memory only)

    Example:
        >>> service = InMemoryActivityService()
        >>> activity = await service.create_activity(
        ...     ActivityInput(pet_id=7, category="diet", title="Breakfast")
        ... )
        >>> activity.server_id
        1
    """

    def __init__(self) -> None:
        """Initialize service with empty storage."""
        self._storage: Dict[int, Activity] = {}
        self._next_id = 1

    async def create_activity(self, data: ActivityInput) -> Activity:
        now = datetime.now(timezone.utc)
        activity = Activity(
            id=ConfirmedId(server_id=self._next_id),
            pet_id=data.pet_id,
            category=data.category,
            subcategory=data.subcategory,
            title=data.title,
            description=data.description,
            activity_date=data.activity_date or now,
            activity_data=ActivityData(
                template_id=data.template_id,
                blocks=deepcopy(data.blocks),
                mode=data.mode,
            ),
            created_at=now,
            updated_at=now,
        )
        self._storage[self._next_id] = activity
        self._next_id += 1
        return deepcopy(activity)

    async def update_activity(self, activity_id: int, data: ActivityUpdate) -> Activity:
        existing = self._get(activity_id)
        updated = existing.apply_update(data, datetime.now(timezone.utc))
        self._storage[activity_id] = updated
        return deepcopy(updated)

    async def delete_activity(self, activity_id: int) -> None:
        self._get(activity_id)
        del self._storage[activity_id]

    async def get_activity(self, activity_id: int) -> Activity:
        return deepcopy(self._get(activity_id))

    async def get_activities_for_pet(self, pet_id: int) -> List[Activity]:
        activities = [a for a in self._storage.values() if a.pet_id == pet_id]
        activities.sort(key=lambda a: a.activity_date, reverse=True)
        return deepcopy(activities)

    def _get(self, activity_id: int) -> Activity:
        activity = self._storage.get(activity_id)
        if activity is None:
            raise ActivityNotFoundError(f"Activity {activity_id} not found")
        return activity

    # Test utilities

    def clear(self) -> None:
        """Clear all activities (for testing)."""
        self._storage.clear()
        self._next_id = 1

    def count(self) -> int:
        """Get total number of activities (for testing)."""
        return len(self._storage)
