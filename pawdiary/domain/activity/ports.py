"""
Remote activity service port.

Contract of the remote persistence collaborator. Implementations raise
on any backend failure; the caller (the mutation coordinator) does not
distinguish transient from terminal failures.
"""

from typing import List, Protocol

from pawdiary.domain.activity.models import Activity, ActivityInput, ActivityUpdate


class IActivityService(Protocol):
    """Port for the remote activity store.

    Every returned Activity carries a ConfirmedId.
    """

    async def create_activity(self, data: ActivityInput) -> Activity:
        """Create an activity and return the stored record."""
        ...

    async def update_activity(self, activity_id: int, data: ActivityUpdate) -> Activity:
        """Apply a partial update and return the stored record.

        Raises:
            ActivityNotFoundError: If activity_id doesn't exist
        """
        ...

    async def delete_activity(self, activity_id: int) -> None:
        """Delete an activity.

        Raises:
            ActivityNotFoundError: If activity_id doesn't exist
        """
        ...

    async def get_activity(self, activity_id: int) -> Activity:
        """Fetch a single activity.

        Raises:
            ActivityNotFoundError: If activity_id doesn't exist
        """
        ...

    async def get_activities_for_pet(self, pet_id: int) -> List[Activity]:
        """Fetch all activities of a pet, newest activity_date first."""
        ...
