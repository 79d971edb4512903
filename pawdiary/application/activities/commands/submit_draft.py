"""Submit draft command and handler.

Commits a draft as an activity (create, or update when the draft edits an
existing activity) and removes the draft once the remote store accepted it.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from pawdiary.application.activities.mutations import OptimisticMutationCoordinator
from pawdiary.application.drafts.draft_store import DraftStore
from pawdiary.domain.activity.models import Activity, ActivityInput, ActivityUpdate
from pawdiary.domain.draft.models import Draft
from pawdiary.domain.shared.errors import DraftNotFoundError, StorageError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SubmitDraftCommand:
    """
    Command: Commit a draft to the remote store.

    Attributes:
        draft_id: Draft to submit
        activity_id: Existing activity the draft edits (None creates a new one)
    """

    draft_id: str
    activity_id: Optional[int] = None


def draft_to_input(draft: Draft) -> ActivityInput:
    return ActivityInput(
        pet_id=draft.pet_id,
        category=draft.category,
        subcategory=draft.subcategory,
        blocks=dict(draft.blocks),
        title=draft.title,
        description=draft.notes,
        activity_date=draft.timestamp,
    )


def draft_to_update(draft: Draft) -> ActivityUpdate:
    return ActivityUpdate(
        category=draft.category,
        subcategory=draft.subcategory,
        blocks=dict(draft.blocks),
        title=draft.title,
        description=draft.notes,
        activity_date=draft.timestamp,
    )


class SubmitDraftCommandHandler:
    """Handler for SubmitDraftCommand."""

    def __init__(
        self,
        drafts: DraftStore,
        coordinator: OptimisticMutationCoordinator,
    ) -> None:
        """
        Initialize handler.

        Args:
            drafts: Draft store holding the draft
            coordinator: Optimistic mutation coordinator for the remote write
        """
        self._drafts = drafts
        self._coordinator = coordinator

    async def handle(self, command: SubmitDraftCommand) -> Activity:
        """
        Execute submit command.

        Flow:
        1. Load draft
        2. Create or update the activity through the coordinator
        3. Delete the draft

        The draft survives a failed remote write so the user can retry.

        Returns:
            The server-confirmed Activity

        Raises:
            DraftNotFoundError: If the draft doesn't exist (or expired)
            Exception: The remote error, after the coordinator rolled back
        """
        draft = await self._drafts.get_draft(command.draft_id)
        if draft is None:
            raise DraftNotFoundError(f"Draft {command.draft_id} not found")

        logger.info(
            "Submitting draft",
            draft_id=draft.id,
            pet_id=draft.pet_id,
            activity_id=command.activity_id,
        )

        if command.activity_id is None:
            activity = await self._coordinator.create_activity(
                draft.pet_id, draft_to_input(draft)
            )
        else:
            activity = await self._coordinator.update_activity(
                command.activity_id, draft.pet_id, draft_to_update(draft)
            )

        try:
            await self._drafts.delete_draft(draft.id)
        except StorageError as e:
            # Activity is committed; a leftover draft expires on its own
            logger.warning(
                "Submitted draft could not be deleted",
                draft_id=draft.id,
                error=str(e),
            )

        logger.info("Draft submitted", draft_id=draft.id, activity_id=activity.server_id)
        return activity
