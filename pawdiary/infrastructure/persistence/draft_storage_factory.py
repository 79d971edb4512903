"""Factory for creating draft storage adapters.

Uses the DRAFT_STORAGE_BACKEND setting to pick the adapter, following the
same pattern as the other repository factories.
"""

from pawdiary.config import STORAGE_BACKENDS, Settings
from pawdiary.domain.draft.ports import IDraftStorage


def create_draft_storage(settings: Settings) -> IDraftStorage:
    """Create draft storage based on settings.draft_storage_backend.

    - inmemory: InMemoryDraftStorage (lost on restart)
    - file: JsonFileDraftStorage at settings.draft_storage_path

    Returns:
        IDraftStorage: A new storage adapter. The application context owns
        it; there is no module-level instance.

    Raises:
        ValueError: If the backend has an unsupported value
    """
    mode = settings.draft_storage_backend.lower()

    if mode == "inmemory":
        from pawdiary.infrastructure.persistence.in_memory.draft_storage import (
            InMemoryDraftStorage,
        )

        return InMemoryDraftStorage()

    if mode == "file":
        from pawdiary.infrastructure.persistence.json_file.draft_storage import (
            JsonFileDraftStorage,
        )

        return JsonFileDraftStorage(settings.draft_storage_path)

    raise ValueError(
        f"Unknown DRAFT_STORAGE_BACKEND value: '{mode}'. "
        f"Supported values: {', '.join(STORAGE_BACKENDS)}"
    )


__all__ = [
    "create_draft_storage",
]
