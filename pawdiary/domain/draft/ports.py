"""
Draft storage port.

The draft store serializes the whole draft set into one payload; adapters
only move that payload to and from durable storage. Parsing (and recovery
from a corrupt payload) stays in the application layer.
"""

from typing import Optional, Protocol


class IDraftStorage(Protocol):
    """Port for durable draft payload storage.

    Implementations:
    - InMemoryDraftStorage: process-local, for tests and ephemeral sessions
    - JsonFileDraftStorage: one JSON file, atomically replaced on write
    """

    async def read(self) -> Optional[str]:
        """Read the stored payload.

        Returns:
            The payload, or None if nothing was ever written

        Raises:
            StorageError: If the underlying medium cannot be read
        """
        ...

    async def write(self, payload: str) -> None:
        """Replace the stored payload.

        Raises:
            StorageError: If the payload cannot be persisted
        """
        ...

    async def clear(self) -> None:
        """Remove the stored payload entirely."""
        ...
