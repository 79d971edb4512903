"""In-memory draft storage implementation.

Provides an in-memory implementation of IDraftStorage port for testing
and ephemeral sessions. Holds the serialized payload, so round-trips go
through the same encoding as the durable adapters.
"""

from typing import Optional


class InMemoryDraftStorage:
    """
    In-memory implementation of IDraftStorage port.

    Persistence: Data lost on process restart (in-memory only)

    Example:
        >>> storage = InMemoryDraftStorage()
        >>> await storage.write('{}')
        >>> await storage.read()
        '{}'
    """

    def __init__(self, payload: Optional[str] = None) -> None:
        """Initialize storage, optionally pre-seeded with a payload."""
        self._payload = payload
        self.write_count = 0

    async def read(self) -> Optional[str]:
        return self._payload

    async def write(self, payload: str) -> None:
        self._payload = payload
        self.write_count += 1

    async def clear(self) -> None:
        self._payload = None
