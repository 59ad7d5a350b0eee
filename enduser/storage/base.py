"""Key-value store protocol.

Everything the bot remembers between runs (guards, journal, cached data)
goes through this interface, so tests can swap in an in-memory fake.
"""

from typing import Protocol


class KeyValueStore(Protocol):
    """String key-value store with optional per-key expiration."""

    async def get(self, key: str) -> str | None:
        """Get string value, None if missing or expired."""
        ...

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        """Set string value with optional expiration in seconds."""
        ...

    async def setnx(self, key: str, value: str, ex: int | None = None) -> bool:
        """Set only if the key does not exist.

        Returns:
            True if the key was created, False if it already existed
        """
        ...

    async def delete(self, *keys: str) -> int:
        """Delete keys, returning how many existed."""
        ...

    async def count_keys(self, pattern: str) -> int:
        """Count keys matching a glob pattern."""
        ...
