"""Shared protocol for preference storage backends."""

from typing import Optional, Protocol


class PreferenceStore(Protocol):
    """Durable string key-value store; values are JSON documents."""

    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""

    def set(self, key: str, value: str) -> None:
        """Store `value` under `key`, replacing any previous value."""

    def delete(self, key: str) -> None:
        """Remove a key without raising if it is absent."""
