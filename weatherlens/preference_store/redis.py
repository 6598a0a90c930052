"""Redis-backed preference store."""

from typing import Optional

from weatherlens.preference_store.base import PreferenceStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="preference_store/redis")


class RedisPreferenceStore(PreferenceStore):
    """Stores each preference key as a plain Redis string under `prefix`."""

    def __init__(self, client, prefix: str = "weatherlens:") -> None:
        """Initialize with a redis-py client (or anything with get/set/delete)."""
        logger.debug("Initializing RedisPreferenceStore")
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[str]:
        """Return the stored value; read errors count as absent."""
        try:
            raw = self.client.get(self._key(key))
        except Exception as exc:
            logger.error("Failed to read preference from Redis: %s", exc)
            return None
        if raw is None:
            return None
        if isinstance(raw, bytes):
            try:
                return raw.decode("utf-8")
            except UnicodeDecodeError as exc:
                logger.error("Preference value is not UTF-8: %s", exc)
                return None
        return str(raw)

    def set(self, key: str, value: str) -> None:
        self.client.set(self._key(key), value.encode("utf-8"))

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except Exception as exc:
            logger.error("Failed to delete preference from Redis: %s", exc)

