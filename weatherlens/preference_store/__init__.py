"""Key-value backends for persisted user preferences."""

from .base import PreferenceStore
from .file import FilePreferenceStore
from .memory import InMemoryPreferenceStore
from .redis import RedisPreferenceStore

__all__ = [
    "PreferenceStore",
    "FilePreferenceStore",
    "InMemoryPreferenceStore",
    "RedisPreferenceStore",
]
