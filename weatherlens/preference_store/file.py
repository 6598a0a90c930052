"""Preference store backed by a single JSON document on disk."""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional

from weatherlens.preference_store.base import PreferenceStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="preference_store/file")


class FilePreferenceStore(PreferenceStore):
    """
    Keeps every key in one JSON object at `path`.

    Writes go to a temp file in the same directory and are swapped in with
    os.replace, so a crash mid-write leaves the previous document intact.
    An unreadable document reads as empty.
    """

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        logger.debug(f"Initializing FilePreferenceStore at {self.path}")

    def _read_all(self) -> dict:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning(f"Failed to read preference file {self.path}: {exc}")
            return {}
        try:
            data = json.loads(raw)
        except ValueError as exc:
            logger.warning(f"Preference file {self.path} is not valid JSON; ignoring it: {exc}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Preference file {self.path} is not a JSON object; ignoring it")
            return {}
        return data

    def _write_all(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)
