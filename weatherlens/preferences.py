"""Search history and custom alert rules, persisted through a pluggable preference store."""
from __future__ import annotations

import asyncio
import json
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional

from pydantic import ValidationError

try:
    import redis  # type: ignore
except ImportError:  # pragma: no cover - optional dependency
    redis = None

from weatherlens.config import Settings, settings as default_settings
from weatherlens.domain import CustomAlertRule
from weatherlens.preference_store import (
    FilePreferenceStore,
    InMemoryPreferenceStore,
    PreferenceStore,
    RedisPreferenceStore,
)
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="preferences")

HISTORY_KEY = "weatherSearchHistory"
ALERTS_KEY = "customWeatherAlerts"


def build_preference_store(settings: Settings | None = None) -> PreferenceStore:
    """Instantiate the configured preference backend."""
    settings = settings or default_settings
    backend = (settings.preference_backend or "file").lower()

    if backend == "memory":
        logger.info("Using InMemoryPreferenceStore")
        return InMemoryPreferenceStore()

    if backend == "file":
        logger.info(f"Using FilePreferenceStore at {settings.preference_path}")
        return FilePreferenceStore(settings.preference_path)

    if backend == "redis":
        logger.debug(f"Initializing Redis preference store: redis_url='{settings.preference_redis_url or 'None'}', "
                     f"redis package present: {'yes' if redis else 'no'}")
        if settings.preference_redis_url and redis:
            try:
                client = redis.Redis.from_url(settings.preference_redis_url)
                client.ping()
                logger.info("Using RedisPreferenceStore")
                return RedisPreferenceStore(client, prefix=settings.preference_redis_prefix)
            except Exception as exc:
                logger.warning(f"Falling back to InMemoryPreferenceStore (Redis unavailable): {exc}")
        else:
            logger.warning("Redis preference backend requested without a usable URL/package; using memory")
        return InMemoryPreferenceStore()

    raise ValueError(f"Unknown preference backend '{backend}'")


class PreferenceManager:
    """
    Owns the user's search history and custom alert rules.

    Both collections are read once by `load()` and written back after every
    mutation. Outside an event loop the write happens inline, so sync callers
    on several threads land their writes in mutation order. Inside a running
    loop the write is handed to a single background thread so callers never
    wait on storage; queued writes keep their submission order. `flush()`
    waits for anything still queued.
    """

    def __init__(self, store: PreferenceStore, *, history_limit: int = 5) -> None:
        self.store = store
        self.history_limit = history_limit
        self._history: List[str] = []
        self._alerts: List[CustomAlertRule] = []
        self._last_alert_id = 0
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: set[Future] = set()

    # -- loading -----------------------------------------------------------

    def _read_json(self, key: str):
        try:
            raw = self.store.get(key)
        except Exception as exc:
            logger.warning(f"Failed to read stored preferences for {key}: {exc}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            logger.warning(f"Stored {key} is not valid JSON; starting empty: {exc}")
            return None

    def load(self) -> None:
        """Read history and alert rules; anything missing or corrupt loads as empty."""
        history: List[str] = []
        raw_history = self._read_json(HISTORY_KEY)
        if isinstance(raw_history, list):
            # Stored most-recent-first; the first copy of a name wins.
            seen = set()
            for item in raw_history:
                if not isinstance(item, str) or not item.strip():
                    continue
                key = item.strip().casefold()
                if key in seen:
                    continue
                seen.add(key)
                history.append(item.strip())
            history = history[: self.history_limit]
        elif raw_history is not None:
            logger.warning("Stored search history is not a list; starting empty")

        alerts: List[CustomAlertRule] = []
        raw_alerts = self._read_json(ALERTS_KEY)
        if isinstance(raw_alerts, list):
            seen_ids = set()
            for item in raw_alerts:
                try:
                    rule = CustomAlertRule.model_validate(item)
                except ValidationError as exc:
                    logger.warning(f"Skipping malformed stored alert rule: {exc}")
                    continue
                if rule.id in seen_ids:
                    continue
                seen_ids.add(rule.id)
                alerts.append(rule)
        elif raw_alerts is not None:
            logger.warning("Stored alert rules are not a list; starting empty")

        with self._lock:
            self._history = history
            self._alerts = alerts
            self._last_alert_id = max((rule.id for rule in alerts), default=0)
        logger.info(f"Loaded preferences: {len(history)} history entries, {len(alerts)} alert rules")

    # -- history -----------------------------------------------------------

    @property
    def history(self) -> List[str]:
        with self._lock:
            return list(self._history)

    def add_history(self, name: str) -> List[str]:
        """Move `name` to the front of the history, evicting past the limit."""
        cleaned = name.strip()
        if not cleaned:
            return self.history
        with self._write_lock:
            with self._lock:
                rest = [h for h in self._history if h.casefold() != cleaned.casefold()]
                self._history = [cleaned, *rest][: self.history_limit]
                snapshot = list(self._history)
            self._persist(HISTORY_KEY, json.dumps(snapshot, ensure_ascii=False))
        return snapshot

    def clear_history(self) -> None:
        """Forget every past search and drop the stored key."""
        with self._write_lock:
            with self._lock:
                self._history = []
            self._persist(HISTORY_KEY, None)
        logger.info("Cleared search history")

    # -- custom alert rules ------------------------------------------------

    @property
    def alerts(self) -> List[CustomAlertRule]:
        with self._lock:
            return list(self._alerts)

    def _next_alert_id(self) -> int:
        candidate = time.time_ns() // 1_000_000
        self._last_alert_id = max(candidate, self._last_alert_id + 1)
        return self._last_alert_id

    def _alerts_json(self) -> str:
        return json.dumps([rule.model_dump() for rule in self._alerts], ensure_ascii=False)

    def add_alert(self, temperature: float, condition: str) -> CustomAlertRule:
        """Create an active rule; ids increase in creation order."""
        keyword = (condition or "").strip().lower()
        if not keyword:
            raise ValueError("Alert condition must not be empty")
        with self._write_lock:
            with self._lock:
                rule = CustomAlertRule(
                    id=self._next_alert_id(),
                    temperature=float(temperature),
                    condition=keyword,
                    active=True,
                )
                self._alerts.append(rule)
                payload = self._alerts_json()
            self._persist(ALERTS_KEY, payload)
        logger.info(f"Added custom alert rule {rule.id}")
        return rule

    def remove_alert(self, rule_id: int) -> bool:
        """Delete a rule; returns False when no rule has that id."""
        with self._write_lock:
            with self._lock:
                remaining = [rule for rule in self._alerts if rule.id != rule_id]
                if len(remaining) == len(self._alerts):
                    return False
                self._alerts = remaining
                payload = self._alerts_json()
            self._persist(ALERTS_KEY, payload)
        logger.info(f"Removed custom alert rule {rule_id}")
        return True

    def set_alert_active(self, rule_id: int, active: bool) -> Optional[CustomAlertRule]:
        """Switch a rule on or off; returns the updated rule or None if missing."""
        with self._write_lock:
            with self._lock:
                for idx, rule in enumerate(self._alerts):
                    if rule.id == rule_id:
                        updated = rule.model_copy(update={"active": bool(active)})
                        self._alerts[idx] = updated
                        break
                else:
                    return None
                payload = self._alerts_json()
            self._persist(ALERTS_KEY, payload)
        return updated

    # -- persistence -------------------------------------------------------
    # Mutations hold _write_lock from snapshot until the write is done (or
    # queued), so the store always ends up with the newest snapshot.

    def _write(self, key: str, value: Optional[str]) -> None:
        try:
            if value is None:
                self.store.delete(key)
            else:
                self.store.set(key, value)
        except Exception as exc:
            logger.error(f"Failed to persist {key}: {exc}")

    def _persist(self, key: str, value: Optional[str]) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            if self._executor is None:
                self._write(key, value)
            else:
                # Queue behind earlier background writes, then wait.
                self._executor.submit(self._write, key, value).result()
            return
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="weatherlens-prefs")
        future = self._executor.submit(self._write, key, value)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    async def flush(self) -> None:
        """Wait until every queued write has reached the store."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            await asyncio.gather(*(asyncio.wrap_future(f) for f in pending))

    def close(self) -> None:
        """Finish queued writes and stop the writer thread."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
