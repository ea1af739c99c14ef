"""
Pivot Pool - Snapshot Stores

Keyed persistence for pool snapshots. The engine only defines the record
shape (PivotPool.to_record); a store keeps one record per session key.

Backends:
  - MemoryPoolStore:   process-local dict (tests, single worker)
  - JsonFilePoolStore: one JSON document on disk, rewritten atomically

Both backends expire sessions like a PHP session GC: a record not loaded
or saved for max_age seconds is gone, and once more than max_sessions
records exist the least recently seen are evicted on save.
"""

import json
import logging
import os
import tempfile
import threading
import time
from typing import Callable, Dict, List, Optional

log = logging.getLogger(__name__)

STORE_VERSION = "1.0"

SESSION_MAX_AGE = 24 * 3600     # seconds, 0 disables expiry
MAX_SESSIONS = 10000            # 0 disables the cap


def stale_keys(last_seen: Dict[str, float], now: float,
               max_age: float, max_sessions: int) -> List[str]:
    """Keys past max_age, then the least recently seen beyond max_sessions."""
    stale = [k for k, ts in last_seen.items() if max_age and now - ts > max_age]
    if max_sessions:
        live = sorted((k for k in last_seen if k not in stale), key=lambda k: last_seen[k])
        stale.extend(live[:max(0, len(live) - max_sessions)])
    return stale


class PoolStore:
    """Keyed snapshot store interface."""

    def load(self, key: str) -> Optional[dict]:
        """Return the stored record for key, or None."""
        raise NotImplementedError

    def save(self, key: str, record: dict):
        """Replace the record stored for key."""
        raise NotImplementedError

    def delete(self, key: str) -> bool:
        """Drop the record for key. Returns True if one existed."""
        raise NotImplementedError


class MemoryPoolStore(PoolStore):

    def __init__(self, max_age: float = SESSION_MAX_AGE, max_sessions: int = MAX_SESSIONS,
                 clock: Callable[[], float] = time.time):
        self.max_age = max_age
        self.max_sessions = max_sessions
        self._clock = clock
        self._records: Dict[str, str] = {}
        self._last_seen: Dict[str, float] = {}

    def load(self, key: str) -> Optional[dict]:
        raw = self._records.get(key)
        if raw is None:
            return None
        now = self._clock()
        if self.max_age and now - self._last_seen[key] > self.max_age:
            return None
        self._last_seen[key] = now
        # Stored as JSON text so callers never share mutable state
        return json.loads(raw)

    def save(self, key: str, record: dict):
        now = self._clock()
        self._records[key] = json.dumps(record)
        self._last_seen[key] = now
        for stale in stale_keys(self._last_seen, now, self.max_age, self.max_sessions):
            del self._records[stale]
            del self._last_seen[stale]

    def delete(self, key: str) -> bool:
        self._last_seen.pop(key, None)
        return self._records.pop(key, None) is not None

    def __len__(self) -> int:
        return len(self._records)


class JsonFilePoolStore(PoolStore):
    """
    All sessions in one JSON file:

        {"version": "1.0", "updated_ts": 1700000000,
         "sessions": {key: record}, "last_seen": {key: ts}}

    An unreadable file is logged and treated as empty; the next save
    replaces it. The in-memory view only changes once the file write
    succeeded.
    """

    def __init__(self, path: str, max_age: float = SESSION_MAX_AGE,
                 max_sessions: int = MAX_SESSIONS, clock: Callable[[], float] = time.time):
        self.path = path
        self.max_age = max_age
        self.max_sessions = max_sessions
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, dict] = {}
        self._last_seen: Dict[str, float] = {}
        self._load_file()

    def _load_file(self):
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
            sessions = dict(data.get("sessions", {}))
            seen = data.get("last_seen", {})
        except (OSError, ValueError, AttributeError) as e:
            log.warning(f"Failed to load pool store {self.path}: {e}")
            return
        now = self._clock()
        self._sessions = sessions
        # Files written before last_seen existed count as seen now
        self._last_seen = {k: float(seen.get(k, now)) for k in sessions}
        log.info(f"Loaded {len(self._sessions)} pool session(s) from {self.path}")

    def _write_file(self, sessions: Dict[str, dict], last_seen: Dict[str, float]):
        data = {
            "version": STORE_VERSION,
            "updated_ts": int(time.time()),
            "sessions": sessions,
            "last_seen": last_seen,
        }
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(prefix=".pool-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            log.error(f"Failed to save pool store {self.path}: {e}")
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def load(self, key: str) -> Optional[dict]:
        with self._lock:
            record = self._sessions.get(key)
            if record is None:
                return None
            now = self._clock()
            if self.max_age and now - self._last_seen[key] > self.max_age:
                return None
            self._last_seen[key] = now
            return json.loads(json.dumps(record))

    def save(self, key: str, record: dict):
        with self._lock:
            now = self._clock()
            sessions = dict(self._sessions)
            last_seen = dict(self._last_seen)
            sessions[key] = json.loads(json.dumps(record))
            last_seen[key] = now
            for stale in stale_keys(last_seen, now, self.max_age, self.max_sessions):
                del sessions[stale]
                del last_seen[stale]
            self._write_file(sessions, last_seen)
            self._sessions, self._last_seen = sessions, last_seen

    def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._sessions:
                return False
            sessions = {k: v for k, v in self._sessions.items() if k != key}
            last_seen = {k: v for k, v in self._last_seen.items() if k != key}
            self._write_file(sessions, last_seen)
            self._sessions, self._last_seen = sessions, last_seen
            return True

    def __len__(self) -> int:
        return len(self._sessions)


def open_store(spec: str, max_age: float = SESSION_MAX_AGE,
               max_sessions: int = MAX_SESSIONS) -> PoolStore:
    """'memory' (or empty) for MemoryPoolStore, anything else is a JSON file path."""
    if not spec or spec == "memory":
        return MemoryPoolStore(max_age=max_age, max_sessions=max_sessions)
    return JsonFilePoolStore(os.path.expanduser(spec), max_age=max_age, max_sessions=max_sessions)
