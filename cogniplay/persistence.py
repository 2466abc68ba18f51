"""
Session persistence.

Durable key-value byte storage plus the JSON codec for sessions.

Layout (JSONFileStore):
    <data_dir>/
        currentSession.json
        sessions.json

Design:
- Two logical keys: the current session and the full history
- Whole-value overwrite on every save (no append-only turn files)
- Corrupt or missing data loads as "absent", never as an exception
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from cogniplay.core.session import Session

logger = logging.getLogger(__name__)

CURRENT_SESSION_KEY = "currentSession"
SESSIONS_KEY = "sessions"


class StoredDataError(ValueError):
    """Stored bytes could not be decoded into sessions."""


# ========================
# Key-value stores
# ========================

class KeyValueStore:
    """
    Minimal durable byte store.

    Implementations: JSONFileStore (disk), InMemoryStore (tests, ephemeral).
    """

    def set(self, key: str, value: bytes) -> None:
        raise NotImplementedError

    def get(self, key: str) -> Optional[bytes]:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class InMemoryStore(KeyValueStore):
    """Dict-backed store. Survives a SessionManager restart, not a process restart."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return sorted(self._data)


class JSONFileStore(KeyValueStore):
    """
    One file per key under a base directory.

    Keys map to '<key>.json'. Reads of missing or unreadable files return
    None; removing a missing key is a no-op.
    """

    def __init__(self, base_dir: str | Path):
        """
        Initialize file store.

        Args:
            base_dir: Directory holding one file per key (created if needed)
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"JSONFileStore initialized: {self.base_dir}")

    def _path(self, key: str) -> Path:
        if not key or '/' in key or '\\' in key or key.startswith('.'):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.base_dir / f"{key}.json"

    def set(self, key: str, value: bytes) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(value)
        logger.debug(f"Wrote {len(value)} bytes to {path.name}")

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read {path}: {e}")
            return None

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
            logger.debug(f"Removed {path.name}")
        except FileNotFoundError:
            pass


# ========================
# Session codec
# ========================

def encode_session(session: Session) -> bytes:
    return json.dumps(session.to_json(), ensure_ascii=False, indent=2).encode('utf-8')


def encode_sessions(sessions: Sequence[Session]) -> bytes:
    return json.dumps([s.to_json() for s in sessions], ensure_ascii=False, indent=2).encode('utf-8')


def decode_session(raw: bytes) -> Session:
    """
    Raises:
        StoredDataError: If bytes are not a valid session record
    """
    try:
        return Session.from_json(json.loads(raw.decode('utf-8')))
    except (ValueError, RecursionError) as e:
        raise StoredDataError(f"Invalid session record: {e}") from e


def decode_sessions(raw: bytes) -> List[Session]:
    """
    Raises:
        StoredDataError: If bytes are not a valid list of session records
    """
    try:
        payload = json.loads(raw.decode('utf-8'))
        if not isinstance(payload, list):
            raise ValueError(f"expected list, got {type(payload).__name__}")
        return [Session.from_json(item) for item in payload]
    except (ValueError, RecursionError) as e:
        raise StoredDataError(f"Invalid session history: {e}") from e


class SessionPersistence:
    """
    Reads and writes session state through a KeyValueStore.

    Owns the two logical keys; knows nothing about locks or scoring.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    def save(self, current: Optional[Session], sessions: Sequence[Session]) -> None:
        """
        Write current session and history.

        The current session key is left untouched when current is None.

        Raises:
            OSError: If the underlying store fails to write
        """
        if current is not None:
            self.store.set(CURRENT_SESSION_KEY, encode_session(current))
        self.store.set(SESSIONS_KEY, encode_sessions(sessions))
        logger.debug(f"Saved {len(sessions)} session(s), current={current.id if current else None}")

    def load(self) -> Tuple[Optional[List[Session]], Optional[Session]]:
        """
        Read history and current session.

        Returns:
            (sessions, current): Either may be None when missing or corrupt
        """
        sessions = None
        raw = self.store.get(SESSIONS_KEY)
        if raw is not None:
            try:
                sessions = decode_sessions(raw)
            except StoredDataError as e:
                logger.warning(f"Ignoring stored session history: {e}")

        current = None
        raw = self.store.get(CURRENT_SESSION_KEY)
        if raw is not None:
            try:
                current = decode_session(raw)
            except StoredDataError as e:
                logger.warning(f"Ignoring stored current session: {e}")

        return sessions, current

    def clear(self) -> None:
        """
        Remove both keys from the store.

        Raises:
            OSError: If the underlying store fails to remove a key
        """
        self.store.remove(CURRENT_SESSION_KEY)
        self.store.remove(SESSIONS_KEY)
        logger.info("Cleared persisted session data")
