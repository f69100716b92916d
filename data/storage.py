"""
Key-Value Storage

Browser-storage style persistence for the local fallback mode: string keys
mapping to string values (JSON documents). ``JsonFileStorage`` keeps every
key in one JSON file on disk; ``MemoryStorage`` is the in-process variant.

There is no locking: each call re-reads and rewrites the file, so two
processes sharing a file follow last-writer-wins.
"""

import json
import os
import tempfile
from typing import Dict, List, Optional, Protocol

from utils.logger import get_logger

logger = get_logger(__name__)


class KeyValueStorage(Protocol):
    """Protocol mirroring the browser's localStorage surface."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...

    def keys(self) -> List[str]:
        ...


class MemoryStorage:
    """In-process storage; contents vanish with the object."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items.keys())

    def clear(self) -> None:
        self._items.clear()


class JsonFileStorage:
    """Storage persisted as a single JSON object in a file."""

    def __init__(self, path: str):
        """
        Initialize the file storage.

        Args:
            path: Location of the JSON file; created on first write.
        """
        self.path = str(path)

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Could not read local storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed local storage file {self.path}")
            return {}
        return data

    def _write(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".storage-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = str(value)
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)

    def keys(self) -> List[str]:
        return list(self._read().keys())


def load_json(storage: KeyValueStorage, key: str, default=None):
    """
    Read and decode a JSON value from storage.

    Args:
        storage: The storage to read from.
        key: Storage key.
        default: Returned when the key is missing or holds invalid JSON.

    Returns:
        The decoded value, or ``default``.
    """
    raw = storage.get_item(key)
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning(f"Discarding invalid JSON stored under {key}")
        return default


def save_json(storage: KeyValueStorage, key: str, value) -> None:
    """Encode a value as JSON and store it."""
    storage.set_item(key, json.dumps(value, ensure_ascii=False))
