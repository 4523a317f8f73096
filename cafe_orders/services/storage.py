"""
Durable Client Storage

Key/value snapshot storage backed by JSON files. Each key is written as
a whole file under a file lock, the same way the workbook store guards
its sheets. Reads never raise for bad content: callers get ``None`` and
decide what an absent snapshot means.

Version: 1.0.0
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Optional, Protocol

from filelock import FileLock

from cafe_orders.core.config import get_settings

logger = logging.getLogger(__name__)


class CartStorage(Protocol):
    """What the cart ledger needs from durable storage."""

    def read(self, key: str) -> Optional[str]:
        ...

    def write(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class JsonFileStorage:
    """
    One JSON file per key inside ``directory``.

    Example:
        >>> storage = JsonFileStorage("data")
        >>> storage.write("carrinho", "[]")
        >>> storage.read("carrinho")
        '[]'
    """

    def __init__(self, directory: Optional[str] = None, lock_timeout: Optional[int] = None):
        settings = get_settings()
        self.directory = Path(directory or settings.data_directory)
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.file_lock_timeout

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.directory / f"{safe}.json"

    def _lock(self, key: str) -> FileLock:
        return FileLock(str(self._path(key)) + ".lock", timeout=self.lock_timeout)

    def _ensure_directory(self) -> None:
        if not self.directory.exists():
            self.directory.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.directory}")

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        with self._lock(key):
            try:
                return path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Could not read {path}: {e}")
                return None

    def write(self, key: str, value: str) -> None:
        self._ensure_directory()
        path = self._path(key)
        with self._lock(key):
            tmp = path.with_suffix(".tmp")
            tmp.write_text(value, encoding="utf-8")
            tmp.replace(path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        with self._lock(key):
            if path.exists():
                path.unlink()


class MemoryStorage:
    """In-process storage, for tests and throwaway sessions."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.values: dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def write(self, key: str, value: str) -> None:
        self.values[key] = value

    def delete(self, key: str) -> None:
        self.values.pop(key, None)


def dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
