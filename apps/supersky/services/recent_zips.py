"""Recently searched ZIP codes, most recent first."""

import json
import logging
import threading
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

STORAGE_KEY = 'recentZipCodes'
MAX_RECENT_ZIP_CODES = 5


class RecentZipCodes:
    """
    Bounded, de-duplicated ZIP history.

    With ``path`` set the list is persisted as ``{"recentZipCodes": [...]}``;
    otherwise it lives in memory only.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None, max_entries: int = MAX_RECENT_ZIP_CODES):
        self.path = Path(path) if path else None
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._zip_codes = self._load()

    def _load(self) -> list[str]:
        if self.path is None or not self.path.exists():
            return []
        try:
            stored = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable recent ZIP file {self.path}: {e}")
            return []
        zip_codes = stored.get(STORAGE_KEY) if isinstance(stored, dict) else None
        if not isinstance(zip_codes, list):
            return []
        return [str(z) for z in zip_codes][:self.max_entries]

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({STORAGE_KEY: self._zip_codes}), encoding='utf-8')

    def add(self, zip_code: str) -> list[str]:
        """Move ``zip_code`` to the front, dropping the oldest beyond the limit."""
        with self._lock:
            self._zip_codes = [zip_code] + [z for z in self._zip_codes if z != zip_code]
            self._zip_codes = self._zip_codes[:self.max_entries]
            self._save()
            return list(self._zip_codes)

    def clear(self) -> None:
        with self._lock:
            self._zip_codes = []
            self._save()

    def as_list(self) -> list[str]:
        with self._lock:
            return list(self._zip_codes)

    def __iter__(self):
        return iter(self.as_list())

    def __len__(self) -> int:
        with self._lock:
            return len(self._zip_codes)
