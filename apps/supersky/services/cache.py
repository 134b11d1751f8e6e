"""
In-memory TTL cache shared by the weather service and the API client.

Entries carry their own max age so a bulk sweep can evict each one on its own
schedule. Reads pass the max age they are willing to accept; an entry older
than that is deleted on the spot.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Seconds
DEFAULT_MAX_AGE = 15 * 60
GOOGLE_WEATHER_MAX_AGE = 30 * 60
IP_LOCATION_MAX_AGE = 60 * 60

SOFT_LIMIT = 100


@dataclass
class CacheEntry:
    data: Any
    timestamp: float
    max_age: float


class WeatherCache:
    """Thread-safe map of key -> CacheEntry with lazy eviction."""

    def __init__(
        self,
        soft_limit: int = SOFT_LIMIT,
        time_func: Callable[[], float] = time.monotonic,
    ) -> None:
        self.soft_limit = soft_limit
        self._time_func = time_func
        self._storage: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str, max_age: float = DEFAULT_MAX_AGE) -> Optional[Any]:
        with self._lock:
            entry = self._storage.get(key)
            if entry is None:
                return None
            age = self._time_func() - entry.timestamp
            if age > max_age:
                del self._storage[key]
                return None
            return entry.data

    def set(self, key: str, data: Any, max_age: float = DEFAULT_MAX_AGE) -> None:
        with self._lock:
            self._storage[key] = CacheEntry(data=data, timestamp=self._time_func(), max_age=max_age)
            if len(self._storage) > self.soft_limit:
                removed = self._sweep_locked()
                logger.debug(f"Cache above {self.soft_limit} entries, swept {removed} expired")

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._storage.pop(key, None) is not None

    def sweep(self) -> int:
        """Remove every entry whose own max age has elapsed."""
        with self._lock:
            return self._sweep_locked()

    def clear(self) -> int:
        with self._lock:
            count = len(self._storage)
            self._storage.clear()
            return count

    def _sweep_locked(self) -> int:
        now = self._time_func()
        expired = [
            key for key, entry in self._storage.items()
            if now - entry.timestamp > entry.max_age
        ]
        for key in expired:
            del self._storage[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._storage)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._storage


def weather_key(zip_code: str, source: Optional[str] = None) -> str:
    return f"weather_{zip_code}_{source}" if source else f"weather_{zip_code}"


def triple_key(zip_code: str) -> str:
    return weather_key(zip_code, 'triple')


def location_key(latitude: float, longitude: float, source: str) -> str:
    return f"weather_location_{latitude}_{longitude}_{source}"


def ip_location_key(ip: str) -> str:
    return f"ip_location_{ip}"


def google_weather_key(latitude: float, longitude: float, total_hours: int) -> str:
    return f"google_weather_{latitude}_{longitude}_{total_hours}"
