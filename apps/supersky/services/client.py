"""
Python client for the Super Sky HTTP API.

Mirrors what the browser app does: checks a local cache first, retries
single-source fetches with exponential backoff, and degrades to error
placeholders instead of raising. ``WeatherSession`` holds the visible
state and makes sure only the most recent request updates it.
"""

import logging
import threading
import time
from typing import Any, Callable, Optional

import httpx

from .cache import WeatherCache
from .data import TRIPLE_CHECK_ORDER, WeatherSource, now_ms
from .recent_zips import RecentZipCodes

logger = logging.getLogger(__name__)

CLIENT_CACHE_MAX_AGE = 30 * 60
CLIENT_TIMEOUT = 30.0


class LocationUnavailableError(Exception):
    """The server could not place the request; ask the user for a ZIP code."""
    pass


def is_transient(error: Exception) -> bool:
    """False for HTTP 4xx responses, which a retry cannot fix."""
    if isinstance(error, httpx.HTTPStatusError):
        return not error.response.is_client_error
    return True


def server_message(error: Exception) -> Optional[str]:
    """The ``message`` from a JSON error body, if the server sent one."""
    if not isinstance(error, httpx.HTTPStatusError):
        return None
    try:
        body = error.response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get('message')
    return None


def fetch_with_retry(
    fetch: Callable[..., Any],
    *args,
    max_retries: int = 3,
    delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """
    Call ``fetch(*args)`` up to ``max_retries`` times.

    Waits ``delay * 2**attempt`` seconds between attempts and re-raises the
    last error once attempts run out. Client errors (HTTP 4xx) are raised
    immediately.
    """
    last_error = None
    for attempt in range(max_retries):
        try:
            return fetch(*args)
        except Exception as e:
            if not is_transient(e):
                raise
            last_error = e
            logger.warning(f"Attempt {attempt + 1}/{max_retries} failed: {e}")
            if attempt < max_retries - 1:
                sleep(delay * 2 ** attempt)
    raise last_error


def _source_tag(source: str) -> str:
    try:
        return WeatherSource.from_query(source).value
    except ValueError:
        return source


def error_placeholder(zip_code: str, source: str, message: str) -> dict:
    """A WeatherData-shaped dict flagged ``isError``."""
    return {
        'location': {
            'zipCode': zip_code,
            'city': 'Unknown',
            'state': 'Unknown',
            'country': 'US',
            'coordinates': {'latitude': 0, 'longitude': 0},
        },
        'current': None,
        'hourly': [],
        'daily': [],
        'source': source,
        'lastUpdated': now_ms(),
        'isError': True,
        'errorMessage': message,
    }


class WeatherClient:
    """HTTP API client with a local cache."""

    CACHE_KEY_PREFIX = 'weather_cache_'

    def __init__(
        self,
        base_url: str = 'http://localhost:8000',
        cache: Optional[WeatherCache] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float = CLIENT_TIMEOUT,
        max_age: float = CLIENT_CACHE_MAX_AGE,
    ):
        self.base_url = base_url.rstrip('/')
        self.cache = cache if cache is not None else WeatherCache()
        self.transport = transport
        self.sleep = sleep
        self.timeout = timeout
        self.max_age = max_age

    def _cache_key(self, zip_code: str, suffix: str) -> str:
        return f"{self.CACHE_KEY_PREFIX}{zip_code}_{suffix}"

    def _get(self, path: str, params: Optional[dict] = None) -> Any:
        with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
            response = client.get(path, params=params)
        response.raise_for_status()
        return response.json()

    def fetch_weather(self, zip_code: str, source: str = 'azuremaps', force_refresh: bool = False) -> dict:
        """One provider's forecast. Never raises for HTTP failures."""
        cache_key = self._cache_key(zip_code, source)
        if not force_refresh:
            cached_data = self.cache.get(cache_key, self.max_age)
            if cached_data is not None:
                logger.debug(f"Client cache hit for {zip_code} ({source})")
                return cached_data

        params = {'source': source}
        if force_refresh:
            params['forceRefresh'] = 'true'

        try:
            data = fetch_with_retry(self._get, f"/api/weather/{zip_code}", params, sleep=self.sleep)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Weather fetch failed for {zip_code} ({source}): {e}")
            message = server_message(e)
            if message is None:
                message = f"Failed to fetch weather data after multiple attempts: {e}"
            return error_placeholder(zip_code, _source_tag(source), message)

        if not data.get('isError'):
            self.cache.set(cache_key, data, self.max_age)
        return data

    def fetch_weather_by_location(self, source: str = 'azuremaps', force_refresh: bool = False) -> dict:
        """
        Forecast for the caller's geolocated position.

        Raises LocationUnavailableError when the server has no coordinates
        for this request (HTTP 400).
        """
        params = {'source': source}
        if force_refresh:
            params['forceRefresh'] = 'true'

        try:
            return self._get('/api/weather/location', params)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 400:
                message = server_message(e)
                raise LocationUnavailableError(message or 'Location coordinates not available') from e
            logger.error(f"Location weather fetch failed: {e}")
            return error_placeholder('Auto-detected', _source_tag(source), f"Failed to fetch weather data: {e}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Location weather fetch failed: {e}")
            return error_placeholder('Auto-detected', _source_tag(source), f"Failed to fetch weather data: {e}")

    def fetch_triple_check(self, zip_code: str, force_refresh: bool = False) -> list[dict]:
        """All four providers in fixed order. Never raises for HTTP failures."""
        cache_key = self._cache_key(zip_code, 'triple')
        if not force_refresh:
            cached_data = self.cache.get(cache_key, self.max_age)
            if cached_data is not None:
                logger.debug(f"Client cache hit for {zip_code} (triple)")
                return cached_data

        params = {'forceRefresh': 'true'} if force_refresh else None
        try:
            data = self._get(f"/api/weather/{zip_code}/triple", params)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Triple-check fetch failed for {zip_code}: {e}")
            message = f"Failed to fetch weather data: {e}"
            return [error_placeholder(zip_code, source.value, message) for source in TRIPLE_CHECK_ORDER]

        if not all(entry.get('isError') for entry in data):
            self.cache.set(cache_key, data, self.max_age)
        return data

    def fetch_ip_location(self) -> dict:
        return self._get('/api/weather/ip-location')

    def clear_cache(self) -> int:
        return self.cache.clear()


class LatestRequestGuard:
    """
    Versioned request guard.

    ``begin`` hands out a new version per key; only the holder of the latest
    version for that key is current.
    """

    def __init__(self):
        self._versions: dict[str, int] = {}
        self._lock = threading.Lock()

    def begin(self, key: str = 'default') -> int:
        with self._lock:
            version = self._versions.get(key, 0) + 1
            self._versions[key] = version
            return version

    def is_current(self, key: str, version: int) -> bool:
        with self._lock:
            return self._versions.get(key) == version


class WeatherSession:
    """Client-side weather state: current data, error, loading flag and recent ZIPs."""

    GUARD_KEY = 'weather'

    FETCH_ERROR = 'Failed to fetch weather data.'
    ALL_SOURCES_ERROR = (
        'Failed to fetch weather data from all sources. Please check your connection and try again.'
    )
    SERVER_ERROR = 'Failed to fetch weather data from the server. Please try again.'

    def __init__(
        self,
        client: WeatherClient,
        recent_zip_codes: Optional[RecentZipCodes] = None,
        guard: Optional[LatestRequestGuard] = None,
    ):
        self.client = client
        self.recent = recent_zip_codes if recent_zip_codes is not None else RecentZipCodes()
        self.guard = guard or LatestRequestGuard()
        self.zip_code: Optional[str] = None
        self.data: Any = None
        self.error: Optional[str] = None
        self.is_loading = False
        self.retry_count = 0
        self._last_request: Optional[tuple] = None

    @property
    def recent_zip_codes(self) -> list[str]:
        return self.recent.as_list()

    def _start(self, zip_code: str) -> int:
        version = self.guard.begin(self.GUARD_KEY)
        self.zip_code = zip_code
        self.is_loading = True
        self.error = None
        self.recent.add(zip_code)
        return version

    def _finish(self, version: int, data: Any, error: Optional[str]) -> bool:
        """Apply a result if it belongs to the latest request."""
        if not self.guard.is_current(self.GUARD_KEY, version):
            logger.debug(f"Discarding stale weather result (version {version})")
            return False
        self.data = data
        self.error = error
        self.is_loading = False
        self.retry_count = self.retry_count + 1 if error else 0
        return True

    def fetch_weather(self, zip_code: str, source: str = 'azuremaps', force_refresh: bool = False) -> Any:
        version = self._start(zip_code)
        self._last_request = ('single', zip_code, source)
        try:
            data = self.client.fetch_weather(zip_code, source, force_refresh)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Weather fetch failed for {zip_code}: {e}")
            self._finish(version, None, self.SERVER_ERROR)
            return None

        self._finish(version, data, self.FETCH_ERROR if data.get('isError') else None)
        return data

    def fetch_triple_check(self, zip_code: str, force_refresh: bool = False) -> Any:
        version = self._start(zip_code)
        self._last_request = ('triple', zip_code, None)
        try:
            data = self.client.fetch_triple_check(zip_code, force_refresh)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Triple-check fetch failed for {zip_code}: {e}")
            self._finish(version, None, self.SERVER_ERROR)
            return None

        all_failed = bool(data) and all(entry.get('isError') for entry in data)
        self._finish(version, data, self.ALL_SOURCES_ERROR if all_failed else None)
        return data

    def refresh(self) -> Any:
        """Repeat the last request, bypassing caches."""
        if self._last_request is None:
            return None
        kind, zip_code, source = self._last_request
        if kind == 'triple':
            return self.fetch_triple_check(zip_code, force_refresh=True)
        return self.fetch_weather(zip_code, source, force_refresh=True)
