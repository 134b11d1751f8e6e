"""
Upstream weather API adapters.

Each adapter knows one provider's endpoints, auth scheme and quirks, and
returns the provider's raw JSON. Parsing into the shared schema lives in
``transformers``; caching lives in ``weather.WeatherService``.
"""

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
GOOGLE_WEATHER_TIMEOUT = 15.0
IP_GEOLOCATION_TIMEOUT = 5.0

GOOGLE_WEATHER_HOURS_PER_PAGE = 24
GOOGLE_WEATHER_PAGE_DELAY = 0.1
DEFAULT_GOOGLE_TIME_ZONE = {'id': 'America/Los_Angeles', 'version': ''}

FORECA_HOURLY_PERIODS = 168
FORECA_RATE_LIMITED = {'status': 429, 'message': 'Rate limit exceeded'}

LOCALHOST_IPS = ('127.0.0.1', '::1', '::ffff:127.0.0.1')


class WeatherServiceError(Exception):
    """Base exception for weather service errors."""
    pass


class ProviderNotConfiguredError(WeatherServiceError):
    """A provider's API key or host is missing."""
    pass


class RateLimitError(WeatherServiceError):
    """Upstream answered 429."""
    pass


class LocationNotFoundError(WeatherServiceError):
    """A ZIP code or IP could not be resolved to a usable location."""

    def __init__(self, message: str, location_data: Optional[dict] = None):
        super().__init__(message)
        self.location_data = location_data


def is_rate_limited(payload) -> bool:
    return isinstance(payload, dict) and payload.get('status') == 429


class ProviderAdapter:
    """Shared HTTP plumbing. ``transport`` lets tests plug in httpx.MockTransport."""

    name = 'Weather'
    timeout = DEFAULT_TIMEOUT

    def __init__(self, transport: Optional[httpx.BaseTransport] = None):
        self.transport = transport

    def _get_json(
        self,
        url: str,
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> dict:
        try:
            with httpx.Client(timeout=timeout or self.timeout, transport=self.transport) as client:
                response = client.get(url, params=params, headers=headers)
        except httpx.TimeoutException:
            raise WeatherServiceError(f"{self.name} API request timed out")
        except httpx.RequestError as e:
            raise WeatherServiceError(f"{self.name} API request failed: {e}")

        if response.status_code in (401, 403):
            raise WeatherServiceError(f"{self.name} API rejected the API key ({response.status_code})")
        elif response.status_code == 429:
            raise RateLimitError(f"{self.name} API rate limit exceeded (429)")
        elif response.status_code != 200:
            raise WeatherServiceError(f"{self.name} API error: {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise WeatherServiceError(f"{self.name} API returned invalid JSON: {e}")


class AzureMapsAdapter(ProviderAdapter):
    """Azure Maps search (ZIP -> coordinates) and weather forecasts."""

    name = 'Azure Maps'

    def __init__(self, api_key: str, base_url: str, transport: Optional[httpx.BaseTransport] = None):
        super().__init__(transport)
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')

    def _require_key(self) -> None:
        if not self.api_key:
            logger.warning("AZURE_MAPS_API_KEY not configured")
            raise ProviderNotConfiguredError("Azure Maps API key not configured")

    def search_location(self, zip_code: str) -> dict:
        self._require_key()
        data = self._get_json(
            f"{self.base_url}/search/address/json",
            params={
                'api-version': '1.0',
                'subscription-key': self.api_key,
                'query': zip_code,
                'countrySet': 'US',
                'limit': '1',
            },
        )
        if not data or not data.get('results'):
            raise LocationNotFoundError(f"No location found for ZIP code: {zip_code}")
        return data

    def fetch_daily_forecast(self, latitude: float, longitude: float) -> dict:
        self._require_key()
        return self._get_json(
            f"{self.base_url}/weather/forecast/daily/json",
            params={
                'api-version': '1.1',
                'subscription-key': self.api_key,
                'query': f"{latitude},{longitude}",
                'duration': '10',
                'unit': 'imperial',
            },
        )

    def fetch_hourly_forecast(self, latitude: float, longitude: float) -> dict:
        self._require_key()
        return self._get_json(
            f"{self.base_url}/weather/forecast/hourly/json",
            params={
                'api-version': '1.1',
                'subscription-key': self.api_key,
                'query': f"{latitude},{longitude}",
                'duration': '240',
                'unit': 'imperial',
                'language': 'en-US',
            },
        )

    def fetch_forecast(self, latitude: float, longitude: float) -> tuple[dict, dict]:
        """Fetch daily and hourly forecasts concurrently."""
        self._require_key()
        with ThreadPoolExecutor(max_workers=2) as executor:
            daily = executor.submit(self.fetch_daily_forecast, latitude, longitude)
            hourly = executor.submit(self.fetch_hourly_forecast, latitude, longitude)
            return daily.result(), hourly.result()


class OpenMeteoAdapter(ProviderAdapter):
    """Open-Meteo forecast API. No key required."""

    name = 'Open-Meteo'

    HOURLY_VARIABLES = (
        'temperature_2m',
        'relativehumidity_2m',
        'apparent_temperature',
        'precipitation',
        'precipitation_probability',
        'weathercode',
        'surface_pressure',
        'visibility',
        'windspeed_10m',
        'winddirection_10m',
        'uv_index',
        'is_day',
    )
    DAILY_VARIABLES = (
        'weathercode',
        'temperature_2m_max',
        'temperature_2m_min',
        'apparent_temperature_max',
        'apparent_temperature_min',
        'sunrise',
        'sunset',
        'precipitation_sum',
        'precipitation_probability_max',
        'windspeed_10m_max',
        'winddirection_10m_dominant',
        'uv_index_max',
    )

    def __init__(self, base_url: str, transport: Optional[httpx.BaseTransport] = None):
        super().__init__(transport)
        self.base_url = base_url.rstrip('/')

    def fetch_forecast(self, latitude: float, longitude: float) -> dict:
        return self._get_json(
            f"{self.base_url}/v1/forecast",
            params={
                'latitude': latitude,
                'longitude': longitude,
                'timezone': 'auto',
                'current_weather': 'true',
                'forecast_days': 10,
                'models': 'best_match',
                'hourly': ','.join(self.HOURLY_VARIABLES),
                'daily': ','.join(self.DAILY_VARIABLES),
                'temperature_unit': 'fahrenheit',
                'windspeed_unit': 'mph',
                'precipitation_unit': 'inch',
            },
        )


class ForecaAdapter(ProviderAdapter):
    """Foreca via RapidAPI. Location search, current conditions, hourly forecast."""

    name = 'Foreca'

    def __init__(self, api_key: str, host: str, transport: Optional[httpx.BaseTransport] = None):
        super().__init__(transport)
        self.api_key = api_key
        self.host = host

    def _headers(self) -> dict:
        if not self.api_key or not self.host:
            logger.warning("RAPIDAPI_KEY or RAPIDAPI_HOST not configured")
            raise ProviderNotConfiguredError("RapidAPI key or host not configured for Foreca")
        return {
            'x-rapidapi-host': self.host,
            'x-rapidapi-key': self.api_key,
        }

    def fetch_location_id(self, zip_code: str) -> str:
        data = self._get_json(
            f"https://{self.host}/location/search/{zip_code}",
            params={'country': 'us'},
            headers=self._headers(),
        )
        locations = (data or {}).get('locations') or []
        if not locations:
            raise WeatherServiceError(f"No Foreca location found for ZIP code: {zip_code}")
        return str(locations[0]['id'])

    def fetch_current(self, location_id: str) -> dict:
        return self._get_json(f"https://{self.host}/current/{location_id}", headers=self._headers())

    def fetch_hourly(self, location_id: str) -> dict:
        """Hourly forecast, capped at 168 periods. A 429 yields a sentinel, not an exception."""
        try:
            return self._get_json(
                f"https://{self.host}/forecast/hourly/{location_id}",
                params={'periods': FORECA_HOURLY_PERIODS, 'dataset': 'full'},
                headers=self._headers(),
            )
        except RateLimitError:
            logger.warning("Foreca hourly forecast rate limited")
            return dict(FORECA_RATE_LIMITED)

    def fetch_forecast(self, zip_code: str) -> tuple[dict, dict]:
        """Resolve the Foreca location, then fetch current and hourly concurrently."""
        location_id = self.fetch_location_id(zip_code)
        with ThreadPoolExecutor(max_workers=2) as executor:
            current = executor.submit(self.fetch_current, location_id)
            hourly = executor.submit(self.fetch_hourly, location_id)
            current_data, hourly_data = current.result(), hourly.result()

        if is_rate_limited(current_data) or is_rate_limited(hourly_data):
            raise RateLimitError("Foreca API rate limit exceeded (429)")
        return current_data, hourly_data


class GoogleWeatherAdapter(ProviderAdapter):
    """Google Weather hourly forecast, assembled across page tokens."""

    name = 'Google Weather'
    timeout = GOOGLE_WEATHER_TIMEOUT

    def __init__(
        self,
        api_key: str,
        base_url: str,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(transport)
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.sleep = sleep

    def fetch_forecast(
        self,
        latitude: float,
        longitude: float,
        total_hours: int = 240,
        page_size: int = 240,
    ) -> dict:
        """
        Collect up to ``total_hours`` of hourly forecast.

        Each page returns roughly a day of hours. Paging stops once enough
        hours are collected, when no ``nextPageToken`` comes back, or after
        ceil(total_hours / 24) requests. A failed first request raises; a
        failure on a later page keeps the hours collected so far.
        """
        try:
            return self._paginate(latitude, longitude, total_hours, page_size)
        except WeatherServiceError as e:
            # Keep the subclass so callers can still tell rate limits apart
            raise type(e)(f"Google Weather API failed: {e}. Unable to retrieve weather data.") from e

    def _paginate(self, latitude: float, longitude: float, total_hours: int, page_size: int) -> dict:
        if not self.api_key:
            logger.warning("GOOGLE_WEATHER_API_KEY not configured")
            raise ProviderNotConfiguredError("Google Weather API key not configured")

        url = f"{self.base_url}/v1/forecast/hours:lookup"
        max_requests = math.ceil(total_hours / GOOGLE_WEATHER_HOURS_PER_PAGE)
        hours = []
        time_zone = None
        page_token = None
        request_count = 0

        logger.info(f"Fetching {total_hours}h of Google Weather forecast in up to {max_requests} requests")

        while True:
            request_count += 1
            params = {
                'key': self.api_key,
                'location.latitude': latitude,
                'location.longitude': longitude,
                'hours': total_hours,
                'pageSize': page_size,
            }
            if page_token:
                params['pageToken'] = page_token

            try:
                data = self._get_json(url, params=params, headers={'Accept': 'application/json'})
            except WeatherServiceError as e:
                if request_count == 1:
                    raise
                logger.warning(
                    f"Google Weather request {request_count} failed, "
                    f"keeping {len(hours)} hours from {request_count - 1} requests: {e}"
                )
                break

            page = data.get('forecastHours') if data else None
            if page is None:
                logger.warning(f"No forecast hours in Google Weather response {request_count}")
                break

            hours.extend(page)
            if request_count == 1:
                time_zone = data.get('timeZone')
            page_token = data.get('nextPageToken')

            if len(hours) >= total_hours or not page_token or request_count >= max_requests:
                break
            self.sleep(GOOGLE_WEATHER_PAGE_DELAY)

        hours = hours[:total_hours]
        logger.info(f"Google Weather pagination complete: {len(hours)} hours from {request_count} requests")

        return {
            'forecastHours': hours,
            'timeZone': time_zone or dict(DEFAULT_GOOGLE_TIME_ZONE),
            'paginationInfo': {
                'totalHoursRetrieved': len(hours),
                'maxHoursRequested': total_hours,
                'requestsMade': request_count,
                'approach': 'proper-pagination-with-pageToken',
            },
        }


class IPGeolocationAdapter(ProviderAdapter):
    """ip-api.com lookup (free tier, no key)."""

    name = 'IP geolocation'
    timeout = IP_GEOLOCATION_TIMEOUT

    FIELDS = 'status,message,country,countryCode,region,regionName,city,zip,lat,lon,timezone,query'

    def __init__(self, base_url: str = 'http://ip-api.com/json', transport: Optional[httpx.BaseTransport] = None):
        super().__init__(transport)
        self.base_url = base_url.rstrip('/')

    def lookup(self, ip: Optional[str] = None) -> dict:
        """Look up ``ip``; localhost or None asks about the server's own address."""
        if ip and ip not in LOCALHOST_IPS:
            url = f"{self.base_url}/{ip}"
        else:
            url = f"{self.base_url}/"
        data = self._get_json(url, params={'fields': self.FIELDS})
        if not data or data.get('status') != 'success':
            message = (data or {}).get('message') or 'Unknown error'
            raise WeatherServiceError(f"IP geolocation failed: {message}")
        return data
