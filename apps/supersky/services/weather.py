"""
Weather Aggregation Service

Serves normalized forecasts from four providers:
- Azure Maps - ZIP code lookup, 10-day daily and 240-hour hourly forecast
- Open-Meteo - 10-day daily and hourly forecast, no key required
- Foreca (RapidAPI) - current conditions and 7-day hourly forecast
- Google Weather - 240-hour hourly forecast via page tokens

Results are cached in an injected WeatherCache. Provider failures are
returned as ProviderError entries rather than raised, so one bad upstream
never takes down a comparison.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from django.conf import settings

from .cache import (
    DEFAULT_MAX_AGE,
    GOOGLE_WEATHER_MAX_AGE,
    IP_LOCATION_MAX_AGE,
    WeatherCache,
    google_weather_key,
    ip_location_key,
    location_key,
    triple_key,
    weather_key,
)
from .data import (
    TRIPLE_CHECK_ORDER,
    Coordinates,
    IPLocation,
    Location,
    ProviderError,
    SourceResult,
    WeatherData,
    WeatherSource,
)
from .providers import (
    AzureMapsAdapter,
    ForecaAdapter,
    GoogleWeatherAdapter,
    IPGeolocationAdapter,
    LocationNotFoundError,
    OpenMeteoAdapter,
    RateLimitError,
    WeatherServiceError,
)
from .transformers import (
    combine_azure_maps_data,
    combine_foreca_data,
    combine_google_weather_data,
    combine_open_meteo_data,
    transform_azure_maps_location,
)

logger = logging.getLogger(__name__)

ZIP_CODE_RE = re.compile(r'\d{5}', re.ASCII)

# Foreca looks locations up by ZIP code, so it cannot serve raw coordinates
LOCATION_SOURCES = (
    WeatherSource.AZURE_MAPS,
    WeatherSource.OPEN_METEO,
    WeatherSource.GOOGLE_WEATHER,
)

GOOGLE_WEATHER_TOTAL_HOURS = 240

DEVELOPMENT_FALLBACK_REASON = 'Using NYC coordinates as development fallback'

IP_FALLBACK = {
    'zip_code': '90210',
    'city': 'Beverly Hills',
    'state': 'California',
    'region': 'CA',
    'country': 'United States',
    'country_code': 'US',
    'latitude': 34.0901,
    'longitude': -118.4065,
    'timezone': 'America/Los_Angeles',
}


def validate_zip_code(zip_code) -> bool:
    """True for exactly five ASCII digits."""
    return isinstance(zip_code, str) and ZIP_CODE_RE.fullmatch(zip_code) is not None


class WeatherService:
    """Fetches, normalizes and caches weather data from multiple providers."""

    def __init__(
        self,
        cache: WeatherCache,
        azure_maps: AzureMapsAdapter,
        open_meteo: OpenMeteoAdapter,
        foreca: ForecaAdapter,
        google_weather: GoogleWeatherAdapter,
        ip_geolocation: IPGeolocationAdapter,
        weather_ttl: float = DEFAULT_MAX_AGE,
        google_weather_ttl: float = GOOGLE_WEATHER_MAX_AGE,
        ip_location_ttl: float = IP_LOCATION_MAX_AGE,
    ):
        self.cache = cache
        self.azure_maps = azure_maps
        self.open_meteo = open_meteo
        self.foreca = foreca
        self.google_weather = google_weather
        self.ip_geolocation = ip_geolocation
        self.weather_ttl = weather_ttl
        self.google_weather_ttl = google_weather_ttl
        self.ip_location_ttl = ip_location_ttl

    @classmethod
    def from_settings(cls, cache: WeatherCache, transport=None) -> 'WeatherService':
        """Build the service and its adapters from Django settings."""
        return cls(
            cache=cache,
            azure_maps=AzureMapsAdapter(
                api_key=getattr(settings, 'AZURE_MAPS_API_KEY', ''),
                base_url=getattr(settings, 'AZURE_MAPS_BASE_URL', 'https://atlas.microsoft.com'),
                transport=transport,
            ),
            open_meteo=OpenMeteoAdapter(
                base_url=getattr(settings, 'OPEN_METEO_BASE_URL', 'https://api.open-meteo.com'),
                transport=transport,
            ),
            foreca=ForecaAdapter(
                api_key=getattr(settings, 'RAPIDAPI_KEY', ''),
                host=getattr(settings, 'RAPIDAPI_HOST', 'foreca-weather.p.rapidapi.com'),
                transport=transport,
            ),
            google_weather=GoogleWeatherAdapter(
                api_key=getattr(settings, 'GOOGLE_WEATHER_API_KEY', ''),
                base_url=getattr(settings, 'GOOGLE_WEATHER_BASE_URL', 'https://weather.googleapis.com'),
                transport=transport,
            ),
            ip_geolocation=IPGeolocationAdapter(
                base_url=getattr(settings, 'IP_GEOLOCATION_BASE_URL', 'http://ip-api.com/json'),
                transport=transport,
            ),
            weather_ttl=getattr(settings, 'WEATHER_CACHE_TTL', DEFAULT_MAX_AGE),
            google_weather_ttl=getattr(settings, 'GOOGLE_WEATHER_CACHE_TTL', GOOGLE_WEATHER_MAX_AGE),
            ip_location_ttl=getattr(settings, 'IP_LOCATION_CACHE_TTL', IP_LOCATION_MAX_AGE),
        )

    validate_zip_code = staticmethod(validate_zip_code)

    def resolve_location(self, zip_code: str) -> Location:
        """
        ZIP code -> Location via Azure Maps search.

        Raises LocationNotFoundError when the search has no usable result and
        WeatherServiceError when the lookup itself fails.
        """
        message = f"Could not determine coordinates for ZIP code: {zip_code}"
        try:
            search_data = self.azure_maps.search_location(zip_code)
        except LocationNotFoundError as e:
            raise LocationNotFoundError(message) from e

        location = transform_azure_maps_location(search_data, zip_code)
        if location is None:
            raise LocationNotFoundError(message)
        return location

    def get_weather(
        self,
        zip_code: str,
        source: WeatherSource = WeatherSource.AZURE_MAPS,
        force_refresh: bool = False,
    ) -> SourceResult:
        """Single-provider forecast for a ZIP code."""
        cache_key = weather_key(zip_code, source.query_name)
        if not force_refresh:
            cached_data = self.cache.get(cache_key, self.weather_ttl)
            if cached_data is not None:
                logger.debug(f"{source.value} cache hit for {zip_code}")
                return cached_data

        location = self.resolve_location(zip_code)
        result = self._fetch_safe(source, location)
        if not result.is_error:
            self.cache.set(cache_key, result, self.weather_ttl)
        return result

    def get_weather_for_coordinates(
        self,
        latitude: float,
        longitude: float,
        source: WeatherSource = WeatherSource.AZURE_MAPS,
        force_refresh: bool = False,
        is_development_fallback: bool = False,
    ) -> SourceResult:
        """Single-provider forecast for coordinates from request geolocation."""
        if source not in LOCATION_SOURCES:
            raise ValueError(f"Unsupported weather source: {source.query_name}")

        cache_key = location_key(latitude, longitude, source.query_name)
        if not force_refresh:
            cached_data = self.cache.get(cache_key, self.weather_ttl)
            if cached_data is not None:
                logger.debug(f"{source.value} cache hit for {latitude},{longitude}")
                return cached_data

        coordinates = Coordinates(latitude=latitude, longitude=longitude)
        if is_development_fallback:
            location = Location(
                zip_code='10001',
                city='New York',
                state='New York',
                country='US',
                coordinates=coordinates,
                is_development_fallback=True,
                fallback_reason=DEVELOPMENT_FALLBACK_REASON,
            )
        else:
            location = Location(
                zip_code='Auto-detected',
                city='Auto-detected',
                state='Auto-detected',
                country='Auto-detected',
                coordinates=coordinates,
            )

        result = self._fetch_safe(source, location)
        if not result.is_error:
            self.cache.set(cache_key, result, self.weather_ttl)
        return result

    def get_triple_check(self, zip_code: str, force_refresh: bool = False) -> list[SourceResult]:
        """
        Fetch all four providers in parallel.

        Always returns four entries in TRIPLE_CHECK_ORDER. Failed providers
        come back as ProviderError entries sharing the resolved location.
        """
        cache_key = triple_key(zip_code)
        if not force_refresh:
            cached_data = self.cache.get(cache_key, self.weather_ttl)
            if cached_data is not None:
                logger.debug(f"Triple-check cache hit for {zip_code}")
                return cached_data

        location = self.resolve_location(zip_code)
        logger.info(f"Fetching triple-check weather for {zip_code}")

        results = []
        with ThreadPoolExecutor(max_workers=4) as executor:
            futures = [
                (source, executor.submit(self._fetch_safe, source, location))
                for source in TRIPLE_CHECK_ORDER
            ]
            for source, future in futures:
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.error(f"Error fetching {source.value}: {e}")
                    results.append(ProviderError(
                        location=location,
                        source=source,
                        error_message=str(e) or f"Failed to fetch {source.value} data",
                    ))

        if all(result.is_error for result in results):
            logger.warning(f"All weather sources failed for {zip_code}")
        else:
            self.cache.set(cache_key, results, self.weather_ttl)
        return results

    def get_ip_location(self, ip: Optional[str]) -> IPLocation:
        """
        Approximate location for a client IP.

        Raises LocationNotFoundError when the lookup succeeds without a ZIP
        code. Any other lookup failure yields the Beverly Hills fallback,
        which is not cached.
        """
        cache_key = ip_location_key(ip or 'unknown')
        cached_data = self.cache.get(cache_key, self.ip_location_ttl)
        if cached_data is not None:
            logger.debug(f"IP location cache hit for {ip}")
            return cached_data

        logger.info(f"Looking up location for IP {ip}")
        try:
            data = self.ip_geolocation.lookup(ip)
        except WeatherServiceError as e:
            logger.warning(f"IP location lookup failed for {ip}: {e}")
            return self._ip_fallback(ip, str(e))

        resolved_ip = data.get('query') or ip or 'unknown'
        if not data.get('zip'):
            raise LocationNotFoundError(
                'Could not determine ZIP code from IP location',
                location_data={
                    'city': data.get('city'),
                    'region': data.get('regionName'),
                    'country': data.get('country'),
                    'ip': resolved_ip,
                },
            )

        location = IPLocation(
            ip=resolved_ip,
            zip_code=data['zip'],
            city=data.get('city') or 'Unknown',
            state=data.get('regionName') or 'Unknown',
            region=data.get('region') or '',
            country=data.get('country') or 'Unknown',
            country_code=data.get('countryCode') or '',
            coordinates=Coordinates(latitude=data.get('lat'), longitude=data.get('lon')),
            timezone=data.get('timezone') or '',
            source='ip-api.com',
        )
        self.cache.set(cache_key, location, self.ip_location_ttl)
        return location

    def clear_cache(self) -> int:
        """Drop every cached entry. Returns how many were removed."""
        count = self.cache.clear()
        logger.info(f"Server cache cleared ({count} entries)")
        return count

    def _ip_fallback(self, ip: Optional[str], error_message: str) -> IPLocation:
        return IPLocation(
            ip=ip or 'unknown',
            zip_code=IP_FALLBACK['zip_code'],
            city=IP_FALLBACK['city'],
            state=IP_FALLBACK['state'],
            region=IP_FALLBACK['region'],
            country=IP_FALLBACK['country'],
            country_code=IP_FALLBACK['country_code'],
            coordinates=Coordinates(latitude=IP_FALLBACK['latitude'], longitude=IP_FALLBACK['longitude']),
            timezone=IP_FALLBACK['timezone'],
            source='fallback',
            is_fallback=True,
            error_message=error_message,
        )

    def _fetch_safe(self, source: WeatherSource, location: Location) -> SourceResult:
        """Fetch one provider, turning service errors into a ProviderError."""
        try:
            return self._fetch_source(source, location)
        except RateLimitError as e:
            logger.warning(f"{source.value} rate limited: {e}")
            return ProviderError(
                location=location,
                source=source,
                error_message=self._error_message(source, e, rate_limited=True),
                rate_limited=True,
            )
        except WeatherServiceError as e:
            logger.warning(f"{source.value} fetch failed: {e}")
            return ProviderError(
                location=location,
                source=source,
                error_message=self._error_message(source, e),
            )

    def _error_message(self, source: WeatherSource, error: Exception, rate_limited: bool = False) -> str:
        if source == WeatherSource.FORECA:
            return 'Rate limit exceeded (429).' if rate_limited else f"Error fetching Foreca data: {error}"
        if source == WeatherSource.GOOGLE_WEATHER:
            return f"Error fetching Google Weather data: {error}"
        if source == WeatherSource.AZURE_MAPS:
            return str(error) or 'Failed to fetch Azure Maps data'
        return str(error) or 'Failed to fetch Open Meteo data'

    def _fetch_source(self, source: WeatherSource, location: Location) -> WeatherData:
        latitude = location.coordinates.latitude
        longitude = location.coordinates.longitude
        logger.info(f"Fetching {source.value} weather for {latitude},{longitude}")

        try:
            if source == WeatherSource.AZURE_MAPS:
                daily_data, hourly_data = self.azure_maps.fetch_forecast(latitude, longitude)
                return combine_azure_maps_data(location, daily_data, hourly_data)
            if source == WeatherSource.OPEN_METEO:
                return combine_open_meteo_data(location, self.open_meteo.fetch_forecast(latitude, longitude))
            if source == WeatherSource.FORECA:
                current_data, hourly_data = self.foreca.fetch_forecast(location.zip_code)
                return combine_foreca_data(location, current_data, hourly_data)
            return combine_google_weather_data(location, self._get_google_forecast(latitude, longitude))
        except (KeyError, TypeError, AttributeError) as e:
            logger.error(f"Failed to parse {source.value} response: {e}")
            raise WeatherServiceError(f"Failed to parse {source.value} data: {e}")

    def _get_google_forecast(
        self,
        latitude: float,
        longitude: float,
        total_hours: int = GOOGLE_WEATHER_TOTAL_HOURS,
    ) -> dict:
        """Paginated Google forecast, cached separately for 30 minutes."""
        cache_key = google_weather_key(latitude, longitude, total_hours)
        cached_data = self.cache.get(cache_key, self.google_weather_ttl)
        if cached_data is not None:
            logger.debug(f"Google Weather cache hit for {latitude},{longitude}")
            return cached_data

        data = self.google_weather.fetch_forecast(latitude, longitude, total_hours=total_hours)
        self.cache.set(cache_key, data, self.google_weather_ttl)
        return data
