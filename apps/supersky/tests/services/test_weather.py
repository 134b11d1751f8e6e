"""Tests for WeatherService aggregation, caching and failure handling."""

from unittest.mock import MagicMock

from django.test import SimpleTestCase, override_settings

from apps.supersky.services.cache import WeatherCache
from apps.supersky.services.data import ProviderError, WeatherData, WeatherSource
from apps.supersky.services.providers import (
    LocationNotFoundError,
    RateLimitError,
    WeatherServiceError,
)
from apps.supersky.services.weather import WeatherService, validate_zip_code
from apps.supersky.tests import payloads


def build_service(**overrides):
    adapters = {
        'azure_maps': MagicMock(),
        'open_meteo': MagicMock(),
        'foreca': MagicMock(),
        'google_weather': MagicMock(),
        'ip_geolocation': MagicMock(),
    }
    adapters['azure_maps'].search_location.return_value = payloads.AZURE_SEARCH
    adapters['azure_maps'].fetch_forecast.return_value = (payloads.AZURE_DAILY, payloads.AZURE_HOURLY)
    adapters['open_meteo'].fetch_forecast.return_value = payloads.OPEN_METEO
    adapters['foreca'].fetch_forecast.return_value = (payloads.FORECA_CURRENT, payloads.FORECA_HOURLY)
    adapters['google_weather'].fetch_forecast.return_value = payloads.GOOGLE_FORECAST
    adapters['ip_geolocation'].lookup.return_value = payloads.IP_API_SUCCESS
    adapters.update(overrides)
    return WeatherService(cache=WeatherCache(), **adapters)


class ZipCodeValidationTests(SimpleTestCase):
    """Tests for validate_zip_code."""

    def test_five_digits_are_valid(self):
        self.assertTrue(validate_zip_code('10001'))
        self.assertTrue(validate_zip_code('00501'))

    def test_invalid_values(self):
        for value in ('1000', '100011', 'abcde', '1000a', '10001\n', ' 10001', '１２３４５', '', None, 10001):
            self.assertFalse(validate_zip_code(value), f"{value!r} should be invalid")


class WeatherServiceConfigTests(SimpleTestCase):
    """Tests for building the service from settings."""

    @override_settings(
        AZURE_MAPS_API_KEY='azure-key',
        RAPIDAPI_KEY='rapid-key',
        RAPIDAPI_HOST='foreca.example.com',
        WEATHER_CACHE_TTL=60,
    )
    def test_from_settings(self):
        cache = WeatherCache()
        service = WeatherService.from_settings(cache)
        self.assertIs(service.cache, cache)
        self.assertEqual(service.azure_maps.api_key, 'azure-key')
        self.assertEqual(service.foreca.host, 'foreca.example.com')
        self.assertEqual(service.weather_ttl, 60)


class ResolveLocationTests(SimpleTestCase):
    """Tests for ZIP -> coordinates resolution."""

    def test_resolves_location(self):
        location = build_service().resolve_location('10001')
        self.assertEqual(location.zip_code, '10001')
        self.assertEqual(location.coordinates.longitude, -73.9972)

    def test_no_search_results(self):
        service = build_service()
        service.azure_maps.search_location.side_effect = LocationNotFoundError('No location found')
        with self.assertRaisesMessage(LocationNotFoundError, 'Could not determine coordinates for ZIP code: 00000'):
            service.resolve_location('00000')

    def test_result_without_position(self):
        service = build_service()
        service.azure_maps.search_location.return_value = {'results': [{'address': {}}]}
        with self.assertRaises(LocationNotFoundError):
            service.resolve_location('10001')

    def test_upstream_failure_propagates(self):
        service = build_service()
        service.azure_maps.search_location.side_effect = WeatherServiceError('Azure Maps API error: 500')
        with self.assertRaises(WeatherServiceError) as ctx:
            service.resolve_location('10001')
        self.assertNotIsInstance(ctx.exception, LocationNotFoundError)


class SingleSourceTests(SimpleTestCase):
    """Tests for get_weather."""

    def test_each_source_returns_weather_data(self):
        service = build_service()
        for source in WeatherSource:
            result = service.get_weather('10001', source)
            self.assertIsInstance(result, WeatherData)
            self.assertEqual(result.source, source)
            self.assertEqual(result.current.precipitation.amount, 2.54)

    def test_success_is_cached(self):
        service = build_service()
        first = service.get_weather('10001', WeatherSource.OPEN_METEO)
        second = service.get_weather('10001', WeatherSource.OPEN_METEO)
        self.assertIs(first, second)
        self.assertEqual(service.open_meteo.fetch_forecast.call_count, 1)
        self.assertEqual(service.azure_maps.search_location.call_count, 1)

    def test_force_refresh_bypasses_cache(self):
        service = build_service()
        service.get_weather('10001', WeatherSource.OPEN_METEO)
        service.get_weather('10001', WeatherSource.OPEN_METEO, force_refresh=True)
        self.assertEqual(service.open_meteo.fetch_forecast.call_count, 2)

    def test_provider_failure_becomes_error_result(self):
        service = build_service()
        service.open_meteo.fetch_forecast.side_effect = WeatherServiceError('Open-Meteo API error: 500')
        result = service.get_weather('10001', WeatherSource.OPEN_METEO)
        self.assertIsInstance(result, ProviderError)
        self.assertEqual(result.error_message, 'Open-Meteo API error: 500')
        self.assertEqual(result.location.zip_code, '10001')

        payload = result.to_dict()
        self.assertTrue(payload['isError'])
        self.assertIsNone(payload['current'])
        self.assertEqual(payload['hourly'], [])

    def test_errors_are_not_cached(self):
        service = build_service()
        service.open_meteo.fetch_forecast.side_effect = WeatherServiceError('down')
        service.get_weather('10001', WeatherSource.OPEN_METEO)
        service.get_weather('10001', WeatherSource.OPEN_METEO)
        self.assertEqual(service.open_meteo.fetch_forecast.call_count, 2)

    def test_foreca_rate_limit(self):
        service = build_service()
        service.foreca.fetch_forecast.side_effect = RateLimitError('Foreca API rate limit exceeded (429)')
        result = service.get_weather('10001', WeatherSource.FORECA)
        self.assertTrue(result.rate_limited)
        self.assertEqual(result.error_message, 'Rate limit exceeded (429).')

    def test_foreca_other_error(self):
        service = build_service()
        service.foreca.fetch_forecast.side_effect = WeatherServiceError('No Foreca location found')
        result = service.get_weather('10001', WeatherSource.FORECA)
        self.assertFalse(result.rate_limited)
        self.assertEqual(result.error_message, 'Error fetching Foreca data: No Foreca location found')

    def test_google_error_message(self):
        service = build_service()
        service.google_weather.fetch_forecast.side_effect = WeatherServiceError('Google Weather API failed: boom')
        result = service.get_weather('10001', WeatherSource.GOOGLE_WEATHER)
        self.assertTrue(result.error_message.startswith('Error fetching Google Weather data:'))

    def test_google_forecast_has_its_own_cache(self):
        service = build_service()
        service.get_weather('10001', WeatherSource.GOOGLE_WEATHER)
        service.get_weather('10001', WeatherSource.GOOGLE_WEATHER, force_refresh=True)
        self.assertEqual(service.google_weather.fetch_forecast.call_count, 1)

    def test_unexpected_payload_shape_becomes_error_result(self):
        service = build_service()
        service.foreca.fetch_forecast.return_value = ({'current': {}}, {'forecast': [None]})
        result = service.get_weather('10001', WeatherSource.FORECA)
        self.assertTrue(result.is_error)


class CoordinateWeatherTests(SimpleTestCase):
    """Tests for get_weather_for_coordinates."""

    def test_auto_detected_location(self):
        service = build_service()
        result = service.get_weather_for_coordinates(40.7128, -74.006, WeatherSource.OPEN_METEO)
        self.assertEqual(result.location.zip_code, 'Auto-detected')
        self.assertNotIn('isDevelopmentFallback', result.to_dict()['location'])
        service.azure_maps.search_location.assert_not_called()

    def test_development_fallback_location(self):
        service = build_service()
        result = service.get_weather_for_coordinates(
            40.7128, -74.006, WeatherSource.AZURE_MAPS, is_development_fallback=True
        )
        location = result.to_dict()['location']
        self.assertEqual(location['zipCode'], '10001')
        self.assertEqual(location['city'], 'New York')
        self.assertTrue(location['isDevelopmentFallback'])
        self.assertEqual(location['fallbackReason'], 'Using NYC coordinates as development fallback')

    def test_cached_by_coordinates_and_source(self):
        service = build_service()
        service.get_weather_for_coordinates(40.7128, -74.006, WeatherSource.OPEN_METEO)
        service.get_weather_for_coordinates(40.7128, -74.006, WeatherSource.OPEN_METEO)
        self.assertEqual(service.open_meteo.fetch_forecast.call_count, 1)
        self.assertIn('weather_location_40.7128_-74.006_openmeteo', service.cache)

    def test_foreca_is_not_supported(self):
        with self.assertRaises(ValueError):
            build_service().get_weather_for_coordinates(40.7, -74.0, WeatherSource.FORECA)


class TripleCheckTests(SimpleTestCase):
    """Tests for the four-provider comparison."""

    def test_fixed_order(self):
        results = build_service().get_triple_check('10001')
        self.assertEqual(
            [result.source.value for result in results],
            ['GoogleWeather', 'AzureMaps', 'Foreca', 'OpenMeteo'],
        )

    def test_one_failure_does_not_abort_others(self):
        service = build_service()
        service.azure_maps.fetch_forecast.side_effect = WeatherServiceError('Azure Maps API error: 500')
        results = service.get_triple_check('10001')
        self.assertEqual(len(results), 4)
        self.assertTrue(results[1].is_error)
        self.assertEqual([r.is_error for r in results], [False, True, False, False])
        self.assertEqual(results[1].location.zip_code, '10001')

    def test_unexpected_exception_is_converted(self):
        service = build_service()
        service.open_meteo.fetch_forecast.side_effect = RuntimeError('worker crashed')
        results = service.get_triple_check('10001')
        self.assertTrue(results[3].is_error)
        self.assertEqual(results[3].error_message, 'worker crashed')

    def test_cached_when_any_source_succeeds(self):
        service = build_service()
        service.foreca.fetch_forecast.side_effect = RateLimitError('Foreca API rate limit exceeded (429)')
        first = service.get_triple_check('10001')
        second = service.get_triple_check('10001')
        self.assertIs(first, second)
        self.assertIn('weather_10001_triple', service.cache)

    def test_not_cached_when_all_fail(self):
        service = build_service()
        for adapter in (service.azure_maps, service.open_meteo, service.foreca, service.google_weather):
            adapter.fetch_forecast.side_effect = WeatherServiceError('down')
        results = service.get_triple_check('10001')
        self.assertTrue(all(result.is_error for result in results))
        self.assertNotIn('weather_10001_triple', service.cache)

    def test_location_failure_is_fatal(self):
        service = build_service()
        service.azure_maps.search_location.side_effect = LocationNotFoundError('none')
        with self.assertRaises(LocationNotFoundError):
            service.get_triple_check('99999')


class IPLocationTests(SimpleTestCase):
    """Tests for get_ip_location."""

    def test_lookup_is_cached(self):
        service = build_service()
        first = service.get_ip_location('203.0.113.5')
        second = service.get_ip_location('203.0.113.5')
        self.assertIs(first, second)
        self.assertEqual(first.zip_code, '10001')
        self.assertEqual(first.to_dict()['location']['coordinates'], {'latitude': 40.7506, 'longitude': -73.9972})
        service.ip_geolocation.lookup.assert_called_once_with('203.0.113.5')

    def test_missing_zip_raises_with_location_data(self):
        service = build_service()
        service.ip_geolocation.lookup.return_value = dict(payloads.IP_API_SUCCESS, zip='')
        with self.assertRaises(LocationNotFoundError) as ctx:
            service.get_ip_location('203.0.113.5')
        self.assertEqual(str(ctx.exception), 'Could not determine ZIP code from IP location')
        self.assertEqual(ctx.exception.location_data['city'], 'New York')

    def test_failure_returns_uncached_fallback(self):
        service = build_service()
        service.ip_geolocation.lookup.side_effect = WeatherServiceError('IP geolocation failed: reserved range')
        location = service.get_ip_location('10.0.0.1')
        self.assertTrue(location.is_fallback)
        self.assertEqual(location.zip_code, '90210')
        self.assertEqual(location.source, 'fallback')
        self.assertEqual(location.to_dict()['errorMessage'], 'IP geolocation failed: reserved range')

        service.get_ip_location('10.0.0.1')
        self.assertEqual(service.ip_geolocation.lookup.call_count, 2)


class ClearCacheTests(SimpleTestCase):
    """Tests for clear_cache."""

    def test_returns_cleared_count(self):
        service = build_service()
        service.get_weather('10001', WeatherSource.OPEN_METEO)
        self.assertEqual(service.clear_cache(), 1)
        self.assertEqual(len(service.cache), 0)
