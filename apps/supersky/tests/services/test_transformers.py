"""Tests for provider response transformers."""

import copy
from datetime import datetime, timezone

from django.test import SimpleTestCase

from apps.supersky.services.data import Coordinates, Location, WeatherSource
from apps.supersky.services.transformers import (
    combine_azure_maps_data,
    combine_foreca_data,
    combine_google_weather_data,
    combine_open_meteo_data,
    determine_foreca_precip_type,
    determine_google_precip_type,
    determine_precipitation_type,
    map_azure_maps_icon,
    map_foreca_symbol,
    map_google_weather_icon,
    map_open_meteo_weather_code,
    parse_timestamp,
    round_precipitation,
    to_millimeters,
    transform_azure_maps_location,
    transform_foreca_hourly,
    transform_google_weather_hourly,
    transform_open_meteo_hourly,
)
from apps.supersky.tests import payloads


def ms(*args) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp() * 1000)


LOCATION = Location(
    zip_code='10001',
    city='New York',
    state='NY',
    country='United States',
    coordinates=Coordinates(latitude=40.7506, longitude=-73.9972),
)


class PrecipitationUnitTests(SimpleTestCase):
    """Tests for precipitation rounding and unit conversion."""

    def test_round_precipitation_drops_trace_amounts(self):
        self.assertEqual(round_precipitation(0.05), 0.0)
        self.assertEqual(round_precipitation(0.1), 0.1)

    def test_round_precipitation_keeps_two_decimals(self):
        self.assertEqual(round_precipitation(2.5400000000000005), 2.54)

    def test_round_precipitation_non_numeric(self):
        self.assertEqual(round_precipitation(None), 0.0)
        self.assertEqual(round_precipitation('1.2'), 0.0)

    def test_tenth_of_an_inch_is_2_54_mm(self):
        self.assertEqual(round_precipitation(to_millimeters(0.1, 'inch')), 2.54)
        self.assertEqual(round_precipitation(to_millimeters(0.1, 'in')), 2.54)
        self.assertEqual(round_precipitation(to_millimeters(0.1, 'INCHES')), 2.54)

    def test_millimeters_pass_through(self):
        self.assertEqual(to_millimeters(3, 'mm'), 3.0)
        self.assertEqual(to_millimeters(3, 'MILLIMETERS'), 3.0)

    def test_missing_unit_uses_default(self):
        self.assertEqual(to_millimeters(2, None, default_unit='mm'), 2.0)
        self.assertAlmostEqual(to_millimeters(1, None), 25.4)

    def test_unknown_unit_assumed_inches(self):
        with self.assertLogs('apps.supersky.services.transformers', level='WARNING'):
            self.assertAlmostEqual(to_millimeters(1, 'furlongs'), 25.4)


class TimestampTests(SimpleTestCase):
    """Tests for timestamp parsing."""

    def test_offset_aware_string(self):
        self.assertEqual(parse_timestamp('2025-05-23T14:00:00-04:00'), ms(2025, 5, 23, 18))

    def test_zulu_string(self):
        self.assertEqual(parse_timestamp('2025-05-23T18:00:00Z'), ms(2025, 5, 23, 18))

    def test_naive_string_uses_offset(self):
        self.assertEqual(parse_timestamp('2025-05-23T13:00', -4 * 3600), ms(2025, 5, 23, 17))

    def test_garbage_returns_none(self):
        self.assertIsNone(parse_timestamp('not a date'))
        self.assertIsNone(parse_timestamp(None))


class AzureMapsTransformerTests(SimpleTestCase):
    """Tests for Azure Maps transformers."""

    def test_icon_mapping(self):
        self.assertEqual(map_azure_maps_icon(1), 'sunny')
        self.assertEqual(map_azure_maps_icon(33), 'clear-night')
        self.assertEqual(map_azure_maps_icon(99), 'unknown')

    def test_precipitation_type_highest_probability_wins(self):
        self.assertEqual(determine_precipitation_type({'rainProbability': 40, 'snowProbability': 10}), 'rain')
        self.assertEqual(determine_precipitation_type({'snowProbability': 50, 'iceProbability': 5}), 'snow')

    def test_precipitation_type_tie_is_mixed(self):
        self.assertEqual(determine_precipitation_type({'rainProbability': 30, 'snowProbability': 30}), 'mixed')

    def test_precipitation_type_none_when_all_zero(self):
        self.assertIsNone(determine_precipitation_type({'rainProbability': 0}))
        self.assertIsNone(determine_precipitation_type(None))

    def test_location_from_search(self):
        location = transform_azure_maps_location(payloads.AZURE_SEARCH, '10001')
        self.assertEqual(location.city, 'New York')
        self.assertEqual(location.state, 'NY')
        self.assertEqual(location.coordinates.latitude, 40.7506)

    def test_location_without_coordinates(self):
        self.assertIsNone(transform_azure_maps_location({'results': [{'address': {}}]}, '10001'))
        self.assertIsNone(transform_azure_maps_location({'results': []}, '10001'))

    def test_combine(self):
        data = combine_azure_maps_data(LOCATION, payloads.AZURE_DAILY, payloads.AZURE_HOURLY)
        self.assertEqual(data.source, WeatherSource.AZURE_MAPS)

        self.assertEqual(data.current.temperature, 72.0)
        self.assertEqual(data.current.icon, 'showers')
        self.assertEqual(data.current.precipitation.amount, 2.54)
        self.assertEqual(data.current.precipitation.type, 'rain')

        day = data.daily[0]
        self.assertEqual(day.timestamp, ms(2025, 5, 23, 12))
        self.assertEqual(day.temperature_min, 55.0)
        self.assertEqual(day.temperature_max, 72.0)
        self.assertEqual(day.sunrise, 1748000000 * 1000)
        self.assertEqual(day.precipitation.amount, 2.54)

        hour = data.hourly[0]
        self.assertEqual(hour.timestamp, ms(2025, 5, 23, 18))
        self.assertEqual(hour.icon, 'cloudy')
        self.assertEqual(hour.precipitation.amount, 2.54)
        self.assertEqual(hour.precipitation.type, 'rain')

    def test_combine_with_empty_payloads(self):
        data = combine_azure_maps_data(LOCATION, {}, None)
        self.assertIsNone(data.current)
        self.assertEqual(data.hourly, [])
        self.assertEqual(data.daily, [])


class OpenMeteoTransformerTests(SimpleTestCase):
    """Tests for Open-Meteo transformers."""

    def test_weather_code_mapping(self):
        self.assertEqual(map_open_meteo_weather_code(0, True), ('Clear sky', 'sunny'))
        self.assertEqual(map_open_meteo_weather_code(0, False), ('Clear sky', 'clear-night'))
        self.assertEqual(map_open_meteo_weather_code(95, False), ('Thunderstorm', 'mostly-cloudy-thunderstorms-night'))
        self.assertEqual(map_open_meteo_weather_code(123), ('Unknown', 'unknown'))

    def test_current_uses_closest_hour(self):
        data = combine_open_meteo_data(LOCATION, payloads.OPEN_METEO)
        current = data.current
        self.assertEqual(current.temperature, 68.0)
        self.assertEqual(current.description, 'Slight rain')
        self.assertEqual(current.icon, 'partly-sunny-showers')
        self.assertEqual(current.humidity, 72)
        self.assertEqual(current.feels_like, 67.0)
        self.assertEqual(current.visibility, 5.0)
        self.assertEqual(current.precipitation.probability, 80)
        self.assertEqual(current.precipitation.amount, 2.54)

    def test_hourly(self):
        hourly = transform_open_meteo_hourly(payloads.OPEN_METEO)
        self.assertEqual(len(hourly), 2)
        self.assertEqual(hourly[0].timestamp, ms(2025, 5, 23, 17))
        self.assertEqual(hourly[0].visibility, 10.0)
        self.assertEqual(hourly[0].icon, 'cloudy')
        self.assertEqual(hourly[1].precipitation.amount, 2.54)
        self.assertEqual(hourly[1].precipitation.type, 'rain')

    def test_missing_probability_is_not_available(self):
        forecast = copy.deepcopy(payloads.OPEN_METEO)
        del forecast['hourly']['precipitation_probability']
        hourly = transform_open_meteo_hourly(forecast)
        self.assertEqual(hourly[0].precipitation.probability, 'n/a')

    def test_daily(self):
        data = combine_open_meteo_data(LOCATION, payloads.OPEN_METEO)
        day = data.daily[0]
        self.assertEqual(day.timestamp, ms(2025, 5, 23, 12))
        self.assertEqual(day.temperature_max, 75.0)
        self.assertEqual(day.temperature_min, 58.0)
        self.assertEqual(day.precipitation.amount, 12.7)
        self.assertEqual(day.sunrise, ms(2025, 5, 23, 9, 30))

    def test_millimeter_units_are_not_converted(self):
        forecast = copy.deepcopy(payloads.OPEN_METEO)
        forecast['hourly_units'] = {'precipitation': 'mm'}
        hourly = transform_open_meteo_hourly(forecast)
        self.assertEqual(hourly[1].precipitation.amount, 0.1)

    def test_empty_payload(self):
        data = combine_open_meteo_data(LOCATION, {})
        self.assertIsNone(data.current)
        self.assertEqual(data.hourly, [])
        self.assertEqual(data.daily, [])


class ForecaTransformerTests(SimpleTestCase):
    """Tests for Foreca transformers."""

    def test_symbol_mapping(self):
        self.assertEqual(map_foreca_symbol('d000'), 'sunny')
        self.assertEqual(map_foreca_symbol('n000'), 'clear-night')
        self.assertEqual(map_foreca_symbol('d999'), 'unknown')
        self.assertEqual(map_foreca_symbol(None), 'unknown')

    def test_precip_type_from_symbol(self):
        self.assertEqual(determine_foreca_precip_type('d620'), 'rain')
        self.assertEqual(determine_foreca_precip_type('n920'), 'snow')
        self.assertEqual(determine_foreca_precip_type('d930'), 'mixed')
        self.assertEqual(determine_foreca_precip_type('d940'), 'ice')
        self.assertIsNone(determine_foreca_precip_type('d100'))

    def test_combine(self):
        now = datetime(2025, 5, 23, 15, tzinfo=timezone.utc)
        data = combine_foreca_data(LOCATION, payloads.FORECA_CURRENT, payloads.FORECA_HOURLY, now=now)

        self.assertEqual(data.current.description, 'light rain')
        self.assertEqual(data.current.icon, 'partly-sunny-showers')
        self.assertEqual(data.current.precipitation.amount, 2.54)
        self.assertEqual(data.current.precipitation.type, 'rain')
        self.assertEqual(data.daily, [])

        hour = data.hourly[0]
        self.assertEqual(hour.description, 'Snow')
        self.assertEqual(hour.icon, 'mostly-cloudy-snow-night')
        self.assertEqual(hour.precipitation.amount, 0.0)
        self.assertEqual(hour.timestamp, ms(2025, 5, 23, 19))

    def test_placeholders_for_days_beyond_horizon(self):
        now = datetime(2025, 5, 23, 15, tzinfo=timezone.utc)
        hourly = transform_foreca_hourly(payloads.FORECA_HOURLY, now=now)
        self.assertEqual(len(hourly), 13)
        placeholder = hourly[1]
        self.assertTrue(placeholder.no_data_available)
        self.assertEqual(placeholder.timestamp, ms(2025, 5, 31, 6))
        self.assertEqual(placeholder.description, 'No data available')
        self.assertTrue(placeholder.to_dict()['noDataAvailable'])

    def test_without_placeholders(self):
        self.assertEqual(len(transform_foreca_hourly(payloads.FORECA_HOURLY, include_empty_days=False)), 1)

    def test_rate_limited_hourly_is_empty(self):
        self.assertEqual(transform_foreca_hourly({'status': 429, 'message': 'Rate limit exceeded'}), [])


class GoogleWeatherTransformerTests(SimpleTestCase):
    """Tests for Google Weather transformers."""

    def test_icon_mapping(self):
        self.assertEqual(map_google_weather_icon('CLEAR', True), 'sunny')
        self.assertEqual(map_google_weather_icon('CLEAR', False), 'clear-night')
        self.assertEqual(map_google_weather_icon('NOT_A_CONDITION'), 'unknown')

    def test_precip_type(self):
        self.assertEqual(determine_google_precip_type('THUNDERSTORM'), 'rain')
        self.assertEqual(determine_google_precip_type('HEAVY_SNOW'), 'snow')
        self.assertEqual(determine_google_precip_type('ICE_PELLETS'), 'ice')
        self.assertIsNone(determine_google_precip_type('CLEAR'))

    def test_hour_conversion(self):
        hour = transform_google_weather_hourly(payloads.GOOGLE_FORECAST)[0]
        self.assertEqual(hour.timestamp, ms(2025, 5, 23, 18))
        self.assertEqual(hour.temperature, 68.0)
        self.assertEqual(hour.feels_like, 66.2)
        self.assertEqual(hour.wind_speed, 10.0)
        self.assertEqual(hour.wind_gust, 20.0)
        self.assertEqual(hour.visibility, 9.9)
        self.assertEqual(hour.description, 'Light rain')
        self.assertEqual(hour.icon, 'partly-sunny-showers')
        self.assertEqual(hour.precipitation.probability, 65)
        self.assertEqual(hour.precipitation.amount, 2.54)
        self.assertEqual(hour.precipitation.type, 'rain')

    def test_millimeter_qpf(self):
        hour = copy.deepcopy(payloads.GOOGLE_HOUR)
        hour['precipitation']['qpf'] = {'quantity': 3.0, 'unit': 'MILLIMETERS'}
        parsed = transform_google_weather_hourly({'forecastHours': [hour]})[0]
        self.assertEqual(parsed.precipitation.amount, 3.0)

    def test_description_falls_back_to_condition_code(self):
        hour = {
            'interval': {'startTime': '2025-05-23T03:00:00Z'},
            'isDaytime': False,
            'conditionCode': 'PARTLY_CLOUDY',
        }
        parsed = transform_google_weather_hourly({'forecastHours': [hour]})[0]
        self.assertEqual(parsed.description, 'partly cloudy')
        self.assertEqual(parsed.icon, 'partly-cloudy-night')
        self.assertIsNone(parsed.precipitation.type)

    def test_combine(self):
        data = combine_google_weather_data(LOCATION, payloads.GOOGLE_FORECAST)
        self.assertEqual(data.source, WeatherSource.GOOGLE_WEATHER)
        self.assertEqual(data.current.temperature, 68.0)
        self.assertEqual(data.current.precipitation.amount, 2.54)
        self.assertFalse(data.is_mock_data)
        self.assertEqual(data.daily, [])

    def test_missing_condition_is_flagged_as_mock(self):
        hour = copy.deepcopy(payloads.GOOGLE_HOUR)
        del hour['weatherCondition']
        data = combine_google_weather_data(LOCATION, {'forecastHours': [hour]})
        self.assertTrue(data.is_mock_data)
        self.assertTrue(data.to_dict()['isMockData'])

    def test_wire_format_is_camel_case(self):
        payload = combine_google_weather_data(LOCATION, payloads.GOOGLE_FORECAST).to_dict()
        self.assertEqual(payload['source'], 'GoogleWeather')
        self.assertFalse(payload['isError'])
        self.assertEqual(payload['location']['zipCode'], '10001')
        self.assertIn('feelsLike', payload['current'])
        self.assertEqual(payload['hourly'][0]['precipitation']['unit'], 'mm')
        self.assertIn('isDay', payload['hourly'][0])
