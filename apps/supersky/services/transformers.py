"""
Response transformers.

Pure functions mapping each provider's raw JSON into the shared schema in
``data``. They never raise on partial payloads: missing sections become empty
lists or ``None``. Precipitation always leaves here in millimeters.
"""

import logging
from dataclasses import fields
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from typing import Any, Optional

from .data import (
    Conditions,
    Coordinates,
    DailyForecast,
    HourlyForecast,
    Location,
    Precipitation,
    WeatherData,
    WeatherSource,
)

logger = logging.getLogger(__name__)

MM_PER_INCH = 25.4
METERS_PER_MILE = 1609
MPH_PER_KMH = 0.621371

INCH_UNITS = {'in', 'inch', 'inches'}
MM_UNITS = {'mm', 'millimeter', 'millimeters'}


# Shared helpers

def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _dig(data: Any, *keys: str) -> Any:
    """Walk nested dicts, returning None at the first missing level."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _series(block: dict, name: str, index: int) -> Any:
    values = block.get(name)
    if not values or index >= len(values):
        return None
    return values[index]


def to_millimeters(amount, unit: Optional[str] = None, default_unit: str = 'inch') -> float:
    """Convert a precipitation amount to mm according to its declared unit."""
    if not _is_number(amount):
        return 0.0
    unit_name = (unit or default_unit).lower()
    if unit_name in MM_UNITS:
        return float(amount)
    if unit_name not in INCH_UNITS:
        logger.warning(f"Unknown precipitation unit {unit!r}, assuming inches")
    return amount * MM_PER_INCH


def round_precipitation(amount) -> float:
    """Amounts under 0.1 mm read as zero; everything else keeps two decimals."""
    if not _is_number(amount) or amount < 0.1:
        return 0.0
    return round(amount, 2)


def parse_timestamp(value: Optional[str], utc_offset_seconds: int = 0) -> Optional[int]:
    """ISO 8601 string -> ms epoch. Naive times are read at ``utc_offset_seconds``."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (ValueError, AttributeError, TypeError):
        logger.debug(f"Unparseable timestamp: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_timezone(timedelta(seconds=utc_offset_seconds)))
    return int(parsed.timestamp() * 1000)


def noon_utc_timestamp(value: Optional[str]) -> Optional[int]:
    """Date (or datetime) string -> ms epoch at 12:00 UTC of that calendar date."""
    if not value:
        return None
    try:
        day = datetime.strptime(value.split('T')[0], '%Y-%m-%d')
    except ValueError:
        return None
    return int(day.replace(hour=12, tzinfo=dt_timezone.utc).timestamp() * 1000)


def _meters_to_miles(value) -> Optional[float]:
    return value / METERS_PER_MILE if _is_number(value) else None


def _as_conditions(record: Conditions) -> Conditions:
    return Conditions(**{f.name: getattr(record, f.name) for f in fields(Conditions)})


# Azure Maps

AZURE_MAPS_ICONS = {
    1: 'sunny',
    2: 'mostly-sunny',
    3: 'partly-sunny',
    4: 'intermittent-clouds',
    5: 'hazy-sunshine',
    6: 'mostly-cloudy',
    7: 'cloudy',
    8: 'dreary',
    11: 'fog',
    12: 'showers',
    13: 'mostly-cloudy-showers',
    14: 'partly-sunny-showers',
    15: 'thunderstorms',
    16: 'mostly-cloudy-thunderstorms',
    17: 'partly-sunny-thunderstorms',
    18: 'rain',
    19: 'flurries',
    20: 'mostly-cloudy-flurries',
    21: 'partly-sunny-flurries',
    22: 'snow',
    23: 'mostly-cloudy-snow',
    24: 'ice',
    25: 'sleet',
    26: 'freezing-rain',
    29: 'rain-and-snow',
    30: 'hot',
    31: 'cold',
    32: 'windy',
    33: 'clear-night',
    34: 'mostly-clear-night',
    35: 'partly-cloudy-night',
    36: 'intermittent-clouds-night',
    37: 'hazy-night',
    38: 'mostly-cloudy-night',
    39: 'partly-cloudy-showers-night',
    40: 'mostly-cloudy-showers-night',
    41: 'partly-cloudy-thunderstorms-night',
    42: 'mostly-cloudy-thunderstorms-night',
    43: 'mostly-cloudy-flurries-night',
    44: 'mostly-cloudy-snow-night',
}


def map_azure_maps_icon(icon_code) -> str:
    return AZURE_MAPS_ICONS.get(icon_code, 'unknown')


def determine_precipitation_type(block: Optional[dict]) -> Optional[str]:
    """Pick rain/snow/ice by highest probability; a tie at the top is 'mixed'."""
    if not block:
        return None
    ranked = sorted(
        [
            ('rain', block.get('rainProbability') or 0),
            ('snow', block.get('snowProbability') or 0),
            ('ice', block.get('iceProbability') or 0),
        ],
        key=lambda item: item[1],
        reverse=True,
    )
    if ranked[0][1] == 0:
        return None
    if ranked[0][1] == ranked[1][1]:
        return 'mixed'
    return ranked[0][0]


def _azure_precipitation(block: dict, default_type: Optional[str] = None) -> Precipitation:
    liquid = block.get('totalLiquid') or {}
    return Precipitation(
        probability=block.get('precipitationProbability') or 0,
        amount=round_precipitation(to_millimeters(liquid.get('value') or 0, liquid.get('unit'))),
        type=determine_precipitation_type(block) or default_type,
    )


def transform_azure_maps_location(search_data: Optional[dict], zip_code: str) -> Optional[Location]:
    """First search hit -> Location, or None when it has no coordinates."""
    results = (search_data or {}).get('results') or []
    if not results:
        return None
    result = results[0]
    latitude = _dig(result, 'position', 'lat')
    longitude = _dig(result, 'position', 'lon')
    if not latitude or not longitude:
        return None

    address = result.get('address') or {}
    return Location(
        zip_code=zip_code,
        city=address.get('municipality') or 'Unknown',
        state=address.get('countrySubdivision') or 'Unknown',
        country=address.get('country') or 'US',
        coordinates=Coordinates(latitude=latitude, longitude=longitude),
    )


def transform_azure_maps_daily(forecast_data: Optional[dict]) -> list[DailyForecast]:
    forecasts = (forecast_data or {}).get('forecasts')
    if not isinstance(forecasts, list):
        return []

    daily = []
    for forecast in forecasts:
        day = forecast.get('day') or {}
        sun = forecast.get('sun') or {}
        maximum = _dig(forecast, 'temperature', 'maximum', 'value') or 0
        daily.append(DailyForecast(
            timestamp=noon_utc_timestamp(forecast.get('date')),
            temperature_min=_dig(forecast, 'temperature', 'minimum', 'value') or 0,
            temperature_max=maximum,
            temperature=maximum,
            feels_like=_dig(forecast, 'realFeelTemperature', 'maximum', 'value') or 0,
            humidity=day.get('relativeHumidity') or 0,
            wind_speed=_dig(day, 'wind', 'speed', 'value') or 0,
            wind_direction=_dig(day, 'wind', 'direction', 'degrees'),
            wind_gust=_dig(day, 'windGust', 'speed', 'value'),
            cloud_cover=day.get('cloudCover'),
            description=day.get('shortPhrase') or 'Unknown',
            icon=map_azure_maps_icon(day.get('iconCode')),
            precipitation=_azure_precipitation(day),
            sunrise=sun['epochRise'] * 1000 if _is_number(sun.get('epochRise')) else None,
            sunset=sun['epochSet'] * 1000 if _is_number(sun.get('epochSet')) else None,
        ))
    return daily


def transform_azure_maps_hourly(hourly_data: Optional[dict]) -> list[HourlyForecast]:
    forecasts = (hourly_data or {}).get('forecasts')
    if not isinstance(forecasts, list):
        return []

    hourly = []
    for hour in forecasts:
        hourly.append(HourlyForecast(
            timestamp=parse_timestamp(hour.get('date')),
            is_day=hour.get('isDaylight'),
            temperature=_dig(hour, 'temperature', 'value') or 0,
            feels_like=_dig(hour, 'realFeelTemperature', 'value') or 0,
            humidity=hour.get('relativeHumidity') or 0,
            wind_speed=_dig(hour, 'wind', 'speed', 'value') or 0,
            wind_direction=_dig(hour, 'wind', 'direction', 'degrees') or 0,
            wind_gust=_dig(hour, 'windGust', 'speed', 'value'),
            visibility=_dig(hour, 'visibility', 'value'),
            uv_index=hour.get('uvIndex'),
            cloud_cover=hour.get('cloudCover'),
            description=hour.get('iconPhrase') or 'Unknown',
            icon=map_azure_maps_icon(hour.get('iconCode')),
            weather_condition=hour.get('iconPhrase') or '',
            precipitation=_azure_precipitation(hour, default_type='rain'),
        ))
    return hourly


def azure_maps_current(first_day: Optional[dict]) -> Optional[Conditions]:
    """Current conditions from the first raw daily forecast."""
    if not first_day:
        return None
    day = first_day.get('day') or {}
    return Conditions(
        temperature=_dig(first_day, 'temperature', 'maximum', 'value'),
        feels_like=_dig(first_day, 'realFeelTemperature', 'maximum', 'value'),
        humidity=day.get('relativeHumidity'),
        wind_speed=_dig(day, 'wind', 'speed', 'value'),
        wind_direction=_dig(day, 'wind', 'direction', 'degrees'),
        wind_gust=_dig(day, 'windGust', 'speed', 'value'),
        cloud_cover=day.get('cloudCover'),
        description=day.get('shortPhrase') or 'Unknown',
        icon=map_azure_maps_icon(day.get('iconCode')),
        precipitation=_azure_precipitation(day, default_type='rain'),
    )


def combine_azure_maps_data(
    location: Location,
    daily_data: Optional[dict],
    hourly_data: Optional[dict],
    last_updated: Optional[int] = None,
) -> WeatherData:
    forecasts = (daily_data or {}).get('forecasts') or []
    data = WeatherData(
        location=location,
        source=WeatherSource.AZURE_MAPS,
        current=azure_maps_current(forecasts[0] if forecasts else None),
        hourly=transform_azure_maps_hourly(hourly_data),
        daily=transform_azure_maps_daily(daily_data),
    )
    if last_updated is not None:
        data.last_updated = last_updated
    return data


# Open-Meteo

# WMO weather interpretation codes -> (description, day icon, night icon)
OPEN_METEO_CODES = {
    0: ('Clear sky', 'sunny', 'clear-night'),
    1: ('Mainly clear', 'mostly-sunny', 'mostly-clear-night'),
    2: ('Partly cloudy', 'partly-sunny', 'partly-cloudy-night'),
    3: ('Overcast', 'cloudy', 'cloudy'),
    45: ('Fog', 'fog', 'fog'),
    48: ('Depositing rime fog', 'fog', 'fog'),
    51: ('Light drizzle', 'partly-sunny-showers', 'partly-cloudy-showers-night'),
    53: ('Moderate drizzle', 'partly-sunny-showers', 'partly-cloudy-showers-night'),
    55: ('Dense drizzle', 'showers', 'mostly-cloudy-showers-night'),
    56: ('Light freezing drizzle', 'freezing-rain', 'freezing-rain'),
    57: ('Dense freezing drizzle', 'freezing-rain', 'freezing-rain'),
    61: ('Slight rain', 'partly-sunny-showers', 'partly-cloudy-showers-night'),
    63: ('Moderate rain', 'rain', 'rain'),
    65: ('Heavy rain', 'rain', 'rain'),
    66: ('Light freezing rain', 'freezing-rain', 'freezing-rain'),
    67: ('Heavy freezing rain', 'freezing-rain', 'freezing-rain'),
    71: ('Slight snow fall', 'partly-sunny-flurries', 'mostly-cloudy-flurries-night'),
    73: ('Moderate snow fall', 'snow', 'mostly-cloudy-snow-night'),
    75: ('Heavy snow fall', 'snow', 'mostly-cloudy-snow-night'),
    77: ('Snow grains', 'snow', 'mostly-cloudy-snow-night'),
    80: ('Slight rain showers', 'partly-sunny-showers', 'partly-cloudy-showers-night'),
    81: ('Moderate rain showers', 'showers', 'mostly-cloudy-showers-night'),
    82: ('Violent rain showers', 'rain', 'rain'),
    85: ('Slight snow showers', 'partly-sunny-flurries', 'mostly-cloudy-flurries-night'),
    86: ('Heavy snow showers', 'snow', 'mostly-cloudy-snow-night'),
    95: ('Thunderstorm', 'thunderstorms', 'mostly-cloudy-thunderstorms-night'),
    96: ('Thunderstorm with slight hail', 'thunderstorms', 'mostly-cloudy-thunderstorms-night'),
    99: ('Thunderstorm with heavy hail', 'thunderstorms', 'mostly-cloudy-thunderstorms-night'),
}


def map_open_meteo_weather_code(code, is_day: bool = True) -> tuple[str, str]:
    """Return (description, icon) for a WMO weather code."""
    if code not in OPEN_METEO_CODES:
        return 'Unknown', 'unknown'
    description, day_icon, night_icon = OPEN_METEO_CODES[code]
    return description, day_icon if is_day else night_icon


def _open_meteo_probability(block: dict, name: str, index: int):
    value = _series(block, name, index)
    return 'n/a' if value is None else value


def _open_meteo_hour(forecast_data: dict, index: int) -> HourlyForecast:
    hourly = forecast_data['hourly']
    units = forecast_data.get('hourly_units') or {}
    offset = forecast_data.get('utc_offset_seconds') or 0
    is_day = _series(hourly, 'is_day', index) == 1
    description, icon = map_open_meteo_weather_code(_series(hourly, 'weathercode', index), is_day)
    return HourlyForecast(
        timestamp=parse_timestamp(hourly['time'][index], offset),
        is_day=is_day,
        temperature=_series(hourly, 'temperature_2m', index),
        feels_like=_series(hourly, 'apparent_temperature', index),
        humidity=_series(hourly, 'relativehumidity_2m', index),
        wind_speed=_series(hourly, 'windspeed_10m', index),
        wind_direction=_series(hourly, 'winddirection_10m', index),
        pressure=_series(hourly, 'surface_pressure', index),
        visibility=_meters_to_miles(_series(hourly, 'visibility', index)),
        uv_index=_series(hourly, 'uv_index', index),
        description=description,
        icon=icon,
        weather_condition=description,
        precipitation=Precipitation(
            probability=_open_meteo_probability(hourly, 'precipitation_probability', index),
            amount=round_precipitation(
                to_millimeters(_series(hourly, 'precipitation', index) or 0, units.get('precipitation'))
            ),
            type='rain',
        ),
    )


def transform_open_meteo_hourly(forecast_data: Optional[dict]) -> list[HourlyForecast]:
    if not forecast_data or not _dig(forecast_data, 'hourly', 'time'):
        return []
    return [_open_meteo_hour(forecast_data, index) for index in range(len(forecast_data['hourly']['time']))]


def transform_open_meteo_daily(forecast_data: Optional[dict]) -> list[DailyForecast]:
    if not forecast_data or not _dig(forecast_data, 'daily', 'time'):
        return []

    daily = forecast_data['daily']
    units = forecast_data.get('daily_units') or {}
    offset = forecast_data.get('utc_offset_seconds') or 0
    records = []
    for index, day in enumerate(daily['time']):
        description, icon = map_open_meteo_weather_code(_series(daily, 'weathercode', index), True)
        maximum = _series(daily, 'temperature_2m_max', index)
        records.append(DailyForecast(
            timestamp=noon_utc_timestamp(day),
            temperature_min=_series(daily, 'temperature_2m_min', index),
            temperature_max=maximum,
            temperature=maximum,
            feels_like=_series(daily, 'apparent_temperature_max', index),
            wind_speed=_series(daily, 'windspeed_10m_max', index),
            wind_direction=_series(daily, 'winddirection_10m_dominant', index),
            uv_index=_series(daily, 'uv_index_max', index),
            description=description,
            icon=icon,
            precipitation=Precipitation(
                probability=_open_meteo_probability(daily, 'precipitation_probability_max', index),
                amount=round_precipitation(
                    to_millimeters(_series(daily, 'precipitation_sum', index) or 0, units.get('precipitation_sum'))
                ),
                type='rain',
            ),
            sunrise=parse_timestamp(_series(daily, 'sunrise', index), offset),
            sunset=parse_timestamp(_series(daily, 'sunset', index), offset),
        ))
    return records


def open_meteo_current(forecast_data: Optional[dict]) -> Optional[Conditions]:
    """
    Current conditions.

    Uses ``current_weather`` for temperature and wind, filling humidity,
    precipitation, UV and visibility from the closest hourly slot. Without
    ``current_weather`` the first hourly record stands in.
    """
    if not forecast_data:
        return None

    has_hourly = bool(_dig(forecast_data, 'hourly', 'time'))
    current = forecast_data.get('current_weather')
    if not current:
        return _as_conditions(_open_meteo_hour(forecast_data, 0)) if has_hourly else None

    description, icon = map_open_meteo_weather_code(
        current.get('weathercode'), current.get('is_day', 1) == 1
    )
    conditions = Conditions(
        temperature=current.get('temperature'),
        feels_like=current.get('temperature'),
        wind_speed=current.get('windspeed'),
        wind_direction=current.get('winddirection'),
        description=description,
        icon=icon,
        precipitation=Precipitation(probability=0, amount=0.0, type='rain'),
    )
    if not has_hourly:
        return conditions

    offset = forecast_data.get('utc_offset_seconds') or 0
    current_time = parse_timestamp(current.get('time'), offset)
    hour_times = [parse_timestamp(value, offset) for value in forecast_data['hourly']['time']]
    closest = 0
    if current_time is not None:
        closest = min(
            range(len(hour_times)),
            key=lambda i: abs(current_time - hour_times[i]) if hour_times[i] is not None else float('inf'),
        )

    hour = _open_meteo_hour(forecast_data, closest)
    conditions.humidity = hour.humidity or 0
    conditions.uv_index = hour.uv_index or 0
    conditions.visibility = hour.visibility or 0
    if hour.feels_like is not None:
        conditions.feels_like = hour.feels_like
    conditions.precipitation = hour.precipitation
    return conditions


def combine_open_meteo_data(
    location: Location,
    forecast_data: Optional[dict],
    last_updated: Optional[int] = None,
) -> WeatherData:
    data = WeatherData(
        location=location,
        source=WeatherSource.OPEN_METEO,
        current=open_meteo_current(forecast_data),
        hourly=transform_open_meteo_hourly(forecast_data),
        daily=transform_open_meteo_daily(forecast_data),
    )
    if last_updated is not None:
        data.last_updated = last_updated
    return data


# Foreca

# Symbol code (without the d/n prefix) -> (description, day icon, night icon)
FORECA_SYMBOLS = {
    '000': ('Clear', 'sunny', 'clear-night'),
    '100': ('Mostly Clear', 'mostly-sunny', 'mostly-clear-night'),
    '200': ('Partly Cloudy', 'partly-sunny', 'partly-cloudy-night'),
    '210': ('Partly Cloudy', 'partly-sunny', 'partly-cloudy-night'),
    '300': ('Cloudy', 'cloudy', 'cloudy'),
    '400': ('Overcast', 'cloudy', 'cloudy'),
    '500': ('Fog', 'fog', 'fog'),
    '600': ('Light Rain', 'partly-sunny-showers', 'partly-cloudy-showers-night'),
    '610': ('Rain Showers', 'partly-sunny-showers', 'partly-cloudy-showers-night'),
    '620': ('Rain', 'rain', 'rain'),
    '700': ('Heavy Rain', 'rain', 'rain'),
    '800': ('Thunderstorms', 'thunderstorms', 'mostly-cloudy-thunderstorms-night'),
    '900': ('Light Snow', 'partly-sunny-flurries', 'mostly-cloudy-flurries-night'),
    '910': ('Snow Showers', 'snow', 'mostly-cloudy-snow-night'),
    '920': ('Snow', 'snow', 'mostly-cloudy-snow-night'),
    '930': ('Sleet', 'sleet', 'sleet'),
    '940': ('Freezing Rain', 'freezing-rain', 'freezing-rain'),
}

# Days 8-10 are beyond Foreca's hourly horizon
FORECA_PLACEHOLDER_DAYS = (8, 9, 10)
FORECA_PLACEHOLDER_HOURS = (6, 12, 18, 0)


def map_foreca_symbol(symbol: Optional[str]) -> str:
    if not symbol or symbol[1:] not in FORECA_SYMBOLS:
        return 'unknown'
    _, day_icon, night_icon = FORECA_SYMBOLS[symbol[1:]]
    return day_icon if symbol[0] == 'd' else night_icon


def foreca_description(symbol: Optional[str], phrase: Optional[str] = None) -> str:
    if phrase:
        return phrase
    if not symbol or symbol[1:] not in FORECA_SYMBOLS:
        return 'Unknown'
    return FORECA_SYMBOLS[symbol[1:]][0]


def determine_foreca_precip_type(symbol: Optional[str]) -> Optional[str]:
    if not symbol:
        return None
    try:
        code = int(symbol[1:])
    except ValueError:
        return None
    if 600 <= code < 900:
        return 'rain'
    if 900 <= code < 930:
        return 'snow'
    if code == 930:
        return 'mixed'
    if code == 940:
        return 'ice'
    return None


def _foreca_reading(record: dict, cls: type = Conditions, **extra):
    symbol = record.get('symbol')
    return cls(
        temperature=record.get('temperature'),
        feels_like=record.get('feelsLikeTemp'),
        humidity=record.get('relHumidity'),
        wind_speed=record.get('windSpeed'),
        wind_direction=record.get('windDir'),
        wind_gust=record.get('windGust'),
        pressure=record.get('pressure'),
        visibility=record.get('visibility'),
        uv_index=record.get('uvIndex'),
        cloud_cover=record.get('cloudiness'),
        description=foreca_description(symbol, record.get('symbolPhrase')),
        icon=map_foreca_symbol(symbol),
        precipitation=Precipitation(
            probability=record.get('precipProb'),
            # Foreca reports millimeters natively
            amount=round_precipitation(to_millimeters(record.get('precipAccum') or 0, 'mm')),
            type=determine_foreca_precip_type(symbol),
        ),
        **extra,
    )


def transform_foreca_current(current_data: Optional[dict]) -> Optional[Conditions]:
    current = (current_data or {}).get('current')
    if not current:
        return None
    return _foreca_reading(current)


def _foreca_placeholders(now: datetime) -> list[HourlyForecast]:
    placeholders = []
    for day in FORECA_PLACEHOLDER_DAYS:
        date = (now + timedelta(days=day)).date()
        for hour in FORECA_PLACEHOLDER_HOURS:
            moment = datetime(date.year, date.month, date.day, hour, tzinfo=dt_timezone.utc)
            placeholders.append(HourlyForecast(
                timestamp=int(moment.timestamp() * 1000),
                description='No data available',
                icon='unknown',
                precipitation=Precipitation(probability=None, amount=None, type=None),
                no_data_available=True,
            ))
    return placeholders


def transform_foreca_hourly(
    forecast_data: Optional[dict],
    include_empty_days: bool = True,
    now: Optional[datetime] = None,
) -> list[HourlyForecast]:
    """Up to 168 hours, then placeholder slots for days 8-10."""
    if not forecast_data or forecast_data.get('status') == 429 or not forecast_data.get('forecast'):
        logger.warning("Foreca hourly data rate limited or missing")
        return []

    hourly = [
        _foreca_reading(
            hour,
            cls=HourlyForecast,
            timestamp=parse_timestamp(hour.get('time')),
            weather_condition=hour.get('symbolPhrase'),
        )
        for hour in forecast_data['forecast']
    ]
    if include_empty_days:
        hourly.extend(_foreca_placeholders(now or datetime.now(dt_timezone.utc)))
    return hourly


def combine_foreca_data(
    location: Location,
    current_data: Optional[dict],
    hourly_data: Optional[dict],
    last_updated: Optional[int] = None,
    now: Optional[datetime] = None,
) -> WeatherData:
    data = WeatherData(
        location=location,
        source=WeatherSource.FORECA,
        current=transform_foreca_current(current_data),
        hourly=transform_foreca_hourly(hourly_data, now=now),
        daily=[],
    )
    if last_updated is not None:
        data.last_updated = last_updated
    return data


# Google Weather

GOOGLE_WEATHER_ICONS = {
    'CONDITION_UNSPECIFIED': ('unknown', 'unknown'),
    'CLEAR': ('sunny', 'clear-night'),
    'MOSTLY_CLEAR': ('mostly-sunny', 'mostly-clear-night'),
    'PARTLY_CLOUDY': ('partly-sunny', 'partly-cloudy-night'),
    'MOSTLY_CLOUDY': ('mostly-cloudy', 'mostly-cloudy-night'),
    'CLOUDY': ('cloudy', 'cloudy'),
    'FOG': ('fog', 'fog'),
    'LIGHT_FOG': ('fog', 'fog'),
    'LIGHT_RAIN': ('partly-sunny-showers', 'partly-cloudy-showers-night'),
    'RAIN': ('rain', 'rain'),
    'HEAVY_RAIN': ('rain', 'rain'),
    'LIGHT_SNOW': ('partly-sunny-flurries', 'mostly-cloudy-flurries-night'),
    'SNOW': ('snow', 'snow'),
    'HEAVY_SNOW': ('snow', 'snow'),
    'FREEZING_DRIZZLE': ('freezing-rain', 'freezing-rain'),
    'FREEZING_RAIN': ('freezing-rain', 'freezing-rain'),
    'LIGHT_FREEZING_RAIN': ('freezing-rain', 'freezing-rain'),
    'HEAVY_FREEZING_RAIN': ('freezing-rain', 'freezing-rain'),
    'ICE_PELLETS': ('sleet', 'sleet'),
    'HEAVY_ICE_PELLETS': ('sleet', 'sleet'),
    'LIGHT_ICE_PELLETS': ('sleet', 'sleet'),
    'THUNDERSTORM': ('thunderstorms', 'mostly-cloudy-thunderstorms-night'),
    'WINDY': ('windy', 'windy'),
    'HAZE': ('hazy-sunshine', 'hazy-night'),
    'SMOKE': ('hazy-sunshine', 'hazy-night'),
    'DUST': ('hazy-sunshine', 'hazy-night'),
    'TORNADO': ('thunderstorms', 'thunderstorms'),
    'HURRICANE': ('thunderstorms', 'thunderstorms'),
}


def map_google_weather_icon(condition: Optional[str], is_day: bool = True) -> str:
    if condition not in GOOGLE_WEATHER_ICONS:
        return 'unknown'
    day_icon, night_icon = GOOGLE_WEATHER_ICONS[condition]
    return day_icon if is_day else night_icon


def determine_google_precip_type(condition: Optional[str]) -> Optional[str]:
    if not condition:
        return None
    if ('RAIN' in condition or condition == 'THUNDERSTORM' or 'SHOWER' in condition
            or 'STORM' in condition or condition == 'DRIZZLE'):
        return 'rain'
    if 'SNOW' in condition or 'FLURR' in condition:
        return 'snow'
    if 'ICE' in condition or 'FREEZING' in condition or condition == 'SLEET':
        return 'ice'
    if 'MIXED' in condition:
        return 'mixed'
    return None


def _google_temperature(block: Optional[dict]) -> Optional[float]:
    degrees = _dig(block, 'degrees')
    if not _is_number(degrees):
        return None
    if block.get('unit') == 'CELSIUS':
        degrees = degrees * 9 / 5 + 32
    return round(degrees, 1)


def _google_speed(block: Optional[dict]) -> Optional[float]:
    value = _dig(block, 'value')
    if not _is_number(value):
        return None
    if block.get('unit') == 'KILOMETERS_PER_HOUR':
        value = value * MPH_PER_KMH
    return round(value, 1)


def _google_visibility(block: Optional[dict]) -> Optional[float]:
    distance = _dig(block, 'distance')
    if not _is_number(distance):
        return None
    if block.get('unit') == 'KILOMETERS':
        distance = distance * MPH_PER_KMH
    return round(distance, 1)


def _google_hour(hour: dict) -> HourlyForecast:
    time_string = hour.get('time') or _dig(hour, 'interval', 'startTime')
    timestamp = parse_timestamp(time_string)

    is_day = hour.get('isDaytime')
    if is_day is None and timestamp is not None:
        local_hour = datetime.fromtimestamp(timestamp / 1000, dt_timezone.utc).hour
        is_day = 6 <= local_hour < 20

    condition = _dig(hour, 'weatherCondition', 'type') or hour.get('conditionCode')
    description = _dig(hour, 'weatherCondition', 'description', 'text')
    if not description:
        description = condition.replace('_', ' ').lower() if condition else 'unknown'

    probability = hour.get('precipitationProbability') or 0
    amount = 0.0
    precip_type = determine_google_precip_type(condition)

    legacy_amount = hour.get('precipitationAmount') or {}
    if legacy_amount.get('value') and legacy_amount.get('unit'):
        amount = to_millimeters(legacy_amount['value'], legacy_amount['unit'])

    precipitation = hour.get('precipitation') or {}
    percent = _dig(precipitation, 'probability', 'percent')
    if percent is not None:
        probability = percent
    quantity = _dig(precipitation, 'qpf', 'quantity')
    if quantity is not None:
        amount = to_millimeters(quantity, _dig(precipitation, 'qpf', 'unit'))
    reported_type = _dig(precipitation, 'probability', 'type')
    if reported_type:
        precip_type = reported_type.lower()

    return HourlyForecast(
        timestamp=timestamp,
        is_day=is_day,
        temperature=_google_temperature(hour.get('temperature')),
        feels_like=_google_temperature(hour.get('feelsLikeTemperature')),
        humidity=hour.get('relativeHumidity', hour.get('humidity')),
        wind_speed=_google_speed(_dig(hour, 'wind', 'speed')),
        wind_direction=_dig(hour, 'wind', 'direction', 'degrees'),
        wind_gust=_google_speed(_dig(hour, 'wind', 'gust')),
        pressure=_dig(hour, 'airPressure', 'meanSeaLevelMillibars'),
        visibility=_google_visibility(hour.get('visibility')),
        cloud_cover=hour.get('cloudCover'),
        uv_index=hour.get('uvIndex'),
        description=description,
        icon=map_google_weather_icon(condition, is_day is not False),
        weather_condition=condition,
        precipitation=Precipitation(
            probability=probability,
            amount=round_precipitation(amount),
            type=precip_type,
        ),
    )


def transform_google_weather_hourly(forecast_data: Optional[dict]) -> list[HourlyForecast]:
    hours = (forecast_data or {}).get('forecastHours')
    if not isinstance(hours, list):
        return []
    return [_google_hour(hour) for hour in hours]


def google_weather_current(forecast_data: Optional[dict]) -> Optional[Conditions]:
    """The first forecast hour stands in for current conditions."""
    hours = (forecast_data or {}).get('forecastHours')
    if not hours:
        return None
    return _as_conditions(_google_hour(hours[0]))


def combine_google_weather_data(
    location: Location,
    forecast_data: Optional[dict],
    last_updated: Optional[int] = None,
) -> WeatherData:
    hours = (forecast_data or {}).get('forecastHours') or []
    data = WeatherData(
        location=location,
        source=WeatherSource.GOOGLE_WEATHER,
        current=google_weather_current(forecast_data),
        hourly=transform_google_weather_hourly(forecast_data),
        daily=[],
    )
    # Live responses always carry weatherCondition; canned fixtures do not
    if hours and not hours[0].get('weatherCondition'):
        data.is_mock_data = True
        data.mock_data_reason = 'Google Weather response did not include condition data'
    if last_updated is not None:
        data.last_updated = last_updated
    return data
