"""
Normalized weather data shared by every provider.

Field names are snake_case here and camelCase on the wire; ``to_dict`` does
the conversion. Temperatures are Fahrenheit, wind is mph and precipitation
amounts are always millimeters.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Optional, Union

from django.utils import timezone


class WeatherSource(Enum):
    """Weather provider, valued by its wire tag."""
    GOOGLE_WEATHER = 'GoogleWeather'
    AZURE_MAPS = 'AzureMaps'
    FORECA = 'Foreca'
    OPEN_METEO = 'OpenMeteo'

    @property
    def query_name(self) -> str:
        """Lowercase name used in ``?source=`` and cache keys."""
        return self.value.lower()

    @classmethod
    def from_query(cls, value: str) -> 'WeatherSource':
        for source in cls:
            if source.query_name == (value or '').lower():
                return source
        raise ValueError(f"Unsupported weather source: {value}")


# Fixed response order for the four-provider comparison
TRIPLE_CHECK_ORDER = (
    WeatherSource.GOOGLE_WEATHER,
    WeatherSource.AZURE_MAPS,
    WeatherSource.FORECA,
    WeatherSource.OPEN_METEO,
)


def now_ms() -> int:
    return int(timezone.now().timestamp() * 1000)


def _camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


def _serialize(value: Any) -> Any:
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    return value


class _WireMixin:
    def to_dict(self) -> dict:
        return {_camel(f.name): _serialize(getattr(self, f.name)) for f in fields(self)}


@dataclass
class Coordinates(_WireMixin):
    latitude: float
    longitude: float


@dataclass
class Location(_WireMixin):
    """Where a forecast applies. Set once per request."""
    zip_code: str
    city: str
    state: str
    country: str
    coordinates: Coordinates
    is_development_fallback: bool = False
    fallback_reason: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            'zipCode': self.zip_code,
            'city': self.city,
            'state': self.state,
            'country': self.country,
            'coordinates': self.coordinates.to_dict(),
        }
        if self.is_development_fallback:
            data['isDevelopmentFallback'] = True
            data['fallbackReason'] = self.fallback_reason
        return data


@dataclass
class Precipitation(_WireMixin):
    probability: Union[float, str, None] = 0  # percent, or "n/a" when the provider omits it
    amount: Optional[float] = 0.0  # mm
    unit: str = 'mm'
    type: Optional[str] = None  # rain, snow, ice, mixed


@dataclass
class Conditions(_WireMixin):
    """Weather readings common to current, hourly and daily records."""
    temperature: Optional[float] = None
    feels_like: Optional[float] = None
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    wind_direction: Optional[float] = None
    wind_gust: Optional[float] = None
    pressure: Optional[float] = None
    visibility: Optional[float] = None  # miles
    uv_index: Optional[float] = None
    cloud_cover: Optional[float] = None
    description: str = 'Unknown'
    icon: str = 'unknown'
    precipitation: Precipitation = field(default_factory=Precipitation)


@dataclass
class HourlyForecast(Conditions):
    timestamp: Optional[int] = None  # ms epoch
    is_day: Optional[bool] = None
    weather_condition: Optional[str] = None
    no_data_available: bool = False


@dataclass
class DailyForecast(Conditions):
    timestamp: Optional[int] = None  # ms epoch, noon UTC of the forecast date
    temperature_min: Optional[float] = None
    temperature_max: Optional[float] = None
    sunrise: Optional[int] = None
    sunset: Optional[int] = None


@dataclass
class WeatherData:
    """Successful provider result."""
    location: Location
    source: WeatherSource
    current: Optional[Conditions] = None
    hourly: list[HourlyForecast] = field(default_factory=list)
    daily: list[DailyForecast] = field(default_factory=list)
    last_updated: int = field(default_factory=now_ms)
    is_mock_data: bool = False
    mock_data_reason: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return False

    def to_dict(self) -> dict:
        data = {
            'location': self.location.to_dict(),
            'current': _serialize(self.current),
            'hourly': _serialize(self.hourly),
            'daily': _serialize(self.daily),
            'source': self.source.value,
            'lastUpdated': self.last_updated,
            'isError': False,
        }
        if self.is_mock_data:
            data['isMockData'] = True
            data['mockDataReason'] = self.mock_data_reason
        return data


@dataclass
class ProviderError:
    """Failed provider result. Carries no readings, only what went wrong."""
    location: Location
    source: WeatherSource
    error_message: str
    rate_limited: bool = False
    last_updated: int = field(default_factory=now_ms)

    @property
    def is_error(self) -> bool:
        return True

    def to_dict(self) -> dict:
        return {
            'location': self.location.to_dict(),
            'current': None,
            'hourly': [],
            'daily': [],
            'source': self.source.value,
            'lastUpdated': self.last_updated,
            'isError': True,
            'errorMessage': self.error_message,
            'rateLimited': self.rate_limited,
        }


SourceResult = WeatherData | ProviderError


@dataclass
class IPLocation:
    """Approximate location of a client IP."""
    ip: str
    zip_code: str
    city: str
    state: str
    region: str
    country: str
    country_code: str
    coordinates: Coordinates
    timezone: str
    source: str
    last_updated: int = field(default_factory=now_ms)
    is_fallback: bool = False
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            'ip': self.ip,
            'location': {
                'zipCode': self.zip_code,
                'city': self.city,
                'state': self.state,
                'region': self.region,
                'country': self.country,
                'countryCode': self.country_code,
                'coordinates': self.coordinates.to_dict(),
                'timezone': self.timezone,
            },
            'lastUpdated': self.last_updated,
            'source': self.source,
        }
        if self.is_fallback:
            data['isFallback'] = True
            data['errorMessage'] = self.error_message
        return data
