from .cache import WeatherCache
from .data import (
    IPLocation,
    Location,
    ProviderError,
    SourceResult,
    WeatherData,
    WeatherSource,
)
from .providers import (
    LocationNotFoundError,
    ProviderNotConfiguredError,
    RateLimitError,
    WeatherServiceError,
)
from .weather import WeatherService, validate_zip_code

__all__ = [
    'WeatherCache',
    'WeatherService',
    'WeatherData',
    'ProviderError',
    'SourceResult',
    'WeatherSource',
    'Location',
    'IPLocation',
    'WeatherServiceError',
    'ProviderNotConfiguredError',
    'RateLimitError',
    'LocationNotFoundError',
    'validate_zip_code',
]
