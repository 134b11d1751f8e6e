import logging
import math
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.http import Http404, JsonResponse

logger = logging.getLogger(__name__)

# Development stand-in when no geolocation headers are present
NYC_COORDINATES = (40.7128, -74.0060)


def is_production() -> bool:
    return getattr(settings, 'APP_ENVIRONMENT', 'development') == 'production'


def client_ip(request) -> Optional[str]:
    """Client IP, checking X-Forwarded-For for proxies."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


@dataclass
class RequestGeo:
    """Coordinates attached to a request as ``request.geo``."""
    latitude: float
    longitude: float
    is_development_fallback: bool = False


def _header_coordinate(value: Optional[str]) -> Optional[float]:
    try:
        coordinate = float(value)
    except (TypeError, ValueError):
        return None
    # nan and inf parse as floats
    if not math.isfinite(coordinate):
        return None
    return round(coordinate, 4)


class GeolocationMiddleware:
    """
    Reads Cloudflare's CF-IPLatitude / CF-IPLongitude headers into ``request.geo``.

    Outside production a missing header pair falls back to New York City;
    in production ``request.geo`` is None.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.geo = self.resolve(request)
        return self.get_response(request)

    def resolve(self, request) -> Optional[RequestGeo]:
        latitude = _header_coordinate(request.META.get('HTTP_CF_IPLATITUDE'))
        longitude = _header_coordinate(request.META.get('HTTP_CF_IPLONGITUDE'))
        if latitude is not None and longitude is not None:
            return RequestGeo(latitude=latitude, longitude=longitude)

        if is_production():
            return None

        logger.debug("No geolocation headers, using NYC development fallback")
        return RequestGeo(
            latitude=NYC_COORDINATES[0],
            longitude=NYC_COORDINATES[1],
            is_development_fallback=True,
        )


class JsonExceptionMiddleware:
    """Turns unhandled view exceptions into a JSON 500."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if isinstance(exception, Http404):
            return None
        logger.error(f"Unhandled error on {request.path}: {exception}", exc_info=exception)
        message = 'Something went wrong!' if is_production() else (str(exception) or 'Something went wrong!')
        return JsonResponse({'error': True, 'message': message}, status=500)
