import logging

from django.apps import apps
from django.conf import settings as django_settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from core.middleware import client_ip, is_production

from .services import (
    LocationNotFoundError,
    WeatherService,
    WeatherServiceError,
    WeatherSource,
    validate_zip_code,
)
from .services.weather import LOCATION_SOURCES

logger = logging.getLogger(__name__)

API_VERSION = '1.0.0'
DEFAULT_SOURCE = 'azuremaps'

LOCATION_UNAVAILABLE_MESSAGE = 'Location coordinates not available. Cloudflare geolocation headers not found.'
LOCATION_UNAVAILABLE_SUGGESTION = (
    'In development, consider using a ZIP code instead or ensure Cloudflare headers are present.'
)


def get_weather_service() -> WeatherService:
    return apps.get_app_config('supersky').weather_service


def error_response(message: str, status: int, **extra) -> JsonResponse:
    return JsonResponse({'error': True, 'message': message, **extra}, status=status)


def _force_refresh(request) -> bool:
    return request.GET.get('forceRefresh') == 'true'


def _parse_source(request, allowed=None) -> WeatherSource:
    """Raises ValueError for unknown or disallowed sources."""
    source_name = request.GET.get('source', DEFAULT_SOURCE)
    source = WeatherSource.from_query(source_name)
    if allowed is not None and source not in allowed:
        raise ValueError(f"Unsupported weather source: {source_name}")
    return source


def _lookup_failed(zip_code: str, error: WeatherServiceError) -> JsonResponse:
    if isinstance(error, LocationNotFoundError):
        return error_response(str(error), 404)
    logger.warning(f"ZIP lookup failed for {zip_code}: {error}")
    return error_response(f"Failed to look up ZIP code {zip_code}: {error}", 502)


@require_GET
def health(request):
    """Health check endpoint."""
    return JsonResponse({'status': 'ok'})


@require_GET
def api_status(request):
    return JsonResponse({
        'demoMode': getattr(django_settings, 'APP_ENVIRONMENT', 'development') == 'demo',
        'version': API_VERSION,
    })


@csrf_exempt
@require_POST
def clear_cache(request):
    """Empty the server-side weather cache."""
    cleared = get_weather_service().clear_cache()
    return JsonResponse({
        'success': True,
        'message': 'Server cache cleared successfully',
        'entriesCleared': cleared,
    })


@require_GET
def ip_location(request):
    """Approximate location of the caller's IP address."""
    try:
        location = get_weather_service().get_ip_location(client_ip(request))
    except LocationNotFoundError as e:
        return error_response(str(e), 404, locationData=e.location_data)
    return JsonResponse(location.to_dict())


@require_GET
def weather_by_location(request):
    """Forecast for coordinates supplied by GeolocationMiddleware."""
    geo = getattr(request, 'geo', None)
    if geo is None:
        return error_response(
            LOCATION_UNAVAILABLE_MESSAGE,
            400,
            isDevelopment=not is_production(),
            suggestion=LOCATION_UNAVAILABLE_SUGGESTION,
        )

    try:
        source = _parse_source(request, allowed=LOCATION_SOURCES)
    except ValueError as e:
        return error_response(str(e), 400)

    result = get_weather_service().get_weather_for_coordinates(
        geo.latitude,
        geo.longitude,
        source,
        force_refresh=_force_refresh(request),
        is_development_fallback=geo.is_development_fallback,
    )
    return JsonResponse(result.to_dict())


@require_GET
def weather_for_zip(request, zip_code):
    """Single-provider forecast for a ZIP code."""
    if not validate_zip_code(zip_code):
        return error_response('Invalid ZIP code. Must be 5 digits.', 400)
    try:
        source = _parse_source(request)
    except ValueError as e:
        return error_response(str(e), 400)

    try:
        result = get_weather_service().get_weather(zip_code, source, force_refresh=_force_refresh(request))
    except WeatherServiceError as e:
        return _lookup_failed(zip_code, e)
    return JsonResponse(result.to_dict())


@require_GET
def triple_check(request, zip_code):
    """All four providers side by side, in fixed order."""
    if not validate_zip_code(zip_code):
        return error_response('Invalid ZIP code. Must be 5 digits.', 400)

    try:
        results = get_weather_service().get_triple_check(zip_code, force_refresh=_force_refresh(request))
    except WeatherServiceError as e:
        return _lookup_failed(zip_code, e)
    return JsonResponse([result.to_dict() for result in results], safe=False)
