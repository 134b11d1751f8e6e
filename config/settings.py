import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env from the project root (same directory as manage.py)
load_dotenv(BASE_DIR / '.env', override=True)


def env_bool(name: str, default: bool = False) -> bool:
    return os.environ.get(name, str(default)).lower() in ('1', 'true', 'yes', 'on')


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-supersky-development-key')
DEBUG = env_bool('DJANGO_DEBUG', False)
ALLOWED_HOSTS = [h.strip() for h in os.environ.get('ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if h.strip()]

# NODE_ENV is still honored for existing deployments
APP_ENVIRONMENT = os.environ.get('APP_ENV') or os.environ.get('NODE_ENV') or 'development'

INSTALLED_APPS = [
    'apps.supersky',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
    'core.middleware.GeolocationMiddleware',
    'core.middleware.JsonExceptionMiddleware',
]

ROOT_URLCONF = 'config.urls'
WSGI_APPLICATION = 'config.wsgi.application'

# Everything lives in the in-memory WeatherCache
DATABASES = {}

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = False
USE_TZ = True

# Weather providers
AZURE_MAPS_API_KEY = os.environ.get('AZURE_MAPS_API_KEY', '')
AZURE_MAPS_BASE_URL = os.environ.get('AZURE_MAPS_BASE_URL', 'https://atlas.microsoft.com')
OPEN_METEO_BASE_URL = os.environ.get('OPEN_METEO_BASE_URL', 'https://api.open-meteo.com')
RAPIDAPI_KEY = os.environ.get('RAPIDAPI_KEY', '')
RAPIDAPI_HOST = os.environ.get('RAPIDAPI_HOST', 'foreca-weather.p.rapidapi.com')
GOOGLE_WEATHER_API_KEY = os.environ.get('GOOGLE_WEATHER_API_KEY', '')
GOOGLE_WEATHER_BASE_URL = os.environ.get('GOOGLE_WEATHER_BASE_URL', 'https://weather.googleapis.com')
IP_GEOLOCATION_BASE_URL = os.environ.get('IP_GEOLOCATION_BASE_URL', 'http://ip-api.com/json')

# Cache TTLs (seconds)
WEATHER_CACHE_TTL = int(os.environ.get('WEATHER_CACHE_TTL', 900))             # 15 min
GOOGLE_WEATHER_CACHE_TTL = int(os.environ.get('GOOGLE_WEATHER_CACHE_TTL', 1800))  # 30 min
IP_LOCATION_CACHE_TTL = int(os.environ.get('IP_LOCATION_CACHE_TTL', 3600))     # 1 hour
WEATHER_CACHE_SOFT_LIMIT = int(os.environ.get('WEATHER_CACHE_SOFT_LIMIT', 100))

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '{asctime} {levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': os.environ.get('LOG_LEVEL', 'INFO'),
    },
}
