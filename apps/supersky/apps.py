from django.apps import AppConfig
from django.conf import settings


class SuperskyConfig(AppConfig):
    name = 'apps.supersky'
    label = 'supersky'

    def ready(self):
        from .services import WeatherCache, WeatherService
        from .services.cache import SOFT_LIMIT

        # One cache per process, shared by every request
        self.cache = WeatherCache(soft_limit=getattr(settings, 'WEATHER_CACHE_SOFT_LIMIT', SOFT_LIMIT))
        self.weather_service = WeatherService.from_settings(self.cache)
