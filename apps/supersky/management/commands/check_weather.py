"""
Management command to fetch and summarize weather for a ZIP code.

Usage:
    python manage.py check_weather 10001                         # All four sources
    python manage.py check_weather 10001 --source openmeteo      # One source
    python manage.py check_weather 10001 --source foreca --source azuremaps --force-refresh
"""

from django.apps import apps
from django.core.management.base import BaseCommand

from apps.supersky.services import (
    LocationNotFoundError,
    WeatherServiceError,
    WeatherSource,
    validate_zip_code,
)

VALID_SOURCES = ['all'] + [source.query_name for source in WeatherSource]


class Command(BaseCommand):
    help = 'Fetch weather for a ZIP code from one or more providers'

    def add_arguments(self, parser):
        parser.add_argument('zip_code', help='5-digit US ZIP code')
        parser.add_argument(
            '--source',
            action='append',
            choices=VALID_SOURCES,
            help='Source(s) to query. Can be specified multiple times. Default: all',
        )
        parser.add_argument(
            '--force-refresh',
            action='store_true',
            help='Bypass the server cache',
        )

    def handle(self, *args, **options):
        zip_code = options['zip_code']
        sources = options['source'] or ['all']
        force_refresh = options['force_refresh']

        if not validate_zip_code(zip_code):
            self.stdout.write(self.style.ERROR('Invalid ZIP code. Must be 5 digits.'))
            return

        service = apps.get_app_config('supersky').weather_service

        try:
            if 'all' in sources:
                self.stdout.write(f'Checking all sources for {zip_code}...')
                results = service.get_triple_check(zip_code, force_refresh=force_refresh)
            else:
                results = []
                for name in sources:
                    self.stdout.write(f'Checking {name} for {zip_code}...')
                    results.append(service.get_weather(
                        zip_code, WeatherSource.from_query(name), force_refresh=force_refresh
                    ))
        except LocationNotFoundError as e:
            self.stdout.write(self.style.ERROR(str(e)))
            return
        except WeatherServiceError as e:
            self.stdout.write(self.style.ERROR(f'ZIP code lookup failed: {e}'))
            return

        for result in results:
            self._report(result)

        failed = sum(1 for result in results if result.is_error)
        summary = f'Check complete: {len(results) - failed}/{len(results)} sources returned data'
        self.stdout.write(self.style.WARNING(summary) if failed else self.style.SUCCESS(summary))

    def _report(self, result):
        name = result.source.value
        if result.is_error:
            label = 'rate limited' if result.rate_limited else 'failed'
            self.stdout.write(self.style.ERROR(f'  {name} {label}: {result.error_message}'))
            return

        current = result.current
        if current is not None:
            self.stdout.write(f'  {name}: {current.description}, {current.temperature}°F, '
                              f'precipitation {current.precipitation.amount} mm')
        else:
            self.stdout.write(f'  {name}: no current conditions')
        self.stdout.write(f'    {len(result.hourly)} hourly / {len(result.daily)} daily records')
        if result.is_mock_data:
            self.stdout.write(self.style.WARNING(f'    {result.mock_data_reason}'))
