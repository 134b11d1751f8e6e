from django.urls import path
from . import views

urlpatterns = [
    path('health/', views.health, name='health'),
    path('api/status', views.api_status, name='api_status'),
    path('api/cache/clear', views.clear_cache, name='clear_cache'),
    # Fixed paths must precede the <zip_code> patterns
    path('api/weather/ip-location', views.ip_location, name='ip_location'),
    path('api/weather/location', views.weather_by_location, name='weather_by_location'),
    path('api/weather/<str:zip_code>/triple', views.triple_check, name='triple_check'),
    path('api/weather/<str:zip_code>', views.weather_for_zip, name='weather_for_zip'),
]
