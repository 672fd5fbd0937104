"""
URL configuration for the Electricity Token Ledger project.

    /api/auth/            login, token refresh, current user
    /api/purchases/       purchases, contributions, gate status, balance
    /api/meter-readings/  standalone meter readings
    /api/backups/         export / verify / restore (admin)
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from config.views import health_check

urlpatterns = [
    path('api/health/', health_check, name='health-check'),

    # Admin
    path('admin/', admin.site.urls),

    # API Documentation
    path('api/schema/', SpectacularAPIView.as_view(), name='api-schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='api-schema'), name='api-docs'),

    # Authentication
    path('api/auth/', include('apps.accounts.urls')),

    # API endpoints
    path('api/purchases/', include('apps.purchases.urls')),
    path('api/meter-readings/', include('apps.meter_readings.urls')),
    path('api/backups/', include('apps.backups.urls')),
]


# Custom error handlers
handler404 = 'config.views.error_404'
handler500 = 'config.views.error_500'
