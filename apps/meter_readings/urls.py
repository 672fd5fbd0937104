from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'meter_readings'

router = DefaultRouter()
router.register(r'', views.MeterReadingViewSet, basename='meter-reading')

urlpatterns = [
    # GET    /api/meter-readings/            - List readings
    # POST   /api/meter-readings/            - Record a reading
    # GET    /api/meter-readings/latest/     - Most recent reading
    # POST   /api/meter-readings/validate/   - Check a reading before saving
    # GET    /api/meter-readings/{id}/       - Get reading
    # PATCH  /api/meter-readings/{id}/       - Partial update
    # DELETE /api/meter-readings/{id}/       - Delete reading
    path('', include(router.urls)),
]
