from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'purchases'

# Router for ViewSets
# Note: contributions must be registered BEFORE empty prefix to avoid URL conflicts
router = DefaultRouter()
router.register(r'contributions', views.ContributionViewSet, basename='contribution')
router.register(r'', views.TokenPurchaseViewSet, basename='purchase')

urlpatterns = [
    # Purchase ViewSet routes
    # GET    /api/purchases/              - List purchases
    # POST   /api/purchases/              - Create purchase (chronology + gate)
    # GET    /api/purchases/{id}/         - Get purchase details
    # PATCH  /api/purchases/{id}/         - Partial update
    # DELETE /api/purchases/{id}/         - Delete purchase

    # Contribution routes
    # GET    /api/purchases/contributions/       - List visible contributions
    # POST   /api/purchases/contributions/       - Contribute to the next purchase
    # GET    /api/purchases/contributions/{id}/  - Get contribution
    # PATCH  /api/purchases/contributions/{id}/  - Partial update
    # DELETE /api/purchases/contributions/{id}/  - Delete latest contribution

    # Gate and balance endpoints
    path('sequential-status/', views.sequential_status, name='sequential-status'),
    path('contribution-progress/', views.contribution_progress, name='contribution-progress'),
    path('validate-sequential/', views.validate_sequential_purchase, name='validate-sequential'),
    path('balance/', views.balance, name='balance'),
    path('admin/recalculate-tokens/', views.recalculate_tokens, name='recalculate-tokens'),

    # Include router URLs
    path('', include(router.urls)),
]
