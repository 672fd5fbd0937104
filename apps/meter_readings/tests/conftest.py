import pytest
from datetime import date, datetime, timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.capabilities import Actor, DEFAULT_USER_PERMISSIONS
from apps.accounts.models import User, UserRole
from apps.meter_readings.models import MeterReading
from apps.purchases.models import TokenPurchase, UserContribution


def authenticated_client(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def reader(db):
    """Member allowed to record meter readings."""
    return User.objects.create_user(
        email='reader@example.com',
        password='TestPass123!',
        name='Meter Reader',
        permissions={**DEFAULT_USER_PERMISSIONS, 'can_add_meter_readings': True},
    )


@pytest.fixture
def member(db):
    """Member with the default permission bag."""
    return User.objects.create_user(
        email='member@example.com',
        password='TestPass123!',
        name='Household Member',
    )


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        email='admin@example.com',
        password='AdminPass123!',
        name='Admin',
        role=UserRole.ADMIN,
    )


@pytest.fixture
def reader_actor(reader):
    return Actor.from_user(reader)


@pytest.fixture
def reader_client(reader):
    return authenticated_client(reader)


@pytest.fixture
def member_client(member):
    return authenticated_client(member)


@pytest.fixture
def admin_client(admin_user):
    return authenticated_client(admin_user)


@pytest.fixture
def make_purchase(db, admin_user):
    """Factory creating purchases (and optionally their contribution)."""
    def _make(day, meter_reading, total_tokens=100.0, hour=12, contributed=False):
        purchase = TokenPurchase.objects.create(
            purchase_date=datetime(2024, 1, day, hour, tzinfo=timezone.utc),
            meter_reading=meter_reading,
            total_tokens=total_tokens,
            total_payment=50.0,
            created_by=admin_user,
        )
        if contributed:
            UserContribution.objects.create(
                purchase=purchase,
                user=admin_user,
                contribution_amount=50.0,
                meter_reading=meter_reading,
            )
        return purchase
    return _make


@pytest.fixture
def make_reading(db, reader):
    """Factory creating standalone meter readings through the ORM."""
    def _make(day, reading, user=None):
        return MeterReading.objects.create(
            user=user or reader,
            reading=reading,
            reading_date=date(2024, 1, day),
        )
    return _make


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()
