import pytest
from datetime import datetime, timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.capabilities import Actor
from apps.accounts.models import User, UserRole
from apps.purchases.models import TokenPurchase, UserContribution


def authenticated_client(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def member(db):
    """Create and return a household member with default permissions."""
    return User.objects.create_user(
        email='member@example.com',
        password='TestPass123!',
        name='Household Member',
    )


@pytest.fixture
def other_member(db):
    """Create and return a second household member."""
    return User.objects.create_user(
        email='other@example.com',
        password='TestPass123!',
        name='Other Member',
    )


@pytest.fixture
def admin_user(db):
    """Create and return an administrator."""
    return User.objects.create_user(
        email='admin@example.com',
        password='AdminPass123!',
        name='Admin',
        role=UserRole.ADMIN,
    )


@pytest.fixture
def member_actor(member):
    return Actor.from_user(member)


@pytest.fixture
def admin_actor(admin_user):
    return Actor.from_user(admin_user)


@pytest.fixture
def member_client(member):
    """Return API client authenticated as member."""
    return authenticated_client(member)


@pytest.fixture
def other_client(other_member):
    """Return API client authenticated as the other member."""
    return authenticated_client(other_member)


@pytest.fixture
def admin_client(admin_user):
    """Return API client authenticated as admin."""
    return authenticated_client(admin_user)


@pytest.fixture
def make_purchase(db, member):
    """Factory creating purchases directly through the ORM."""
    def _make(day, meter_reading, total_tokens=100.0, total_payment=50.0,
              created_by=None, month=1, is_emergency=False):
        return TokenPurchase.objects.create(
            purchase_date=datetime(2024, month, day, 12, tzinfo=timezone.utc),
            meter_reading=meter_reading,
            total_tokens=total_tokens,
            total_payment=total_payment,
            is_emergency=is_emergency,
            created_by=created_by or member,
        )
    return _make


@pytest.fixture
def make_contribution(db, member):
    """Factory creating contributions directly through the ORM."""
    def _make(purchase, amount=50.0, tokens_consumed=0.0, user=None, created_at=None):
        contribution = UserContribution.objects.create(
            purchase=purchase,
            user=user or member,
            contribution_amount=amount,
            meter_reading=purchase.meter_reading,
            tokens_consumed=tokens_consumed,
        )
        if created_at is not None:
            UserContribution.objects.filter(pk=contribution.pk).update(created_at=created_at)
            contribution.refresh_from_db()
        return contribution
    return _make
