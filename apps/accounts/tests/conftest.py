import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User, UserRole


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def user(db):
    """Create and return a household member."""
    return User.objects.create_user(
        email='testuser@example.com',
        password='TestPass123!',
        name='Test User',
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
def user_inactive(db):
    """Create and return an inactive user."""
    return User.objects.create_user(
        email='inactive@example.com',
        password='TestPass123!',
        name='Inactive User',
        is_active=False,
    )


@pytest.fixture
def user_locked(db):
    """Create and return a user locked by an administrator."""
    return User.objects.create_user(
        email='locked@example.com',
        password='TestPass123!',
        name='Locked User',
        locked=True,
    )


@pytest.fixture
def authenticated_client(api_client, user):
    """Return an authenticated API client using JWT."""
    refresh = RefreshToken.for_user(user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client
