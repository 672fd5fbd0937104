import pytest
from datetime import date, datetime, timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.capabilities import Actor
from apps.accounts.models import User, UserRole
from apps.meter_readings.models import MeterReading
from apps.purchases.models import ReceiptData, TokenPurchase, UserContribution


def authenticated_client(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def member(db):
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
def admin_actor(admin_user):
    return Actor.from_user(admin_user)


@pytest.fixture
def member_client(member):
    return authenticated_client(member)


@pytest.fixture
def admin_client(admin_user):
    return authenticated_client(admin_user)


@pytest.fixture
def ledger(member, admin_user):
    """
    Three purchases, two contributed, one receipt and one meter reading.

    Returns a dict of the created records.
    """
    first = TokenPurchase.objects.create(
        purchase_date=datetime(2024, 1, 1, 12, tzinfo=timezone.utc),
        meter_reading=1000,
        total_tokens=100,
        total_payment=50,
        created_by=admin_user,
    )
    second = TokenPurchase.objects.create(
        purchase_date=datetime(2024, 1, 10, 9, tzinfo=timezone.utc),
        meter_reading=1090,
        total_tokens=200,
        total_payment=110,
        created_by=member,
    )
    third = TokenPurchase.objects.create(
        purchase_date=datetime(2024, 1, 20, 18, tzinfo=timezone.utc),
        meter_reading=1240,
        total_tokens=150,
        total_payment=80,
        is_emergency=True,
        created_by=member,
    )
    first_contribution = UserContribution.objects.create(
        purchase=first,
        user=admin_user,
        contribution_amount=50,
        meter_reading=1000,
        tokens_consumed=0,
    )
    second_contribution = UserContribution.objects.create(
        purchase=second,
        user=member,
        contribution_amount=60.25,
        meter_reading=1090,
        tokens_consumed=90,
    )
    receipt = ReceiptData.objects.create(
        purchase=second,
        token_number='1111-2222-3333',
        account_number='ACC-42',
        kwh_purchased=200,
        vat_zwg=14.5,
        total_amount_zwg=110,
        transaction_datetime=datetime(2024, 1, 10, 8, 55, tzinfo=timezone.utc),
    )
    reading = MeterReading.objects.create(
        user=member,
        reading=1150,
        reading_date=date(2024, 1, 15),
        notes='Mid-month check',
    )
    return {
        'purchases': [first, second, third],
        'contributions': [first_contribution, second_contribution],
        'receipt': receipt,
        'reading': reading,
    }
