from datetime import datetime, timezone

import pytest

from apps.accounts.capabilities import Actor
from apps.audit.models import AuditAction, AuditLog
from apps.meter_readings.exceptions import ChronologyViolationError
from apps.purchases.exceptions import (
    InsufficientPermissionsError,
    PurchaseHasContributionError,
    PurchaseLockedError,
    SequentialConstraintError,
)
from apps.purchases.models import ReceiptData, TokenPurchase, UserContribution
from apps.purchases import services


def jan(day, hour=12):
    return datetime(2024, 1, day, hour, tzinfo=timezone.utc)


@pytest.mark.django_db
class TestCreatePurchase:
    """Tests for services.create_purchase."""

    def test_creates_purchase_with_receipt_and_audit(self, member_actor):
        purchase = services.create_purchase(
            actor=member_actor,
            total_tokens=100,
            total_payment=50,
            meter_reading=1000,
            purchase_date=jan(1),
            receipt={'kwh_purchased': 100, 'token_number': '1234', 'transaction_datetime': jan(1)},
        )

        assert purchase.created_by_id == member_actor.user_id
        assert ReceiptData.objects.get(purchase=purchase).token_number == '1234'
        log = AuditLog.objects.get(entity_id=str(purchase.pk))
        assert log.action == AuditAction.CREATE
        assert log.metadata['has_receipt'] is True

    def test_meter_reading_cannot_go_backwards(self, make_purchase, make_contribution, member_actor):
        make_contribution(make_purchase(1, 1000))

        with pytest.raises(ChronologyViolationError) as exc_info:
            services.create_purchase(
                actor=member_actor,
                total_tokens=100,
                total_payment=50,
                meter_reading=900,
                purchase_date=jan(5),
            )

        assert exc_info.value.reason_code == 'READING_BELOW_PREVIOUS'
        assert exc_info.value.suggested_minimum == 1000
        assert TokenPurchase.objects.count() == 1

    def test_blocked_while_previous_uncontributed(self, make_purchase, member_actor):
        previous = make_purchase(1, 1000)

        with pytest.raises(SequentialConstraintError) as exc_info:
            services.create_purchase(
                actor=member_actor,
                total_tokens=100,
                total_payment=50,
                meter_reading=1100,
                purchase_date=jan(5),
            )

        data = exc_info.value.as_response_data()
        assert data['code'] == 'PREVIOUS_PURCHASE_UNCONTRIBUTED'
        assert data['blocking_purchase_id'] == str(previous.id)

    def test_admin_bypasses_gate(self, make_purchase, admin_actor):
        make_purchase(1, 1000)

        purchase = services.create_purchase(
            actor=admin_actor,
            total_tokens=100,
            total_payment=50,
            meter_reading=1100,
            purchase_date=jan(5),
        )

        assert purchase.pk is not None

    def test_requires_capability(self, member):
        actor = Actor(user_id=member.pk, permissions={'can_add_purchases': False})

        with pytest.raises(InsufficientPermissionsError):
            services.create_purchase(
                actor=actor,
                total_tokens=100,
                total_payment=50,
                meter_reading=1000,
                purchase_date=jan(1),
            )


@pytest.mark.django_db
class TestUpdateAndDeletePurchase:
    """Tests for editing and removing purchases."""

    def test_creator_edits_uncontributed_purchase(self, make_purchase, member):
        purchase = make_purchase(1, 1000)
        actor = Actor(user_id=member.pk, permissions={'can_edit_purchases': True})

        updated = services.update_purchase(actor=actor, purchase_id=purchase.pk, total_payment=60)

        assert updated.total_payment == 60
        assert AuditLog.objects.filter(action=AuditAction.UPDATE).count() == 1

    def test_non_creator_refused(self, make_purchase, other_member):
        purchase = make_purchase(1, 1000)
        actor = Actor(user_id=other_member.pk, permissions={'can_edit_purchases': True})

        with pytest.raises(InsufficientPermissionsError):
            services.update_purchase(actor=actor, purchase_id=purchase.pk, total_payment=60)

    def test_contributed_purchase_locked_for_members(self, make_purchase, make_contribution, member):
        purchase = make_purchase(1, 1000)
        make_contribution(purchase)
        actor = Actor(user_id=member.pk, permissions={'can_edit_purchases': True})

        with pytest.raises(PurchaseLockedError):
            services.update_purchase(actor=actor, purchase_id=purchase.pk, total_payment=60)

    def test_admin_edit_syncs_contribution_and_recalculates(self, make_purchase, make_contribution, admin_actor):
        make_contribution(make_purchase(1, 1000))
        purchase = make_purchase(5, 1100)
        contribution = make_contribution(purchase, tokens_consumed=100)

        services.update_purchase(actor=admin_actor, purchase_id=purchase.pk, meter_reading=1250)

        contribution.refresh_from_db()
        assert contribution.meter_reading == 1250
        assert contribution.tokens_consumed == 250

    def test_edit_checks_chronology_excluding_itself(self, make_purchase, make_contribution, admin_actor):
        make_contribution(make_purchase(1, 1000))
        purchase = make_purchase(5, 1100)

        services.update_purchase(actor=admin_actor, purchase_id=purchase.pk, meter_reading=1050)
        with pytest.raises(ChronologyViolationError):
            services.update_purchase(actor=admin_actor, purchase_id=purchase.pk, meter_reading=900)

    def test_member_cannot_redate_past_uncontributed_purchase(self, make_purchase, member):
        pending = make_purchase(5, 1100)
        purchase = make_purchase(1, 1200)
        actor = Actor(user_id=member.pk, permissions={'can_edit_purchases': True})

        with pytest.raises(SequentialConstraintError) as exc_info:
            services.update_purchase(actor=actor, purchase_id=purchase.pk, purchase_date=jan(10))

        assert exc_info.value.blocking_purchase_id == pending.pk
        purchase.refresh_from_db()
        assert purchase.purchase_date == jan(1)

    def test_member_redate_ignores_the_purchase_itself(self, make_purchase, make_contribution, member):
        make_contribution(make_purchase(1, 1000))
        purchase = make_purchase(5, 1100)
        actor = Actor(user_id=member.pk, permissions={'can_edit_purchases': True})

        updated = services.update_purchase(actor=actor, purchase_id=purchase.pk, purchase_date=jan(8))

        assert updated.purchase_date == jan(8)

    def test_admin_may_redate_past_uncontributed_purchase(self, make_purchase, admin_actor):
        make_purchase(5, 1100)
        purchase = make_purchase(1, 1200)

        updated = services.update_purchase(actor=admin_actor, purchase_id=purchase.pk, purchase_date=jan(10))

        assert updated.purchase_date == jan(10)

    def test_delete_refused_with_contribution(self, make_purchase, make_contribution, admin_actor):
        purchase = make_purchase(1, 1000)
        make_contribution(purchase)

        with pytest.raises(PurchaseHasContributionError):
            services.delete_purchase(actor=admin_actor, purchase_id=purchase.pk)

    def test_admin_deletes_with_contribution(self, make_purchase, make_contribution, admin_actor):
        purchase = make_purchase(1, 1000)
        make_contribution(purchase)

        services.delete_purchase(actor=admin_actor, purchase_id=purchase.pk, with_contribution=True)

        assert not TokenPurchase.objects.exists()
        assert not UserContribution.objects.exists()
        assert AuditLog.objects.filter(action=AuditAction.DELETE).count() == 2

    def test_member_cannot_force_delete_with_contribution(self, make_purchase, make_contribution, member):
        purchase = make_purchase(1, 1000)
        make_contribution(purchase)
        actor = Actor(user_id=member.pk, permissions={'can_delete_purchases': True})

        with pytest.raises(PurchaseHasContributionError):
            services.delete_purchase(actor=actor, purchase_id=purchase.pk, with_contribution=True)


@pytest.mark.django_db
class TestContributions:
    """Tests for contribution create, edit and delete."""

    def test_tokens_consumed_derived_from_previous_purchase(self, make_purchase, make_contribution, member_actor):
        make_contribution(make_purchase(1, 1000))
        purchase = make_purchase(5, 1180)

        contribution = services.create_contribution(
            actor=member_actor,
            purchase_id=purchase.pk,
            contribution_amount=45,
            meter_reading=1180,
        )

        assert contribution.tokens_consumed == 180
        assert contribution.user_id == member_actor.user_id

    def test_first_purchase_consumes_nothing(self, make_purchase, member_actor):
        purchase = make_purchase(1, 1000)

        contribution = services.create_contribution(
            actor=member_actor,
            purchase_id=purchase.pk,
            contribution_amount=45,
            meter_reading=1000,
        )

        assert contribution.tokens_consumed == 0

    def test_meter_reading_must_match_purchase(self, make_purchase, member_actor):
        purchase = make_purchase(1, 1000)

        with pytest.raises(ChronologyViolationError) as exc_info:
            services.create_contribution(
                actor=member_actor,
                purchase_id=purchase.pk,
                contribution_amount=45,
                meter_reading=1001,
            )

        assert exc_info.value.reason_code == 'METER_READING_MISMATCH'

    def test_member_must_contribute_oldest_first(self, make_purchase, member_actor):
        oldest = make_purchase(1, 1000)
        newer = make_purchase(5, 1100)

        with pytest.raises(SequentialConstraintError) as exc_info:
            services.create_contribution(
                actor=member_actor,
                purchase_id=newer.pk,
                contribution_amount=45,
                meter_reading=1100,
            )

        assert exc_info.value.blocking_purchase_id == oldest.id

    def test_admin_contributes_on_behalf_of_member(self, make_purchase, admin_actor, other_member):
        purchase = make_purchase(1, 1000)

        contribution = services.create_contribution(
            actor=admin_actor,
            purchase_id=purchase.pk,
            contribution_amount=45,
            meter_reading=1000,
            user_id=other_member.pk,
        )

        assert contribution.user_id == other_member.pk

    def test_member_cannot_contribute_for_someone_else(self, make_purchase, member_actor, other_member):
        purchase = make_purchase(1, 1000)

        contribution = services.create_contribution(
            actor=member_actor,
            purchase_id=purchase.pk,
            contribution_amount=45,
            meter_reading=1000,
            user_id=other_member.pk,
        )

        assert contribution.user_id == member_actor.user_id

    def test_update_amount(self, make_purchase, make_contribution, member_actor):
        contribution = make_contribution(make_purchase(1, 1000))

        updated = services.update_contribution(
            actor=member_actor,
            contribution_id=contribution.pk,
            contribution_amount=75,
        )

        assert updated.contribution_amount == 75

    def test_other_member_cannot_update(self, make_purchase, make_contribution, other_member):
        contribution = make_contribution(make_purchase(1, 1000))

        with pytest.raises(InsufficientPermissionsError):
            services.update_contribution(
                actor=Actor.from_user(other_member),
                contribution_id=contribution.pk,
                contribution_amount=75,
            )

    def test_delete_latest(self, make_purchase, make_contribution, member_actor):
        contribution = make_contribution(make_purchase(1, 1000))

        services.delete_contribution(actor=member_actor, contribution_id=contribution.pk)

        assert not UserContribution.objects.exists()
        assert AuditLog.objects.get(entity_id=str(contribution.pk)).action == AuditAction.DELETE

    def test_delete_older_refused(self, make_purchase, make_contribution, member_actor):
        older = make_contribution(make_purchase(1, 1000), created_at=jan(1, 13))
        make_contribution(make_purchase(5, 1100), created_at=jan(5, 13))

        with pytest.raises(SequentialConstraintError) as exc_info:
            services.delete_contribution(actor=member_actor, contribution_id=older.pk)

        assert exc_info.value.reason_code == 'GLOBAL_LATEST_CONTRIBUTION_ONLY'
