"""Create, edit and delete token purchases."""

import logging

from django.db import transaction

from apps.audit.models import AuditAction
from apps.audit.services import record_audit, snapshot
from apps.meter_readings.exceptions import ChronologyViolationError
from apps.meter_readings.services.chronology import validate_chronology
from apps.purchases.exceptions import (
    InsufficientPermissionsError,
    PurchaseHasContributionError,
    PurchaseLockedError,
    PurchaseNotFoundError,
    SequentialConstraintError,
)
from apps.purchases.models import ReceiptData, TokenPurchase
from .cache import invalidate_sequential_cache
from .reconciliation import recalculate_all_tokens_consumed
from .sequential_gate import can_create_purchase

logger = logging.getLogger(__name__)

PURCHASE_ENTITY = 'TokenPurchase'
CONTRIBUTION_ENTITY = 'UserContribution'
EDITABLE_FIELDS = ('total_tokens', 'total_payment', 'meter_reading', 'purchase_date', 'is_emergency')


def get_purchase(purchase_id) -> TokenPurchase:
    try:
        return (
            TokenPurchase.objects
            .select_related('created_by', 'contribution', 'contribution__user', 'receipt')
            .get(pk=purchase_id)
        )
    except TokenPurchase.DoesNotExist:
        raise PurchaseNotFoundError()


def _check_can_manage(actor, purchase, capability):
    if actor.is_admin:
        return
    if not actor.owns(purchase.created_by_id):
        raise InsufficientPermissionsError('You can only modify purchases you created.')
    if not actor.can(capability):
        raise InsufficientPermissionsError()


def create_purchase(*, actor, total_tokens, total_payment, meter_reading, purchase_date,
                    is_emergency=False, receipt=None, cache=None) -> TokenPurchase:
    """
    Record a new token purchase, optionally with its receipt.

    Args:
        actor: Actor performing the operation
        total_tokens: kWh bought
        total_payment: Amount paid
        meter_reading: Meter value at the time of purchase
        purchase_date: Aware datetime of the purchase
        is_emergency: Bought at the emergency rate
        receipt: Optional dict of ReceiptData fields
        cache: SequentialStatusCache to invalidate

    Returns:
        The created TokenPurchase

    Raises:
        InsufficientPermissionsError: Actor lacks ``can_add_purchases``
        ChronologyViolationError: Meter reading below an earlier reading
        SequentialConstraintError: Previous purchase still needs a contribution
    """
    if not actor.can('can_add_purchases'):
        raise InsufficientPermissionsError('You do not have permission to add purchases.')

    chronology = validate_chronology(meter_reading, purchase_date)
    if not chronology.valid:
        logger.warning("Purchase rejected for %s: %s", actor.user_id, chronology.code)
        raise ChronologyViolationError(chronology)

    decision = can_create_purchase(purchase_date, actor)
    if not decision.allowed:
        logger.warning(
            "Purchase rejected for %s: %s (blocked by %s)",
            actor.user_id, decision.reason_code.value, decision.blocking_purchase_id,
        )
        raise SequentialConstraintError(decision)

    with transaction.atomic():
        purchase = TokenPurchase.objects.create(
            total_tokens=total_tokens,
            total_payment=total_payment,
            meter_reading=meter_reading,
            purchase_date=purchase_date,
            is_emergency=is_emergency,
            created_by_id=actor.user_id,
        )
        if receipt:
            ReceiptData.objects.create(purchase=purchase, **receipt)
        record_audit(
            actor=actor,
            action=AuditAction.CREATE,
            entity_type=PURCHASE_ENTITY,
            entity_id=purchase.pk,
            new_values=snapshot(purchase),
            metadata={'has_receipt': bool(receipt)},
        )
        invalidate_sequential_cache(cache)

    logger.info(
        "Purchase %s created by %s: %s kWh for %s",
        purchase.pk, actor.user_id, total_tokens, total_payment,
    )
    return purchase


def check_purchase_update(*, actor, purchase, changes):
    """
    Raise if ``actor`` may not apply ``changes`` to ``purchase``.

    Nothing is written; ``update_purchase`` and the admin change form
    both run this before saving.

    Raises:
        InsufficientPermissionsError
        PurchaseLockedError: Non-admin edit of a contributed purchase
        ChronologyViolationError
        SequentialConstraintError: Non-admin re-dated the purchase past
            one that still needs a contribution
    """
    _check_can_manage(actor, purchase, 'can_edit_purchases')

    if purchase.has_contribution and not actor.is_admin:
        raise PurchaseLockedError('This purchase already has a contribution and can no longer be edited.')

    meter_reading = changes.get('meter_reading', purchase.meter_reading)
    purchase_date = changes.get('purchase_date', purchase.purchase_date)

    if 'meter_reading' in changes or 'purchase_date' in changes:
        chronology = validate_chronology(meter_reading, purchase_date, exclude_id=purchase.pk)
        if not chronology.valid:
            raise ChronologyViolationError(chronology)

    if purchase_date != purchase.purchase_date:
        decision = can_create_purchase(purchase_date, actor, exclude_id=purchase.pk)
        if not decision.allowed:
            logger.warning(
                "Re-dating purchase %s rejected for %s: %s (blocked by %s)",
                purchase.pk, actor.user_id, decision.reason_code.value, decision.blocking_purchase_id,
            )
            raise SequentialConstraintError(decision)


def update_purchase(*, actor, purchase_id, cache=None, **changes) -> TokenPurchase:
    """
    Edit a purchase.

    Once a purchase has a contribution only an admin may edit it; the
    contribution's meter reading follows the purchase's and consumption is
    recalculated for the whole ledger.

    Raises:
        PurchaseNotFoundError
        InsufficientPermissionsError
        PurchaseLockedError: Non-admin edit of a contributed purchase
        ChronologyViolationError
        SequentialConstraintError
    """
    purchase = get_purchase(purchase_id)
    changes = {name: value for name, value in changes.items() if name in EDITABLE_FIELDS}
    check_purchase_update(actor=actor, purchase=purchase, changes=changes)

    has_contribution = purchase.has_contribution
    old_values = snapshot(purchase)
    for name, value in changes.items():
        setattr(purchase, name, value)

    with transaction.atomic():
        purchase.save()
        if has_contribution and purchase.contribution.meter_reading != purchase.meter_reading:
            purchase.contribution.meter_reading = purchase.meter_reading
            purchase.contribution.save(update_fields=['meter_reading', 'updated_at'])
        record_audit(
            actor=actor,
            action=AuditAction.UPDATE,
            entity_type=PURCHASE_ENTITY,
            entity_id=purchase.pk,
            old_values=old_values,
            new_values=snapshot(purchase),
        )
        if has_contribution or 'meter_reading' in changes or 'purchase_date' in changes:
            recalculate_all_tokens_consumed()
        invalidate_sequential_cache(cache)

    logger.info("Purchase %s updated by %s (%s)", purchase.pk, actor.user_id, ', '.join(changes))
    return purchase


def delete_purchase(*, actor, purchase_id, with_contribution=False, cache=None):
    """
    Delete a purchase.

    A purchase with a contribution is refused unless an admin asks for
    ``with_contribution``, which removes both in one transaction.

    Raises:
        PurchaseNotFoundError
        InsufficientPermissionsError
        PurchaseHasContributionError
    """
    purchase = get_purchase(purchase_id)
    _check_can_manage(actor, purchase, 'can_delete_purchases')

    has_contribution = purchase.has_contribution
    if has_contribution and not (with_contribution and actor.is_admin):
        raise PurchaseHasContributionError(
            'Cannot delete a purchase that has a contribution. Delete the contribution first.'
        )

    entity_id = purchase.pk
    with transaction.atomic():
        if has_contribution:
            contribution = purchase.contribution
            contribution_values = snapshot(contribution)
            contribution_id = contribution.pk
            contribution.delete()
            record_audit(
                actor=actor,
                action=AuditAction.DELETE,
                entity_type=CONTRIBUTION_ENTITY,
                entity_id=contribution_id,
                old_values=contribution_values,
                metadata={'cascade_from_purchase': str(entity_id)},
            )
        old_values = snapshot(purchase)
        purchase.delete()
        record_audit(
            actor=actor,
            action=AuditAction.DELETE,
            entity_type=PURCHASE_ENTITY,
            entity_id=entity_id,
            old_values=old_values,
        )
        recalculate_all_tokens_consumed()
        invalidate_sequential_cache(cache)

    logger.info("Purchase %s deleted by %s", entity_id, actor.user_id)
