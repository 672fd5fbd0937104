"""Create, edit and delete member contributions."""

import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Q

from apps.audit.models import AuditAction
from apps.audit.services import record_audit, snapshot
from apps.meter_readings.exceptions import ChronologyViolationError
from apps.meter_readings.services.chronology import validate_contribution_meter_reading
from apps.purchases.exceptions import (
    ContributionAlreadyExistsError,
    ContributionNotFoundError,
    InsufficientPermissionsError,
    PurchaseNotFoundError,
    SequentialConstraintError,
    UserNotFoundError,
)
from apps.purchases.models import REVERSE_CHRONOLOGICAL_ORDER, TokenPurchase, UserContribution
from .cache import invalidate_sequential_cache
from .reconciliation import consumption_between
from .sequential_gate import can_accept_contribution, can_delete_contribution

logger = logging.getLogger(__name__)

User = get_user_model()

ENTITY_TYPE = 'UserContribution'


def contributions_visible_to(actor):
    """Admins and members with ``can_view_user_contributions`` see everything."""
    queryset = UserContribution.objects.select_related('purchase', 'user')
    if actor.can('can_view_user_contributions'):
        return queryset
    return queryset.filter(user_id=actor.user_id)


def get_contribution(contribution_id) -> UserContribution:
    try:
        return UserContribution.objects.select_related('purchase', 'user').get(pk=contribution_id)
    except UserContribution.DoesNotExist:
        raise ContributionNotFoundError()


def previous_purchase(purchase):
    """The purchase immediately before ``purchase`` in chronological order."""
    return (
        TokenPurchase.objects
        .filter(
            Q(purchase_date__lt=purchase.purchase_date)
            | Q(purchase_date=purchase.purchase_date, created_at__lt=purchase.created_at)
            | Q(purchase_date=purchase.purchase_date, created_at=purchase.created_at, id__lt=purchase.id)
        )
        .order_by(*REVERSE_CHRONOLOGICAL_ORDER)
        .first()
    )


def compute_tokens_consumed(purchase) -> float:
    """Consumption since the previous purchase; 0 for the first purchase."""
    previous = previous_purchase(purchase)
    if previous is None:
        return 0.0
    return consumption_between(previous.meter_reading, purchase.meter_reading)


def _check_can_modify(actor, contribution):
    if not (actor.is_admin or actor.owns(contribution.user_id)):
        raise InsufficientPermissionsError('You can only modify your own contributions.')


def create_contribution(*, actor, purchase_id, contribution_amount, meter_reading,
                        user_id=None, cache=None) -> UserContribution:
    """
    Record a member's payment against a purchase.

    Admins may record a contribution on behalf of another member by
    passing ``user_id``.

    Raises:
        InsufficientPermissionsError: Actor lacks ``can_add_contributions``
        PurchaseNotFoundError
        UserNotFoundError
        SequentialConstraintError: An older purchase must be covered first
        ChronologyViolationError: Meter reading differs from the purchase's
        ContributionAlreadyExistsError: Lost a race for the same purchase
    """
    if not actor.can('can_add_contributions'):
        raise InsufficientPermissionsError('You do not have permission to add contributions.')

    target_user_id = user_id if (actor.is_admin and user_id) else actor.user_id
    if not User.objects.filter(pk=target_user_id).exists():
        raise UserNotFoundError()

    purchase = TokenPurchase.objects.filter(pk=purchase_id).first()
    if purchase is None:
        raise PurchaseNotFoundError()

    decision = can_accept_contribution(purchase.pk, actor, cache=cache)
    if not decision.allowed:
        logger.warning(
            "Contribution to %s rejected for %s: %s",
            purchase.pk, actor.user_id, decision.reason_code.value,
        )
        raise SequentialConstraintError(decision)

    match = validate_contribution_meter_reading(meter_reading, purchase.pk)
    if not match.valid:
        raise ChronologyViolationError(match)

    try:
        with transaction.atomic():
            contribution = UserContribution.objects.create(
                purchase=purchase,
                user_id=target_user_id,
                contribution_amount=contribution_amount,
                meter_reading=meter_reading,
                tokens_consumed=compute_tokens_consumed(purchase),
            )
            record_audit(
                actor=actor,
                action=AuditAction.CREATE,
                entity_type=ENTITY_TYPE,
                entity_id=contribution.pk,
                new_values=snapshot(contribution),
            )
            invalidate_sequential_cache(cache)
    except IntegrityError:
        raise ContributionAlreadyExistsError('This purchase already has a contribution.')

    logger.info(
        "Contribution %s of %s recorded on purchase %s (%s kWh consumed)",
        contribution.pk, contribution_amount, purchase.pk, contribution.tokens_consumed,
    )
    return contribution


def update_contribution(*, actor, contribution_id, contribution_amount=None,
                        meter_reading=None, cache=None) -> UserContribution:
    """
    Edit a contribution's amount or meter reading.

    ``tokens_consumed`` is derived and cannot be edited directly.
    """
    contribution = get_contribution(contribution_id)
    _check_can_modify(actor, contribution)
    if not actor.can('can_edit_contributions'):
        raise InsufficientPermissionsError('You do not have permission to edit contributions.')

    old_values = snapshot(contribution)
    if meter_reading is not None:
        match = validate_contribution_meter_reading(meter_reading, contribution.purchase_id)
        if not match.valid:
            raise ChronologyViolationError(match)
        contribution.meter_reading = meter_reading
    if contribution_amount is not None:
        contribution.contribution_amount = contribution_amount

    with transaction.atomic():
        contribution.tokens_consumed = compute_tokens_consumed(contribution.purchase)
        contribution.save()
        record_audit(
            actor=actor,
            action=AuditAction.UPDATE,
            entity_type=ENTITY_TYPE,
            entity_id=contribution.pk,
            old_values=old_values,
            new_values=snapshot(contribution),
        )
        invalidate_sequential_cache(cache)

    logger.info("Contribution %s updated by %s", contribution.pk, actor.user_id)
    return contribution


def delete_contribution(*, actor, contribution_id, cache=None):
    """
    Delete a contribution if the gate allows it.

    Raises:
        ContributionNotFoundError
        InsufficientPermissionsError: Actor is neither owner nor admin
        SequentialConstraintError: Not the latest contribution, or the
            latest purchase is still uncontributed
    """
    contribution = get_contribution(contribution_id)
    _check_can_modify(actor, contribution)

    decision = can_delete_contribution(contribution.pk)
    if not decision.allowed:
        logger.warning(
            "Deletion of contribution %s refused: %s",
            contribution.pk, decision.reason_code.value,
        )
        raise SequentialConstraintError(decision)

    entity_id = contribution.pk
    with transaction.atomic():
        old_values = snapshot(contribution)
        contribution.delete()
        record_audit(
            actor=actor,
            action=AuditAction.DELETE,
            entity_type=ENTITY_TYPE,
            entity_id=entity_id,
            old_values=old_values,
        )
        invalidate_sequential_cache(cache)

    logger.info("Contribution %s deleted by %s", entity_id, actor.user_id)
