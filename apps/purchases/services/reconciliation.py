"""
Balance & Consumption Reconciliation
====================================

Each contribution pays for the electricity consumed since the previous
purchase: the difference between this purchase's meter reading and the
previous one's. The very first purchase has nothing before it, so its
contribution consumes nothing.

``tokens_consumed`` is stored on every contribution but is always
derivable; ``recalculate_all_tokens_consumed`` rebuilds it from scratch
and is safe to run any number of times.

Example::

    from apps.purchases.services.reconciliation import (
        recalculate_all_tokens_consumed,
        calculate_global_balance,
    )

    report = recalculate_all_tokens_consumed()
    print(f"{report.updated} of {report.checked} contributions corrected")
    print(f"Household balance: {calculate_global_balance():.2f}")
"""

import logging
from dataclasses import dataclass, field
from typing import List

from django.db import transaction

from apps.audit.models import AuditAction
from apps.audit.services import record_audit
from apps.purchases.models import CHRONOLOGICAL_ORDER, TokenPurchase, UserContribution

logger = logging.getLogger(__name__)


@dataclass
class RecalculationChange:
    contribution_id: object
    purchase_id: object
    old_tokens_consumed: float
    new_tokens_consumed: float


@dataclass
class RecalculationReport:
    checked: int = 0
    updated: int = 0
    changes: List[RecalculationChange] = field(default_factory=list)


@dataclass
class BalanceRow:
    """One contribution's effect on the household balance."""

    contribution_id: object
    purchase_id: object
    user_id: object
    purchase_date: object
    contribution_amount: float
    tokens_consumed: float
    fair_share: float
    balance_change: float
    running_balance: float


def fair_share(tokens_consumed, total_tokens, total_payment) -> float:
    """
    Cost of ``tokens_consumed`` at the purchase's price per token.

    Returns 0 when the purchase has no tokens.
    """
    if not total_tokens:
        logger.debug("Fair share requested for a purchase with no tokens")
        return 0.0
    return (tokens_consumed / total_tokens) * total_payment


def consumption_between(previous_meter_reading, meter_reading) -> float:
    """Tokens consumed between two meter readings; never negative."""
    delta = meter_reading - previous_meter_reading
    if delta < 0:
        logger.debug("Negative consumption %s normalised to 0", delta)
        return 0.0
    return delta


def expected_tokens_consumed():
    """
    Yield ``(purchase, correct_tokens_consumed)`` in chronological order.

    The first purchase always consumes 0. ``previous`` advances for every
    purchase whether or not it has a contribution.
    """
    purchases = TokenPurchase.objects.select_related('contribution').order_by(*CHRONOLOGICAL_ORDER)
    previous = 0.0
    for index, purchase in enumerate(purchases):
        if index == 0:
            correct = 0.0
        else:
            correct = consumption_between(previous, purchase.meter_reading)
        yield purchase, correct
        previous = purchase.meter_reading


def recalculate_all_tokens_consumed(dry_run=False) -> RecalculationReport:
    """
    Rewrite every contribution's ``tokens_consumed`` from the meter sequence.

    Only rows whose stored value differs are written, so a second run
    reports ``updated == 0``.

    Args:
        dry_run: Compute the report without saving anything.

    Returns:
        RecalculationReport with counts and per-row changes.
    """
    report = RecalculationReport()

    with transaction.atomic():
        for purchase, correct in expected_tokens_consumed():
            if not purchase.has_contribution:
                continue
            contribution = purchase.contribution
            report.checked += 1
            if contribution.tokens_consumed == correct:
                continue

            report.changes.append(RecalculationChange(
                contribution_id=contribution.pk,
                purchase_id=purchase.pk,
                old_tokens_consumed=contribution.tokens_consumed,
                new_tokens_consumed=correct,
            ))
            report.updated += 1
            if not dry_run:
                contribution.tokens_consumed = correct
                contribution.save(update_fields=['tokens_consumed', 'updated_at'])

    logger.info(
        "Recalculated tokens consumed: %d checked, %d %s",
        report.checked, report.updated, 'would change' if dry_run else 'updated',
    )
    return report


def calculate_running_balance() -> List[BalanceRow]:
    """
    Per-contribution balance rows ordered by purchase date.

    The contribution on the chronologically earliest purchase counts as
    consuming nothing regardless of its stored value.
    """
    earliest = TokenPurchase.objects.order_by(*CHRONOLOGICAL_ORDER).values_list('pk', flat=True).first()
    contributions = (
        UserContribution.objects
        .select_related('purchase')
        .order_by(*[f'purchase__{name}' for name in CHRONOLOGICAL_ORDER])
    )

    rows = []
    running = 0.0
    for contribution in contributions:
        purchase = contribution.purchase
        consumed = 0.0 if purchase.pk == earliest else contribution.tokens_consumed
        share = fair_share(consumed, purchase.total_tokens, purchase.total_payment)
        change = contribution.contribution_amount - share
        running += change
        rows.append(BalanceRow(
            contribution_id=contribution.pk,
            purchase_id=purchase.pk,
            user_id=contribution.user_id,
            purchase_date=purchase.purchase_date,
            contribution_amount=contribution.contribution_amount,
            tokens_consumed=consumed,
            fair_share=share,
            balance_change=change,
            running_balance=running,
        ))
    return rows


def calculate_global_balance() -> float:
    """Sum of ``contribution_amount - fair_share`` over all contributions, unrounded."""
    rows = calculate_running_balance()
    return rows[-1].running_balance if rows else 0.0


def calculate_user_balance(user_id) -> float:
    """Balance restricted to one member's contributions."""
    return sum(
        row.balance_change
        for row in calculate_running_balance()
        if str(row.user_id) == str(user_id)
    )


def run_recalculation(*, actor, dry_run=False) -> RecalculationReport:
    """Recalculate on request of an admin or a maintenance job, and audit it."""
    with transaction.atomic():
        report = recalculate_all_tokens_consumed(dry_run=dry_run)
        if not dry_run:
            record_audit(
                actor=actor,
                action=AuditAction.RECALCULATE,
                entity_type='System',
                entity_id='tokens_consumed',
                metadata={'checked': report.checked, 'updated': report.updated},
            )
    return report
