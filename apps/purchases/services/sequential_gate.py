"""
Sequential-Contribution Gate
============================

Contributions must be made purchase by purchase, oldest first, so that
each contribution's consumption can be derived from the previous
purchase's meter reading. The gate answers three questions:

- may this actor contribute to this purchase?
- may this actor record a new purchase dated here?
- may this contribution be deleted?

Every check returns a ``GateDecision`` value; nothing here raises for a
denial. Services turn denials into ``SequentialConstraintError``.

Example::

    from apps.accounts.capabilities import Actor
    from apps.purchases.services.sequential_gate import can_accept_contribution

    decision = can_accept_contribution(purchase.id, Actor.from_user(request.user))
    if not decision.allowed:
        print(decision.reason_code, decision.blocking_purchase_id)
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from apps.purchases.models import (
    CHRONOLOGICAL_ORDER,
    REVERSE_CHRONOLOGICAL_ORDER,
    TokenPurchase,
    UserContribution,
)
from .cache import get_sequential_cache, invalidate_sequential_cache  # noqa: F401

logger = logging.getLogger(__name__)


class GateReason(str, Enum):
    PURCHASE_NOT_FOUND = 'PURCHASE_NOT_FOUND'
    CONTRIBUTION_NOT_FOUND = 'CONTRIBUTION_NOT_FOUND'
    CONTRIBUTION_ALREADY_EXISTS = 'CONTRIBUTION_ALREADY_EXISTS'
    ALL_PURCHASES_CONTRIBUTED = 'ALL_PURCHASES_CONTRIBUTED'
    OLDER_PURCHASE_PENDING = 'OLDER_PURCHASE_PENDING'
    PREVIOUS_PURCHASE_UNCONTRIBUTED = 'PREVIOUS_PURCHASE_UNCONTRIBUTED'
    GLOBAL_LATEST_CONTRIBUTION_ONLY = 'GLOBAL_LATEST_CONTRIBUTION_ONLY'
    PREVENT_MULTIPLE_UNCONSUMED_PURCHASES = 'PREVENT_MULTIPLE_UNCONSUMED_PURCHASES'


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason_code: Optional[GateReason] = None
    reason: str = ''
    blocking_purchase_id: Optional[uuid.UUID] = None

    @property
    def next_available_purchase_id(self):
        return self.blocking_purchase_id

    @classmethod
    def allow(cls, reason=''):
        return cls(allowed=True, reason=reason)

    @classmethod
    def deny(cls, reason_code, reason, blocking_purchase_id=None):
        return cls(
            allowed=False,
            reason_code=reason_code,
            reason=reason,
            blocking_purchase_id=blocking_purchase_id,
        )


@dataclass(frozen=True)
class PurchaseSnapshot:
    """The fields of a purchase the gate reports, safe to cache."""

    id: uuid.UUID
    purchase_date: datetime
    total_tokens: float
    total_payment: float
    meter_reading: float
    is_emergency: bool

    @classmethod
    def from_purchase(cls, purchase):
        return cls(
            id=purchase.pk,
            purchase_date=purchase.purchase_date,
            total_tokens=purchase.total_tokens,
            total_payment=purchase.total_payment,
            meter_reading=purchase.meter_reading,
            is_emergency=purchase.is_emergency,
        )


@dataclass(frozen=True)
class SequentialStatus:
    next_available_purchase: Optional[PurchaseSnapshot]
    count_without_contribution: int
    all_satisfied: bool


@dataclass(frozen=True)
class ContributionProgress:
    total_purchases: int
    purchases_with_contributions: int
    next_purchase_to_contribute: Optional[PurchaseSnapshot]
    progress_percentage: float


def _same_id(left, right):
    if left is None or right is None:
        return False
    try:
        return uuid.UUID(str(left)) == uuid.UUID(str(right))
    except ValueError:
        return False


def _pending_purchases():
    return TokenPurchase.objects.filter(contribution__isnull=True).order_by(*CHRONOLOGICAL_ORDER)


def find_oldest_purchase_without_contribution(cache=None) -> SequentialStatus:
    """
    Return the purchase that must receive the next contribution.

    The result is cached for ``SEQUENTIAL_GATE_CACHE_TTL`` seconds.

    Returns:
        SequentialStatus with the oldest uncontributed purchase (or None),
        how many purchases lack a contribution, and whether all are covered.
    """
    cache = cache or get_sequential_cache()
    status = cache.get()
    if status is not None:
        return status

    pending = _pending_purchases()
    oldest = pending.first()
    count = pending.count()
    status = SequentialStatus(
        next_available_purchase=PurchaseSnapshot.from_purchase(oldest) if oldest else None,
        count_without_contribution=count,
        all_satisfied=count == 0,
    )
    cache.set(status)
    return status


def can_accept_contribution(purchase_id, actor, cache=None) -> GateDecision:
    """
    Decide whether ``actor`` may contribute to ``purchase_id`` now.

    Admins may contribute to any existing purchase that has no
    contribution yet. Everyone else may only contribute to the globally
    oldest purchase without one.
    """
    if actor.is_admin:
        purchase = (
            TokenPurchase.objects
            .select_related('contribution')
            .filter(pk=purchase_id)
            .first()
        )
        if purchase is None:
            return GateDecision.deny(GateReason.PURCHASE_NOT_FOUND, 'Purchase not found.')
        if purchase.has_contribution:
            return GateDecision.deny(
                GateReason.CONTRIBUTION_ALREADY_EXISTS,
                'This purchase already has a contribution.',
            )
        return GateDecision.allow('Admin may contribute to any purchase without a contribution.')

    status = find_oldest_purchase_without_contribution(cache=cache)
    if status.all_satisfied:
        return GateDecision.deny(
            GateReason.ALL_PURCHASES_CONTRIBUTED,
            'All purchases already have contributions.',
        )

    oldest = status.next_available_purchase
    if _same_id(oldest.id, purchase_id):
        return GateDecision.allow()

    logger.warning(
        "Contribution to %s denied for %s: older purchase %s pending",
        purchase_id, actor.user_id, oldest.id,
    )
    return GateDecision.deny(
        GateReason.OLDER_PURCHASE_PENDING,
        f"You must contribute to older purchases first. Next available purchase "
        f"is from {oldest.purchase_date:%Y-%m-%d}.",
        blocking_purchase_id=oldest.id,
    )


def can_create_purchase(new_purchase_date, actor, exclude_id=None) -> GateDecision:
    """
    Decide whether ``actor`` may record a purchase dated ``new_purchase_date``.

    Non-admins are blocked when the most recent purchase dated strictly
    before the new one is still waiting for its contribution.
    ``exclude_id`` skips a purchase that is being re-dated.
    """
    if actor.is_admin:
        return GateDecision.allow('Admin bypass: sequential purchase rule not enforced.')

    previous = (
        TokenPurchase.objects
        .select_related('contribution')
        .filter(purchase_date__lt=new_purchase_date)
        .exclude(pk=exclude_id)
        .order_by(*REVERSE_CHRONOLOGICAL_ORDER)
        .first()
    )
    if previous is None:
        return GateDecision.allow('No earlier purchases.')
    if previous.has_contribution:
        return GateDecision.allow(
            f"Previous purchase from {previous.purchase_date:%Y-%m-%d} has a contribution."
        )

    return GateDecision.deny(
        GateReason.PREVIOUS_PURCHASE_UNCONTRIBUTED,
        f"Cannot create new purchase. Previous purchase from "
        f"{previous.purchase_date:%Y-%m-%d} requires a contribution first.",
        blocking_purchase_id=previous.pk,
    )


def can_delete_contribution(contribution_id) -> GateDecision:
    """
    Decide whether a contribution may be deleted.

    Only the most recently created contribution in the whole system may
    go, and only while the latest purchase already has a contribution:
    otherwise two purchases would be left without one.
    """
    contribution = UserContribution.objects.filter(pk=contribution_id).first()
    if contribution is None:
        return GateDecision.deny(GateReason.CONTRIBUTION_NOT_FOUND, 'Contribution not found.')

    latest = UserContribution.objects.order_by('-created_at', '-id').first()
    if latest.pk != contribution.pk:
        return GateDecision.deny(
            GateReason.GLOBAL_LATEST_CONTRIBUTION_ONLY,
            'Only the most recent contribution in the system can be deleted.',
        )

    latest_purchase = (
        TokenPurchase.objects
        .select_related('contribution')
        .order_by(*REVERSE_CHRONOLOGICAL_ORDER)
        .first()
    )
    if latest_purchase is not None and not latest_purchase.has_contribution:
        return GateDecision.deny(
            GateReason.PREVENT_MULTIPLE_UNCONSUMED_PURCHASES,
            'Deleting this contribution would leave more than one purchase without a contribution.',
            blocking_purchase_id=latest_purchase.pk,
        )

    return GateDecision.allow()


def get_contribution_progress() -> ContributionProgress:
    total = TokenPurchase.objects.count()
    pending = _pending_purchases()
    contributed = total - pending.count()
    oldest = pending.first()
    percentage = 100.0 if total == 0 else (contributed / total) * 100
    return ContributionProgress(
        total_purchases=total,
        purchases_with_contributions=contributed,
        next_purchase_to_contribute=PurchaseSnapshot.from_purchase(oldest) if oldest else None,
        progress_percentage=percentage,
    )
