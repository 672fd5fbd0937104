"""Services for purchases business logic."""

from .cache import SequentialStatusCache, get_sequential_cache, invalidate_sequential_cache
from .sequential_gate import (
    GateDecision,
    GateReason,
    SequentialStatus,
    ContributionProgress,
    find_oldest_purchase_without_contribution,
    can_accept_contribution,
    can_create_purchase,
    can_delete_contribution,
    get_contribution_progress,
)
from .reconciliation import (
    RecalculationReport,
    fair_share,
    recalculate_all_tokens_consumed,
    run_recalculation,
    calculate_global_balance,
    calculate_running_balance,
    calculate_user_balance,
)
from .purchase_management import (
    get_purchase,
    create_purchase,
    check_purchase_update,
    update_purchase,
    delete_purchase,
)
from .contribution_management import (
    contributions_visible_to,
    get_contribution,
    compute_tokens_consumed,
    create_contribution,
    update_contribution,
    delete_contribution,
)

__all__ = [
    # Cache
    'SequentialStatusCache',
    'get_sequential_cache',
    'invalidate_sequential_cache',
    # Sequential gate
    'GateDecision',
    'GateReason',
    'SequentialStatus',
    'ContributionProgress',
    'find_oldest_purchase_without_contribution',
    'can_accept_contribution',
    'can_create_purchase',
    'can_delete_contribution',
    'get_contribution_progress',
    # Reconciliation
    'RecalculationReport',
    'fair_share',
    'recalculate_all_tokens_consumed',
    'run_recalculation',
    'calculate_global_balance',
    'calculate_running_balance',
    'calculate_user_balance',
    # Purchases
    'get_purchase',
    'create_purchase',
    'check_purchase_update',
    'update_purchase',
    'delete_purchase',
    # Contributions
    'contributions_visible_to',
    'get_contribution',
    'compute_tokens_consumed',
    'create_contribution',
    'update_contribution',
    'delete_contribution',
]
