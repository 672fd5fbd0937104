"""
Permission bag presets and the Actor capability value.

Every service and gate operation receives an ``Actor`` rather than a raw
user or an ``is_admin`` flag. The role string is only interpreted here.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
from uuid import UUID

ADMIN_ROLE = 'ADMIN'

CAPABILITIES = (
    'can_add_purchases',
    'can_edit_purchases',
    'can_delete_purchases',
    'can_add_contributions',
    'can_edit_contributions',
    'can_delete_contributions',
    'can_add_meter_readings',
    'can_view_usage_reports',
    'can_view_financial_reports',
    'can_view_efficiency_reports',
    'can_view_personal_dashboard',
    'can_view_cost_analysis',
    'can_view_account_balance',
    'can_view_progressive_token_consumption',
    'can_view_maximum_daily_consumption',
    'can_view_purchase_history',
    'can_access_new_purchase',
    'can_view_user_contributions',
    'can_export_data',
    'can_import_data',
)

DEFAULT_USER_PERMISSIONS = {name: False for name in CAPABILITIES}
DEFAULT_USER_PERMISSIONS.update({
    'can_add_purchases': True,
    'can_add_contributions': True,
    'can_edit_contributions': True,
    'can_view_personal_dashboard': True,
})

ADMIN_PERMISSIONS = {name: True for name in CAPABILITIES}

READ_ONLY_PERMISSIONS = {name: False for name in CAPABILITIES}
READ_ONLY_PERMISSIONS.update({
    'can_view_usage_reports': True,
    'can_view_personal_dashboard': True,
    'can_view_purchase_history': True,
})


def default_user_permissions():
    return dict(DEFAULT_USER_PERMISSIONS)


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation and what they may do."""

    user_id: Optional[UUID]
    is_admin: bool = False
    permissions: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_user(cls, user) -> 'Actor':
        is_admin = getattr(user, 'role', None) == ADMIN_ROLE or bool(getattr(user, 'is_superuser', False))
        return cls(
            user_id=user.pk,
            is_admin=is_admin,
            permissions=dict(getattr(user, 'permissions', None) or {}),
        )

    @classmethod
    def system(cls) -> 'Actor':
        """Actor for management commands and maintenance jobs."""
        return cls(user_id=None, is_admin=True)

    def can(self, capability: str) -> bool:
        if self.is_admin:
            return True
        return bool(self.permissions.get(capability, False))

    def owns(self, user_id) -> bool:
        return self.user_id is not None and str(self.user_id) == str(user_id)


def actor_for(request) -> Actor:
    return Actor.from_user(request.user)
