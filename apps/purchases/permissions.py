"""
Custom permission classes for purchases app.

Mutating rules (ownership, sequential gate) live in the services; these
classes only guard who may reach an endpoint or see an object.
"""
from rest_framework.permissions import BasePermission

from apps.accounts.capabilities import Actor


class IsAdminActor(BasePermission):
    """
    Admin-only endpoints (recalculation, backups).

    Usage:
        @permission_classes([IsAuthenticated, IsAdminActor])
        def recalculate_tokens(request):
            ...
    """

    message = 'Administrator access required.'

    def has_permission(self, request, view):
        return Actor.from_user(request.user).is_admin


class CapabilityPermission(BasePermission):
    """Grants access when the actor holds ``capability``."""

    capability = None

    def has_permission(self, request, view):
        return Actor.from_user(request.user).can(self.capability)


class CanViewAccountBalance(CapabilityPermission):
    capability = 'can_view_account_balance'
    message = 'You do not have permission to view the account balance.'


class CanViewContribution(BasePermission):
    """
    Members see their own contributions; admins and members with
    ``can_view_user_contributions`` see everyone's.
    """

    message = 'You can only view your own contributions.'

    def has_object_permission(self, request, view, obj):
        actor = Actor.from_user(request.user)
        return actor.can('can_view_user_contributions') or actor.owns(obj.user_id)
