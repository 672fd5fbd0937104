"""
Domain exceptions for purchases app.

Gate and chronology checks return structured decisions; services turn a
denial into one of the exceptions below so views can map it to a 400
response carrying the reason code and the blocking purchase.
"""
from rest_framework.exceptions import APIException


class PurchaseServiceError(Exception):
    """Base exception for purchase service errors."""

    reason_code = None
    blocking_purchase_id = None

    def as_response_data(self):
        return {
            'message': str(self),
            'code': self.reason_code,
            'blocking_purchase_id': (
                str(self.blocking_purchase_id) if self.blocking_purchase_id else None
            ),
        }


class SequentialConstraintError(PurchaseServiceError):
    """The sequential-contribution gate denied the operation."""

    def __init__(self, decision):
        self.decision = decision
        self.reason_code = decision.reason_code.value if decision.reason_code else None
        self.blocking_purchase_id = decision.blocking_purchase_id
        super().__init__(decision.reason)


class ContributionAlreadyExistsError(PurchaseServiceError):
    """Raised when a purchase already has its contribution."""
    reason_code = 'CONTRIBUTION_ALREADY_EXISTS'


class PurchaseHasContributionError(PurchaseServiceError):
    """Raised when deleting a purchase that still has a contribution."""
    reason_code = 'PURCHASE_HAS_CONTRIBUTION'


class PurchaseLockedError(PurchaseServiceError):
    """Raised when a non-admin edits a purchase that already has a contribution."""
    reason_code = 'PURCHASE_LOCKED'


class InsufficientPermissionsError(APIException):
    """User doesn't have permission for operation."""
    status_code = 403
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'insufficient_permissions'


class PurchaseNotFoundError(APIException):
    """Token purchase not found."""
    status_code = 404
    default_detail = 'Purchase not found.'
    default_code = 'purchase_not_found'


class ContributionNotFoundError(APIException):
    """Contribution not found."""
    status_code = 404
    default_detail = 'Contribution not found.'
    default_code = 'contribution_not_found'


class UserNotFoundError(APIException):
    """Contributing user not found."""
    status_code = 404
    default_detail = 'User not found.'
    default_code = 'user_not_found'
