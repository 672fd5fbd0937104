"""
Domain exceptions for meter readings app.

Chronology violations are raised by services, never by the validator
itself, which only returns ``ChronologyResult`` values.
"""
from rest_framework.exceptions import APIException


class MeterReadingServiceError(Exception):
    """Base exception for meter reading service errors."""

    reason_code = None
    suggested_minimum = None
    blocking_purchase_id = None

    def as_response_data(self):
        return {
            'message': str(self),
            'code': self.reason_code,
            'blocking_purchase_id': None,
            'suggested_minimum': self.suggested_minimum,
        }


class ChronologyViolationError(MeterReadingServiceError):
    """A reading would break the monotonic meter sequence."""

    def __init__(self, result):
        self.result = result
        self.reason_code = result.code
        self.suggested_minimum = result.suggested_minimum
        super().__init__(result.error)


class MeterReadingNotFoundError(APIException):
    """Meter reading not found."""
    status_code = 404
    default_detail = 'Meter reading not found.'
    default_code = 'meter_reading_not_found'


class InsufficientPermissionsError(APIException):
    """User doesn't have permission for operation."""
    status_code = 403
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'insufficient_permissions'
