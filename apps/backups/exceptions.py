"""
Domain exceptions for backups app.
"""


class BackupServiceError(Exception):
    """Base exception for backup service errors."""

    reason_code = None

    def __init__(self, message, errors=None):
        self.errors = list(errors or [])
        super().__init__(message)

    def as_response_data(self):
        return {
            'message': str(self),
            'code': self.reason_code,
            'errors': self.errors,
        }


class BackupFormatError(BackupServiceError):
    """The document is malformed or references records that do not exist."""
    reason_code = 'INVALID_BACKUP_FORMAT'


class BackupVerificationError(BackupServiceError):
    """Record counts, checksums or required fields do not match."""
    reason_code = 'BACKUP_VERIFICATION_FAILED'
