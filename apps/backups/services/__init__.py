"""Services for backup export, verification and restore."""

from .format import (
    BACKUP_VERSION,
    TABLES,
    calculate_checksum,
    verify_backup,
)
from .export import create_backup
from .restore import RestoreResult, restore_backup

__all__ = [
    'BACKUP_VERSION',
    'TABLES',
    'calculate_checksum',
    'verify_backup',
    'create_backup',
    'RestoreResult',
    'restore_backup',
]
