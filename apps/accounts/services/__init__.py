"""Services for accounts business logic."""

from .exceptions import (
    AccountsServiceError,
    InvalidCredentialsError,
    InactiveAccountError,
    LockedAccountError,
)
from .user_authentication import authenticate_user

__all__ = [
    # Exceptions
    'AccountsServiceError',
    'InvalidCredentialsError',
    'InactiveAccountError',
    'LockedAccountError',
    # Services
    'authenticate_user',
]
