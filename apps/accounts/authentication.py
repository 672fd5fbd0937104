from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed


class LockAwareJWTAuthentication(JWTAuthentication):
    """JWT authentication that also refuses tokens belonging to locked users."""

    def get_user(self, validated_token):
        user = super().get_user(validated_token)
        if user.locked:
            raise AuthenticationFailed('Account is locked', code='user_locked')
        return user
