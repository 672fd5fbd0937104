from rest_framework import serializers
from .capabilities import Actor
from .models import User


class UserSerializer(serializers.ModelSerializer):
    """Profile of the authenticated user, including the permission bag."""

    is_admin = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'name',
            'role',
            'is_admin',
            'permissions',
            'locked',
            'password_reset_required',
            'created_at',
            'last_login',
        ]
        read_only_fields = fields

    def get_is_admin(self, obj) -> bool:
        return Actor.from_user(obj).is_admin


class UserLoginSerializer(serializers.Serializer):
    """Serializer for user login."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )


class UserMinimalSerializer(serializers.ModelSerializer):
    """Minimal user info embedded in purchases, contributions and readings."""

    class Meta:
        model = User
        fields = ['id', 'email', 'name']
        read_only_fields = fields
