"""
Serializers for User model.

No business logic in serializers - validation only.
"""

from rest_framework import serializers
from apps.users.models import User, Role


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model."""

    id = serializers.UUIDField(read_only=True)
    role = serializers.ChoiceField(choices=Role.choices, read_only=True)
    displayName = serializers.CharField(source="display_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "displayName", "email", "role"]
        read_only_fields = ["id", "email", "role"]


class UserCreateSerializer(serializers.Serializer):
    """Serializer for admin-driven user creation."""

    username = serializers.CharField(max_length=150, required=True)
    password = serializers.CharField(write_only=True, required=True, min_length=6)
    displayName = serializers.CharField(
        max_length=255, required=False, source="display_name"
    )
    email = serializers.EmailField(required=False, allow_blank=True)
    role = serializers.CharField(required=False, default=Role.USER)

    def validate_role(self, value):
        """Only citizen accounts may be created through the API."""
        if value == Role.ADMIN:
            raise serializers.ValidationError("Cannot create admin users via API")
        if value not in Role.values:
            raise serializers.ValidationError(f"Unknown role: {value}")
        return value


class RegisterSerializer(serializers.Serializer):
    """Serializer for self-service citizen registration."""

    username = serializers.CharField(max_length=150, required=True)
    password = serializers.CharField(write_only=True, required=True, min_length=6)
    displayName = serializers.CharField(
        max_length=255, required=False, source="display_name"
    )
    email = serializers.EmailField(required=False, allow_blank=True)
