"""Serializers for account role administration."""

from rest_framework import serializers

from .roles import Role


class RoleUpdateSerializer(serializers.Serializer):
    """Body of POST /accounts/{id}/role/."""

    role = serializers.ChoiceField(choices=Role.choices)


__all__ = ["RoleUpdateSerializer"]
