"""Serializers for reading the audit log."""

from rest_framework import serializers

from .models import AuditAction, AuditEntry


class AuditEntrySerializer(serializers.ModelSerializer):
    actor = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = AuditEntry
        fields = ["id", "sequence", "actor", "action", "resource_type", "resource_id", "details", "created_at"]
        read_only_fields = fields


class AuditQuerySerializer(serializers.Serializer):
    """Query string filters for GET /audit-entries/."""

    actor = serializers.UUIDField(required=False)
    resource_type = serializers.CharField(required=False, max_length=50)
    resource_id = serializers.CharField(required=False, max_length=100)
    action = serializers.ChoiceField(choices=AuditAction.choices, required=False)
    since = serializers.DateTimeField(required=False)
    limit = serializers.IntegerField(required=False, min_value=1)


__all__ = ["AuditEntrySerializer", "AuditQuerySerializer"]
