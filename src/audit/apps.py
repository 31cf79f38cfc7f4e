"""App configuration for the audit log."""

from django.apps import AppConfig


class AuditConfig(AppConfig):
    """Audit app holds the append-only AuditEntry table and its service."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "audit"
