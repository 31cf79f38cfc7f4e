"""Append-only audit trail of workflow mutations."""

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class AuditAction(models.TextChoices):
    """Actions recorded in the audit log."""

    ARTICLE_CREATED = "article_created", "Article created"
    ARTICLE_UPDATED = "article_updated", "Article updated"
    ARTICLE_DELETED = "article_deleted", "Article deleted"
    ARTICLE_SUBMITTED = "article_submitted", "Article submitted"
    ARTICLE_APPROVED = "article_approved", "Article approved"
    ARTICLE_REJECTED = "article_rejected", "Article rejected"
    ARTICLE_PUBLISHED = "article_published", "Article published"
    ACCOUNT_ROLE_UPDATED = "account_role_updated", "Account role updated"


class AppendOnlyError(Exception):
    """Raised on any attempt to change or remove a stored audit entry."""


class AuditEntryQuerySet(models.QuerySet):
    """Bulk writes are refused the same way instance writes are."""

    def update(self, **kwargs):
        raise AppendOnlyError("Audit entries cannot be modified.")

    def delete(self):
        raise AppendOnlyError("Audit entries cannot be deleted.")


class AuditEntry(models.Model):
    """Immutable fact about one successful mutation.

    ``sequence`` is drawn from a shared counter and breaks ties between
    entries created within the same clock tick. The table is append-only:
    ``save`` refuses updates, and ``delete`` or a queryset ``update``
    always fails.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    sequence = models.PositiveBigIntegerField(unique=True)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="audit_entries"
    )
    action = models.CharField(max_length=50, choices=AuditAction.choices, db_index=True)
    resource_type = models.CharField(max_length=50, db_index=True)
    resource_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True, editable=False)

    objects = AuditEntryQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-sequence"]
        verbose_name_plural = "audit entries"

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"#{self.sequence} {self.action} {self.resource_type}:{self.resource_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise AppendOnlyError("Audit entries cannot be modified.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise AppendOnlyError("Audit entries cannot be deleted.")


__all__ = ["AuditAction", "AuditEntry", "AppendOnlyError"]
