"""Audit service: append entries and query them newest first."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Max
from django.utils import timezone
from redis.exceptions import RedisError

from core.errors import AuditWriteFailed, ValidationError
from core.redis_client import get_redis_client
from .models import AuditAction, AuditEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditEntryDraft:
    """What the caller knows about an action before it is stored."""

    actor_id: Any
    action: AuditAction
    resource_type: str
    resource_id: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)


class AuditLog:
    """Append-only audit log backed by the ``AuditEntry`` table.

    Sequence numbers come from an atomic Redis ``INCR`` so they increase
    monotonically across every process writing to the log.
    """

    RESOURCE_ARTICLE = "article"
    RESOURCE_ACCOUNT = "account"

    @classmethod
    def record(cls, draft: AuditEntryDraft) -> AuditEntry:
        """Store one entry; any storage failure surfaces as AuditWriteFailed."""

        try:
            sequence = cls._next_sequence()
            # Savepoint so a failed insert cannot poison an enclosing transaction.
            with transaction.atomic():
                entry = AuditEntry.objects.create(
                    sequence=sequence,
                    actor_id=draft.actor_id,
                    action=AuditAction(draft.action),
                    resource_type=draft.resource_type,
                    resource_id=str(draft.resource_id) if draft.resource_id is not None else None,
                    details=dict(draft.details),
                    created_at=timezone.now(),
                )
            logger.debug(
                "Recorded audit entry #%s %s %s:%s",
                sequence,
                draft.action,
                draft.resource_type,
                draft.resource_id,
            )
        except (RedisError, DatabaseError) as exc:
            raise AuditWriteFailed(
                f"Could not record {draft.action} for {draft.resource_type} {draft.resource_id}: {exc}",
                action=str(draft.action),
                resource_id=draft.resource_id,
            ) from exc
        return entry

    @classmethod
    def list_for(
        cls,
        *,
        actor_id: Any = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        action: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[AuditEntry]:
        """Return matching entries newest first, capped at ``AUDIT_LOG_MAX_LIMIT``."""

        limit = cls._clamp_limit(limit)
        query = AuditEntry.objects.select_related("actor")

        if actor_id:
            query = query.filter(actor_id=actor_id)
        if resource_type:
            query = query.filter(resource_type=resource_type)
        if resource_id:
            query = query.filter(resource_id=str(resource_id))
        if action:
            query = query.filter(action=action)
        if since:
            query = query.filter(created_at__gte=since)

        return list(query.order_by("-created_at", "-sequence")[:limit])

    @staticmethod
    def _clamp_limit(limit: Optional[int]) -> int:
        default = getattr(settings, "AUDIT_LOG_DEFAULT_LIMIT", 100)
        maximum = getattr(settings, "AUDIT_LOG_MAX_LIMIT", 100)
        if limit is None:
            return min(default, maximum)
        if limit < 1:
            raise ValidationError("Limit must be a positive integer.", field="limit")
        return min(limit, maximum)

    @staticmethod
    def _next_sequence() -> int:
        client = get_redis_client()
        key = settings.AUDIT_SEQUENCE_KEY
        if client.get(key) is None:
            # Counter lost (fresh or flushed Redis): resume after the stored maximum.
            stored_max = AuditEntry.objects.aggregate(value=Max("sequence"))["value"] or 0
            client.set(key, stored_max, nx=True)
        return int(client.incr(key))


__all__ = ["AuditLog", "AuditEntryDraft"]
