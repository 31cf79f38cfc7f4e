"""Article and revision models for the editorial workflow."""

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class ArticleStatus(models.TextChoices):
    """Lifecycle states. Published is terminal."""

    DRAFT = "draft", "Draft"
    PENDING_REVIEW = "pending_review", "Pending review"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    PUBLISHED = "published", "Published"


class Article(models.Model):
    """The workflow subject.

    ``status``, ``reviewer``, ``review_notes`` and ``published_at`` are only
    written by ``articles.state_machine``; ``updated_at`` is set explicitly by
    each transition rather than by ``auto_now`` so a rejected attempt never
    touches it.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True)
    body = models.JSONField()
    excerpt = models.TextField(blank=True)
    tags = models.JSONField(default=list, blank=True)
    featured_image_url = models.URLField(max_length=500, blank=True)
    meta_title = models.CharField(max_length=255, blank=True)
    meta_description = models.TextField(blank=True)
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="articles", editable=False
    )
    status = models.CharField(
        max_length=20, choices=ArticleStatus.choices, default=ArticleStatus.DRAFT, db_index=True
    )
    reviewer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="reviewed_articles",
        null=True,
        blank=True,
    )
    review_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(default=timezone.now)
    published_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.title


class ArticleRevision(models.Model):
    """Content snapshot written on creation and on every edit."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    article = models.ForeignKey(Article, on_delete=models.CASCADE, related_name="revisions")
    title = models.CharField(max_length=255)
    body = models.JSONField()
    revised_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="article_revisions"
    )
    revision_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(default=timezone.now, editable=False)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.article_id} @ {self.created_at:%Y-%m-%d %H:%M:%S}"


__all__ = ["Article", "ArticleRevision", "ArticleStatus"]
