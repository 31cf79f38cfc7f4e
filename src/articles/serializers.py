"""Serializers for article payloads and workflow requests."""

from rest_framework import serializers

from .models import Article, ArticleRevision, ArticleStatus
from .state_machine import EDITABLE_FIELDS


class ArticleSerializer(serializers.ModelSerializer):
    """Read-only article representation; writes go through WorkflowService."""

    author = serializers.PrimaryKeyRelatedField(read_only=True)
    reviewer = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = Article
        fields = [
            "id",
            "title",
            "slug",
            "body",
            "excerpt",
            "tags",
            "featured_image_url",
            "meta_title",
            "meta_description",
            "author",
            "status",
            "reviewer",
            "review_notes",
            "created_at",
            "updated_at",
            "published_at",
        ]
        read_only_fields = fields


class ArticleRevisionSerializer(serializers.ModelSerializer):
    revised_by = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = ArticleRevision
        fields = ["id", "article", "title", "body", "revised_by", "revision_notes", "created_at"]
        read_only_fields = fields


class ArticleContentSerializer(serializers.Serializer):
    """Content fields accepted on create (all required fields) and update (partial).

    Keys outside the editable set are rejected instead of ignored, so clients
    learn that status, slug, or reviewer cannot be written directly.
    """

    title = serializers.CharField(max_length=255)
    body = serializers.JSONField()
    excerpt = serializers.CharField(required=False, allow_blank=True)
    tags = serializers.ListField(child=serializers.CharField(max_length=50), required=False)
    featured_image_url = serializers.URLField(required=False, allow_blank=True, max_length=500)
    meta_title = serializers.CharField(required=False, allow_blank=True, max_length=255)
    meta_description = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        unknown = set(getattr(self, "initial_data", {})) - EDITABLE_FIELDS
        if unknown:
            raise serializers.ValidationError(
                f"Fields cannot be written via this endpoint: {', '.join(sorted(unknown))}"
            )
        return attrs


class ArticleListQuerySerializer(serializers.Serializer):
    author = serializers.UUIDField(required=False)
    status = serializers.ChoiceField(choices=ArticleStatus.choices, required=False)


class ReviewSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=[ArticleStatus.APPROVED, ArticleStatus.REJECTED])
    notes = serializers.CharField(required=False, allow_blank=True)


__all__ = [
    "ArticleSerializer",
    "ArticleRevisionSerializer",
    "ArticleContentSerializer",
    "ArticleListQuerySerializer",
    "ReviewSerializer",
]
