"""Article endpoints. Every write is delegated to WorkflowService."""

from rest_framework import status
from rest_framework.decorators import action

from access_control.permissions import ActionKind
from core.response import BaseAPIView, BaseViewSet, api_response
from workflow.services import WorkflowService
from .serializers import (
    ArticleContentSerializer,
    ArticleListQuerySerializer,
    ArticleRevisionSerializer,
    ArticleSerializer,
    ReviewSerializer,
)


def current_actor(request):
    """Return the authenticated account, or None for anonymous requests."""
    user = getattr(request, "user", None)
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return user


class ArticleViewSet(BaseViewSet):
    """CRUD plus submit/review/publish transitions for articles."""

    lookup_value_regex = "[^/]+"
    service = WorkflowService()

    def list(self, request):
        query = ArticleListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        articles = self.service.list_articles(
            current_actor(request),
            author_id=query.validated_data.get("author"),
            status=query.validated_data.get("status"),
        )
        return api_response(ArticleSerializer(articles, many=True).data)

    def create(self, request):
        # Resolve the actor before validating so anonymous callers get 401.
        actor = self.service.require_actor(current_actor(request))
        serializer = ArticleContentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.service.create_article(actor, **serializer.validated_data)
        return api_response(
            ArticleSerializer(result.value).data, status=status.HTTP_201_CREATED, warnings=result.warnings
        )

    def retrieve(self, request, pk=None):
        article = self.service.get_article(current_actor(request), pk)
        return api_response(ArticleSerializer(article).data)

    def partial_update(self, request, pk=None):
        actor = self.service.require_actor(current_actor(request))
        # Missing or foreign articles are reported before payload errors.
        self.service.check_article(actor, pk, ActionKind.UPDATE_ARTICLE)
        serializer = ArticleContentSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        result = self.service.update_article(actor, pk, serializer.validated_data)
        return api_response(ArticleSerializer(result.value).data, warnings=result.warnings)

    def destroy(self, request, pk=None):
        result = self.service.delete_article(current_actor(request), pk)
        return api_response({"id": pk, "deleted": True}, warnings=result.warnings)

    @action(detail=True, methods=["post"])
    def submit(self, request, pk=None):
        result = self.service.submit_article(current_actor(request), pk)
        return api_response(ArticleSerializer(result.value).data, warnings=result.warnings)

    @action(detail=True, methods=["post"])
    def review(self, request, pk=None):
        actor = self.service.require_actor(current_actor(request))
        self.service.check_article(actor, pk, ActionKind.REVIEW_ARTICLE)
        serializer = ReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.service.review_article(
            actor,
            pk,
            serializer.validated_data["decision"],
            serializer.validated_data.get("notes"),
        )
        return api_response(ArticleSerializer(result.value).data, warnings=result.warnings)

    @action(detail=True, methods=["post"])
    def publish(self, request, pk=None):
        result = self.service.publish_article(current_actor(request), pk)
        return api_response(ArticleSerializer(result.value).data, warnings=result.warnings)

    @action(detail=True, methods=["get"])
    def revisions(self, request, pk=None):
        revisions = self.service.list_revisions(current_actor(request), pk)
        return api_response(ArticleRevisionSerializer(revisions, many=True).data)


class DashboardView(BaseAPIView):
    """Per-actor article counts and recent articles; account total for Admins."""

    service = WorkflowService()

    def get(self, request):
        stats = self.service.dashboard_stats(current_actor(request))
        data = {
            "total_articles": stats.total_articles,
            "draft_articles": stats.draft_articles,
            "pending_articles": stats.pending_articles,
            "published_articles": stats.published_articles,
            "recent_articles": ArticleSerializer(stats.recent_articles, many=True).data,
        }
        if stats.total_accounts is not None:
            data["total_accounts"] = stats.total_accounts
        return api_response(data)


__all__ = ["ArticleViewSet", "DashboardView", "current_actor"]
