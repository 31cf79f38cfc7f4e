"""Workflow service: the single entry point for article and account mutations.

Each operation follows the same protocol:

1. resolve the actor (``Unauthenticated``),
2. resolve the target (``NotFound``),
3. ask the capability matrix (``Forbidden``),
4. validate and apply the transition as one conditional write
   (``InvalidTransition`` / ``Conflict`` / ``ValidationError``),
5. append an audit entry.

Step 5 runs after the write has committed. If it fails the mutation stands,
the failure is logged, and the message is returned as a warning on the
result. Nothing here retries; callers retry ``Conflict`` after re-reading.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, Mapping, Optional, TypeVar

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Count
from django.utils import timezone

from access_control.permissions import ActionKind, can_act_on_any, can_perform
from access_control.roles import Role
from articles.models import Article, ArticleRevision, ArticleStatus
from articles.state_machine import ArticleStateMachine, TransitionAction
from audit.models import AuditAction, AuditEntry
from audit.services import AuditEntryDraft, AuditLog
from core.errors import (
    AuditWriteFailed,
    Conflict,
    Forbidden,
    NotFound,
    Unauthenticated,
    ValidationError,
)

User = get_user_model()
logger = logging.getLogger(__name__)

T = TypeVar("T")

RECENT_ARTICLES_LIMIT = 5

_REVIEW_AUDIT_ACTIONS = {
    TransitionAction.APPROVE: AuditAction.ARTICLE_APPROVED,
    TransitionAction.REJECT: AuditAction.ARTICLE_REJECTED,
}


@dataclass
class WorkflowResult(Generic[T]):
    """Outcome of a mutating operation plus any non-fatal warnings."""

    value: T
    warnings: list[str] = field(default_factory=list)


@dataclass
class DashboardStats:
    """Counts over the actor's own articles, plus the account total for Admins."""

    total_articles: int
    draft_articles: int
    pending_articles: int
    published_articles: int
    recent_articles: list[Article] = field(default_factory=list)
    total_accounts: Optional[int] = None


class WorkflowService:
    """Orchestrates authorization, the article state machine, and the audit log."""

    def __init__(self, audit_log: type[AuditLog] | AuditLog = AuditLog):
        self.audit_log = audit_log

    # ---------------------------------------------------------------- articles

    def create_article(
        self,
        actor,
        *,
        title: str,
        body: Any,
        excerpt: Optional[str] = None,
        tags: Optional[list[str]] = None,
        **content: Any,
    ) -> WorkflowResult[Article]:
        """Create a draft owned by ``actor``."""
        actor = self.require_actor(actor)
        self._authorize(actor, ActionKind.CREATE_ARTICLE)

        fields: dict[str, Any] = {"title": title, "body": body, **content}
        if excerpt is not None:
            fields["excerpt"] = excerpt
        if tags is not None:
            fields["tags"] = tags

        article = ArticleStateMachine.create(author=actor, **fields)
        logger.info("Article %s created by %s", article.pk, actor.pk)
        return self._finish(
            article,
            actor,
            AuditAction.ARTICLE_CREATED,
            article.pk,
            {"title": article.title, "slug": article.slug},
        )

    def get_article(self, actor, article_id) -> Article:
        actor = self.require_actor(actor)
        article = self.check_article(actor, article_id, ActionKind.READ_ARTICLE)
        return article

    def list_articles(
        self,
        actor,
        *,
        author_id: Any = None,
        status: Optional[str] = None,
    ) -> list[Article]:
        """List articles visible to ``actor``, newest first.

        Admins see everything. Authors only ever see their own articles and
        may not ask for anyone else's.
        """
        actor = self.require_actor(actor)
        self._authorize(actor, ActionKind.READ_ARTICLE)

        query = Article.objects.select_related("author", "reviewer")

        if author_id:
            author_id = _parse_uuid(author_id, "author")
            if author_id != actor.pk and not can_act_on_any(actor, ActionKind.READ_ARTICLE):
                raise Forbidden("Authors can only list their own articles.")
            query = query.filter(author_id=author_id)
        elif not can_act_on_any(actor, ActionKind.READ_ARTICLE):
            query = query.filter(author=actor)

        if status:
            try:
                query = query.filter(status=ArticleStatus(status))
            except ValueError:
                raise ValidationError(f"Unknown status '{status}'.", field="status") from None

        return list(query.order_by("-created_at"))

    def list_revisions(self, actor, article_id) -> list[ArticleRevision]:
        article = self.get_article(actor, article_id)
        return list(article.revisions.select_related("revised_by").order_by("-created_at"))

    def update_article(self, actor, article_id, patch: Mapping[str, Any]) -> WorkflowResult[Article]:
        """Edit content of a draft or rejected article."""
        actor = self.require_actor(actor)
        article = self.check_article(actor, article_id, ActionKind.UPDATE_ARTICLE)

        changed = ArticleStateMachine(article).edit(actor, patch)
        logger.info("Article %s updated by %s (%s)", article.pk, actor.pk, ", ".join(sorted(changed)))
        return self._finish(
            article,
            actor,
            AuditAction.ARTICLE_UPDATED,
            article.pk,
            {"title": article.title, "fields": sorted(changed)},
        )

    def delete_article(self, actor, article_id) -> WorkflowResult[None]:
        """Delete a draft or rejected article."""
        actor = self.require_actor(actor)
        article = self.check_article(actor, article_id, ActionKind.DELETE_ARTICLE)

        ArticleStateMachine(article).delete(actor)
        logger.info("Article %s deleted by %s", article.pk, actor.pk)
        return self._finish(
            None,
            actor,
            AuditAction.ARTICLE_DELETED,
            article.pk,
            {"title": article.title, "slug": article.slug},
        )

    def submit_article(self, actor, article_id) -> WorkflowResult[Article]:
        """Send a draft (or resubmit a rejected article) for review."""
        actor = self.require_actor(actor)
        article = self.check_article(actor, article_id, ActionKind.SUBMIT_ARTICLE)

        action = ArticleStateMachine(article).submit(actor)
        resubmission = action is TransitionAction.RESUBMIT
        logger.info("Article %s sent to review by %s (%s)", article.pk, actor.pk, action.value)
        return self._finish(
            article,
            actor,
            AuditAction.ARTICLE_SUBMITTED,
            article.pk,
            {"title": article.title, "resubmission": resubmission},
        )

    def review_article(
        self,
        actor,
        article_id,
        decision: ArticleStatus | str,
        notes: Optional[str] = None,
    ) -> WorkflowResult[Article]:
        """Approve or reject an article that is pending review."""
        actor = self.require_actor(actor)
        article = self.check_article(actor, article_id, ActionKind.REVIEW_ARTICLE)

        action = ArticleStateMachine(article).review(actor, decision, notes)
        logger.info("Article %s %s by %s", article.pk, article.status, actor.pk)
        return self._finish(
            article,
            actor,
            _REVIEW_AUDIT_ACTIONS[action],
            article.pk,
            {"title": article.title, "review_notes": article.review_notes},
        )

    def publish_article(self, actor, article_id) -> WorkflowResult[Article]:
        """Publish an approved article."""
        actor = self.require_actor(actor)
        article = self.check_article(actor, article_id, ActionKind.PUBLISH_ARTICLE)

        ArticleStateMachine(article).publish(actor)
        logger.info("Article %s published by %s", article.pk, actor.pk)
        return self._finish(
            article,
            actor,
            AuditAction.ARTICLE_PUBLISHED,
            article.pk,
            {"title": article.title, "published_at": article.published_at.isoformat()},
        )

    # --------------------------------------------------------------- dashboard

    def dashboard_stats(self, actor) -> DashboardStats:
        """Summarize the actor's own articles; Admins also get the account total."""
        actor = self.require_actor(actor)
        self._authorize(actor, ActionKind.READ_ARTICLE)

        own = Article.objects.filter(author=actor)
        by_status = dict(own.order_by().values_list("status").annotate(n=Count("id")))
        recent = own.select_related("author", "reviewer").order_by("-updated_at")[:RECENT_ARTICLES_LIMIT]

        stats = DashboardStats(
            total_articles=sum(by_status.values()),
            draft_articles=by_status.get(ArticleStatus.DRAFT, 0),
            pending_articles=by_status.get(ArticleStatus.PENDING_REVIEW, 0),
            published_articles=by_status.get(ArticleStatus.PUBLISHED, 0),
            recent_articles=list(recent),
        )
        if can_perform(actor, ActionKind.LIST_ACCOUNTS):
            stats.total_accounts = User.objects.count()
        return stats

    # ---------------------------------------------------------------- accounts

    def list_accounts(self, actor) -> list:
        actor = self.require_actor(actor)
        self._authorize(actor, ActionKind.LIST_ACCOUNTS)
        return list(User.objects.order_by("-date_joined"))

    def update_account_role(self, actor, account_id, new_role: Role | str) -> WorkflowResult[Any]:
        """Change an account's role. SuperAdmin only.

        The last active SuperAdmin cannot be demoted, so the role can always
        be administered.
        """
        account = self.check_account(actor, account_id)

        try:
            new_role = Role(new_role)
        except ValueError:
            raise ValidationError(f"Unknown role '{new_role}'.", field="role") from None

        old_role = account.role
        if old_role == Role.SUPER_ADMIN and new_role != Role.SUPER_ADMIN:
            others = User.objects.filter(role=Role.SUPER_ADMIN, is_active=True).exclude(pk=account.pk)
            if not others.exists():
                raise ValidationError("Cannot demote the only remaining super admin.", field="role")

        now = timezone.now()
        # Conditioned on the observed role, like article transitions.
        matched = User.objects.filter(pk=account.pk, role=old_role).update(role=new_role, updated_at=now)
        if not matched:
            raise Conflict("The account's role changed concurrently. Reload it and try again.")
        account.role = new_role
        account.updated_at = now

        logger.info("Account %s role %s -> %s by %s", account.pk, old_role, new_role.value, actor.pk)
        return self._finish(
            account,
            actor,
            AuditAction.ACCOUNT_ROLE_UPDATED,
            account.pk,
            {"email": account.email, "old_role": old_role, "new_role": new_role.value},
            resource_type=AuditLog.RESOURCE_ACCOUNT,
        )

    # ------------------------------------------------------------------- audit

    def list_audit_entries(
        self,
        actor,
        *,
        actor_id: Any = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        action: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[AuditEntry]:
        """Read the audit log newest first. SuperAdmin only."""
        actor = self.require_actor(actor)
        self._authorize(actor, ActionKind.READ_AUDIT_LOG)
        if action:
            try:
                action = AuditAction(action)
            except ValueError:
                raise ValidationError(f"Unknown audit action '{action}'.", field="action") from None
        return self.audit_log.list_for(
            actor_id=_parse_uuid(actor_id, "actor") if actor_id else None,
            resource_type=resource_type,
            resource_id=resource_id,
            action=action,
            since=since,
            limit=limit,
        )

    # ----------------------------------------------------------------- helpers

    @staticmethod
    def require_actor(actor):
        """Return ``actor`` if it is an active, authenticated account."""
        if actor is None or not getattr(actor, "is_authenticated", False):
            raise Unauthenticated()
        if not getattr(actor, "is_active", False):
            raise Unauthenticated("This account is inactive.")
        return actor

    def check_article(self, actor, article_id, action: ActionKind) -> Article:
        """Resolve the actor and the article, then authorize ``action`` on it.

        Views call this before validating a request body so that a missing
        or foreign article is reported ahead of a malformed payload.
        """
        actor = self.require_actor(actor)
        article = self._load_article(article_id)
        self._authorize(actor, action, article)
        return article

    def check_account(self, actor, account_id):
        """Resolve the target account and authorize a role change on it."""
        actor = self.require_actor(actor)
        account = self._load_account(account_id)
        self._authorize(actor, ActionKind.UPDATE_ACCOUNT_ROLE)
        return account

    def check_capability(self, actor, action: ActionKind):
        actor = self.require_actor(actor)
        self._authorize(actor, action)
        return actor

    @staticmethod
    def _authorize(actor, action: ActionKind, target=None) -> None:
        if not can_perform(actor, action, target):
            logger.info(
                "Denied %s to %s (role %s) on %s",
                action.value,
                actor.pk,
                actor.role,
                getattr(target, "pk", None),
            )
            raise Forbidden()

    @staticmethod
    def _load_article(article_id) -> Article:
        try:
            return Article.objects.select_related("author", "reviewer").get(pk=article_id)
        except (Article.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFound("Article not found.") from None

    @staticmethod
    def _load_account(account_id):
        try:
            return User.objects.get(pk=account_id)
        except (User.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFound("Account not found.") from None

    def _finish(
        self,
        value: T,
        actor,
        action: AuditAction,
        resource_id: Any,
        details: dict[str, Any],
        resource_type: str = AuditLog.RESOURCE_ARTICLE,
    ) -> WorkflowResult[T]:
        draft = AuditEntryDraft(
            actor_id=actor.pk,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id),
            details=details,
        )
        result = WorkflowResult(value)
        try:
            self.audit_log.record(draft)
        except AuditWriteFailed as exc:
            logger.warning("Audit write failed for %s on %s %s", action, resource_type, resource_id, exc_info=True)
            result.warnings.append(exc.message)
        return result


def _parse_uuid(value: Any, field_name: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError(f"'{value}' is not a valid id.", field=field_name) from None


__all__ = ["WorkflowService", "WorkflowResult", "DashboardStats"]
