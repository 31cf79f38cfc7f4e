"""
Article lifecycle state machine.

States:
    draft ──submit──▶ pending_review ──approve──▶ approved ──publish──▶ published
                        │   ▲
                   reject   resubmit
                        ▼   │
                       rejected

    draft and rejected also allow edit (same state) and delete.

Every transition is applied as a single conditional UPDATE keyed on the
article id and the status observed when the machine was built. If another
request moved the article in between, no row matches and ``Conflict`` is
raised; nothing is written. Illegal actions raise ``InvalidTransition``
before any write happens.

Usage:
    machine = ArticleStateMachine(article)
    machine.review(reviewer, ArticleStatus.APPROVED, notes="ok")
"""

import logging
import re
from enum import Enum
from collections.abc import Iterable
from typing import Any, Dict, Mapping, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.errors import Conflict, InvalidTransition, ValidationError
from .models import Article, ArticleRevision, ArticleStatus

logger = logging.getLogger(__name__)


class TransitionAction(str, Enum):
    """Actions that move (or remove) an existing article."""

    SUBMIT = "submit"
    RESUBMIT = "resubmit"
    APPROVE = "approve"
    REJECT = "reject"
    PUBLISH = "publish"
    EDIT = "edit"
    DELETE = "delete"


# None as a target means the article is removed.
VALID_TRANSITIONS: Dict[ArticleStatus, Dict[TransitionAction, Optional[ArticleStatus]]] = {
    ArticleStatus.DRAFT: {
        TransitionAction.SUBMIT: ArticleStatus.PENDING_REVIEW,
        TransitionAction.EDIT: ArticleStatus.DRAFT,
        TransitionAction.DELETE: None,
    },
    ArticleStatus.REJECTED: {
        TransitionAction.RESUBMIT: ArticleStatus.PENDING_REVIEW,
        TransitionAction.EDIT: ArticleStatus.REJECTED,
        TransitionAction.DELETE: None,
    },
    ArticleStatus.PENDING_REVIEW: {
        TransitionAction.APPROVE: ArticleStatus.APPROVED,
        TransitionAction.REJECT: ArticleStatus.REJECTED,
    },
    ArticleStatus.APPROVED: {
        TransitionAction.PUBLISH: ArticleStatus.PUBLISHED,
    },
    ArticleStatus.PUBLISHED: {},  # Terminal state
}

EDITABLE_FIELDS = frozenset(
    {"title", "body", "excerpt", "tags", "featured_image_url", "meta_title", "meta_description"}
)
_TEXT_FIELDS = ("excerpt", "featured_image_url", "meta_title", "meta_description")

REVIEW_DECISIONS = {
    ArticleStatus.APPROVED: TransitionAction.APPROVE,
    ArticleStatus.REJECTED: TransitionAction.REJECT,
}

_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


def derive_slug(title: str) -> str:
    """Lowercase the title and collapse each non-alphanumeric run into one hyphen.

    >>> derive_slug("Hello World!")
    'hello-world'
    """
    return _NON_ALNUM_RUN.sub("-", title.lower()).strip("-")


def normalize_tags(tags: Any) -> list[str]:
    """Return tags as a de-duplicated list of non-empty strings."""
    if tags is None:
        return []
    if isinstance(tags, str) or not isinstance(tags, Iterable):
        raise ValidationError("Tags must be a list of strings.", field="tags")
    if isinstance(tags, (set, frozenset)):
        tags = sorted(tags)

    result: list[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            raise ValidationError("Tags must be a list of strings.", field="tags")
        tag = tag.strip()
        if tag and tag not in result:
            result.append(tag)
    return result


def clean_content(fields: Mapping[str, Any], *, partial: bool) -> dict[str, Any]:
    """Validate content fields for create (``partial=False``) or edit.

    Unknown keys are rejected so a patch can never smuggle in status,
    reviewer, slug, or timestamps.
    """
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(
            f"Fields cannot be edited: {', '.join(sorted(unknown))}.", fields=sorted(unknown)
        )

    cleaned: dict[str, Any] = {}

    if "title" in fields or not partial:
        title = fields.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Title is required.", field="title")
        title = title.strip()
        if len(title) > 255:
            raise ValidationError("Title must be at most 255 characters.", field="title")
        cleaned["title"] = title

    if "body" in fields or not partial:
        body = fields.get("body")
        if body is None or (isinstance(body, (str, dict, list)) and not body):
            raise ValidationError("Body is required.", field="body")
        if isinstance(body, str) and not body.strip():
            raise ValidationError("Body is required.", field="body")
        cleaned["body"] = body

    if "tags" in fields:
        cleaned["tags"] = normalize_tags(fields["tags"])

    for name in _TEXT_FIELDS:
        if name in fields:
            value = fields[name]
            cleaned[name] = "" if value is None else str(value).strip()

    return cleaned


class ArticleStateMachine:
    """Validates and applies transitions for one observed article snapshot."""

    def __init__(self, article: Article):
        self.article = article
        self.expected_status = ArticleStatus(article.status)

    def can_apply(self, action: TransitionAction) -> bool:
        return action in VALID_TRANSITIONS[self.expected_status]

    def target_for(self, action: TransitionAction) -> Optional[ArticleStatus]:
        """Return the status ``action`` leads to, or raise InvalidTransition."""
        if not self.can_apply(action):
            raise InvalidTransition(
                f"Cannot {action.value} an article in status '{self.expected_status.value}'.",
                action=action.value,
                status=self.expected_status.value,
            )
        return VALID_TRANSITIONS[self.expected_status][action]

    # ------------------------------------------------------------------ create

    @staticmethod
    def create(*, author, **fields: Any) -> Article:
        """Insert a new draft owned by ``author`` together with its first revision."""
        cleaned = clean_content(fields, partial=False)
        slug = derive_slug(cleaned["title"])
        if not slug:
            raise ValidationError("Title must contain at least one letter or digit.", field="title")
        if Article.objects.filter(slug=slug).exists():
            raise ValidationError(f"An article with slug '{slug}' already exists.", field="slug")

        now = timezone.now()
        try:
            with transaction.atomic():
                article = Article.objects.create(
                    author=author,
                    slug=slug,
                    status=ArticleStatus.DRAFT,
                    created_at=now,
                    updated_at=now,
                    **cleaned,
                )
                ArticleRevision.objects.create(
                    article=article,
                    title=article.title,
                    body=article.body,
                    revised_by=author,
                    revision_notes="Initial draft",
                    created_at=now,
                )
        except IntegrityError as exc:
            # Lost a race against another create with the same slug.
            raise ValidationError(f"An article with slug '{slug}' already exists.", field="slug") from exc
        return article

    # ------------------------------------------------------------- transitions

    def submit(self, actor) -> TransitionAction:
        """Send a draft or rejected article to review; returns the action taken.

        Prior reviewer and review notes are kept on resubmission as history.
        """
        action = (
            TransitionAction.RESUBMIT
            if self.expected_status == ArticleStatus.REJECTED
            else TransitionAction.SUBMIT
        )
        self._commit(action, {})
        return action

    def review(self, actor, decision: ArticleStatus | str, notes: Optional[str] = None) -> TransitionAction:
        """Approve or reject a pending article, recording reviewer and notes."""
        try:
            action = REVIEW_DECISIONS[ArticleStatus(decision)]
        except (KeyError, ValueError):
            raise ValidationError(
                "Decision must be 'approved' or 'rejected'.", field="decision"
            ) from None
        self._commit(action, {"reviewer": actor, "review_notes": (notes or "").strip()})
        return action

    def publish(self, actor) -> TransitionAction:
        """Publish an approved article. ``published_at`` is written only once."""
        self.target_for(TransitionAction.PUBLISH)
        changes: dict[str, Any] = {}
        if self.article.published_at is None:
            changes["published_at"] = timezone.now()
        self._commit(TransitionAction.PUBLISH, changes)
        return TransitionAction.PUBLISH

    def edit(self, actor, patch: Mapping[str, Any], notes: str = "") -> dict[str, Any]:
        """Update content fields in place; returns the cleaned changes."""
        self.target_for(TransitionAction.EDIT)
        cleaned = clean_content(patch, partial=True)
        if not cleaned:
            raise ValidationError("No editable fields were provided.")

        revision = {
            "title": cleaned.get("title", self.article.title),
            "body": cleaned.get("body", self.article.body),
            "revised_by": actor,
            "revision_notes": notes,
        }
        self._commit(TransitionAction.EDIT, cleaned, revision=revision)
        return cleaned

    def delete(self, actor) -> None:
        """Remove a draft or rejected article (revisions cascade)."""
        self.target_for(TransitionAction.DELETE)
        with transaction.atomic():
            deleted, _ = Article.objects.filter(
                pk=self.article.pk, status=self.expected_status
            ).delete()
        if not deleted:
            raise self._conflict(TransitionAction.DELETE)

    # ----------------------------------------------------------------- helpers

    def _commit(
        self,
        action: TransitionAction,
        changes: dict[str, Any],
        revision: Optional[dict[str, Any]] = None,
    ) -> None:
        target = self.target_for(action)
        now = timezone.now()
        changes = {**changes, "status": target, "updated_at": now}

        with transaction.atomic():
            matched = Article.objects.filter(
                pk=self.article.pk, status=self.expected_status
            ).update(**changes)
            if not matched:
                raise self._conflict(action)
            if revision is not None:
                ArticleRevision.objects.create(article_id=self.article.pk, created_at=now, **revision)

        # Only reflect the change in memory once the row was written.
        for field, value in changes.items():
            setattr(self.article, field, value)
        logger.debug(
            "Article %s: %s -> %s via %s", self.article.pk, self.expected_status.value, target.value, action.value
        )
        self.expected_status = target

    def _conflict(self, action: TransitionAction) -> Conflict:
        logger.info(
            "Conflict applying %s to article %s: status is no longer '%s'",
            action.value,
            self.article.pk,
            self.expected_status.value,
        )
        return Conflict(
            f"Article changed before '{action.value}' could be applied; expected status "
            f"'{self.expected_status.value}'.",
            action=action.value,
            expected_status=self.expected_status.value,
        )


__all__ = [
    "ArticleStateMachine",
    "TransitionAction",
    "VALID_TRANSITIONS",
    "EDITABLE_FIELDS",
    "derive_slug",
    "normalize_tags",
    "clean_content",
]
