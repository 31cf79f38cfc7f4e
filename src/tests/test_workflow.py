"""WorkflowService tests: authorization, audit trail, and failure handling."""

from __future__ import annotations

import uuid
from datetime import timedelta
from unittest import mock

from django.db import DatabaseError
from django.test import override_settings
from django.utils import timezone
from redis.exceptions import ConnectionError as RedisConnectionError

from access_control.roles import Role
from articles.models import Article, ArticleStatus
from audit.models import AppendOnlyError, AuditAction, AuditEntry
from audit.services import AuditEntryDraft, AuditLog
from core.errors import (
    Conflict,
    Forbidden,
    InvalidTransition,
    NotFound,
    Unauthenticated,
    ValidationError,
)
from tests.utils import RedisPatchedTestCase, create_user
from workflow import WorkflowService

BODY = {"blocks": [{"type": "paragraph", "text": "Body"}]}


class WorkflowServiceTests(RedisPatchedTestCase):
    """Exercise every operation through the service, as the views do."""

    @classmethod
    def setUpTestData(cls):
        cls.author = create_user("author@example.com", role=Role.AUTHOR)
        cls.other_author = create_user("other@example.com", role=Role.AUTHOR)
        cls.admin = create_user("admin@example.com", role=Role.ADMIN)
        cls.super_admin = create_user("root@example.com", role=Role.SUPER_ADMIN)

    def setUp(self):
        super().setUp()
        self.service = WorkflowService()

    def _draft(self, author=None, title="Hello World!") -> Article:
        return self.service.create_article(author or self.author, title=title, body=BODY).value

    def _actions_for(self, article) -> list[str]:
        entries = AuditEntry.objects.filter(resource_id=str(article.pk)).order_by("sequence")
        return [entry.action for entry in entries]

    # ------------------------------------------------------------ lifecycle

    def test_reject_resubmit_approve_publish_scenario(self):
        article = self._draft()
        self.assertEqual(article.slug, "hello-world")

        self.service.submit_article(self.author, article.pk)
        rejected = self.service.review_article(
            self.admin, article.pk, ArticleStatus.REJECTED, "needs sources"
        ).value
        self.assertEqual(rejected.status, ArticleStatus.REJECTED)
        self.assertEqual(rejected.review_notes, "needs sources")

        resubmitted = self.service.submit_article(self.author, article.pk).value
        self.assertEqual(resubmitted.status, ArticleStatus.PENDING_REVIEW)
        self.assertEqual(resubmitted.review_notes, "needs sources")

        self.service.review_article(self.admin, article.pk, ArticleStatus.APPROVED)
        published = self.service.publish_article(self.admin, article.pk)

        self.assertEqual(published.warnings, [])
        self.assertEqual(published.value.status, ArticleStatus.PUBLISHED)
        self.assertIsNotNone(published.value.published_at)
        self.assertEqual(
            self._actions_for(article),
            [
                AuditAction.ARTICLE_CREATED,
                AuditAction.ARTICLE_SUBMITTED,
                AuditAction.ARTICLE_REJECTED,
                AuditAction.ARTICLE_SUBMITTED,
                AuditAction.ARTICLE_APPROVED,
                AuditAction.ARTICLE_PUBLISHED,
            ],
        )
        submissions = AuditEntry.objects.filter(
            resource_id=str(article.pk), action=AuditAction.ARTICLE_SUBMITTED
        ).order_by("sequence")
        self.assertEqual([entry.details["resubmission"] for entry in submissions], [False, True])

    def test_publish_twice_is_invalid_and_not_audited(self):
        article = self._draft()
        self.service.submit_article(self.author, article.pk)
        self.service.review_article(self.admin, article.pk, ArticleStatus.APPROVED)
        first = self.service.publish_article(self.admin, article.pk).value

        with self.assertRaises(InvalidTransition):
            self.service.publish_article(self.admin, article.pk)

        article.refresh_from_db()
        self.assertEqual(article.published_at, first.published_at)
        self.assertEqual(self._actions_for(article).count(AuditAction.ARTICLE_PUBLISHED), 1)

    def test_update_and_delete_are_audited(self):
        article = self._draft()

        updated = self.service.update_article(self.author, article.pk, {"excerpt": "Short"}).value
        self.assertEqual(updated.excerpt, "Short")
        self.service.delete_article(self.author, article.pk)

        self.assertFalse(Article.objects.filter(pk=article.pk).exists())
        self.assertEqual(
            self._actions_for(article),
            [AuditAction.ARTICLE_CREATED, AuditAction.ARTICLE_UPDATED, AuditAction.ARTICLE_DELETED],
        )
        update_entry = AuditEntry.objects.get(action=AuditAction.ARTICLE_UPDATED)
        self.assertEqual(update_entry.details["fields"], ["excerpt"])

    def test_failed_operations_write_no_audit_entries(self):
        article = self._draft()
        before = AuditEntry.objects.count()

        with self.assertRaises(InvalidTransition):
            self.service.publish_article(self.admin, article.pk)
        with self.assertRaises(Forbidden):
            self.service.review_article(self.author, article.pk, ArticleStatus.APPROVED)
        with self.assertRaises(ValidationError):
            self.service.update_article(self.author, article.pk, {"title": ""})

        self.assertEqual(AuditEntry.objects.count(), before)

    def test_concurrent_review_loses_with_conflict(self):
        article = self._draft()
        self.service.submit_article(self.author, article.pk)
        stale = Article.objects.get(pk=article.pk)

        self.service.review_article(self.admin, article.pk, ArticleStatus.APPROVED, "ok")
        with mock.patch.object(WorkflowService, "_load_article", return_value=stale):
            with self.assertRaises(Conflict):
                self.service.review_article(self.super_admin, article.pk, ArticleStatus.REJECTED, "no")

        article.refresh_from_db()
        self.assertEqual(article.status, ArticleStatus.APPROVED)
        self.assertEqual(self._actions_for(article).count(AuditAction.ARTICLE_REJECTED), 0)

    # -------------------------------------------------------- authorization

    def test_author_cannot_touch_other_authors_articles(self):
        article = self._draft(self.other_author)

        for call in (
            lambda: self.service.get_article(self.author, article.pk),
            lambda: self.service.update_article(self.author, article.pk, {"title": "Mine"}),
            lambda: self.service.delete_article(self.author, article.pk),
            lambda: self.service.submit_article(self.author, article.pk),
        ):
            with self.assertRaises(Forbidden):
                call()

    def test_author_cannot_review_or_publish_own_article(self):
        article = self._draft()
        self.service.submit_article(self.author, article.pk)

        with self.assertRaises(Forbidden):
            self.service.review_article(self.author, article.pk, ArticleStatus.APPROVED)
        with self.assertRaises(Forbidden):
            self.service.publish_article(self.author, article.pk)

    def test_admin_may_edit_any_draft(self):
        article = self._draft()
        result = self.service.update_article(self.admin, article.pk, {"title": "Edited by admin"})
        self.assertEqual(result.value.title, "Edited by admin")

    def test_missing_actor_and_missing_article(self):
        with self.assertRaises(Unauthenticated):
            self.service.create_article(None, title="Anon", body=BODY)
        with self.assertRaises(NotFound):
            self.service.get_article(self.admin, uuid.uuid4())
        with self.assertRaises(NotFound):
            self.service.get_article(self.admin, "not-a-uuid")

    def test_inactive_actor_is_unauthenticated(self):
        inactive = create_user("gone@example.com", role=Role.ADMIN, is_active=False)
        with self.assertRaises(Unauthenticated):
            self.service.list_articles(inactive)

    def test_list_articles_scopes_authors_to_own(self):
        mine = self._draft(title="Mine")
        theirs = self._draft(self.other_author, title="Theirs")
        self.service.submit_article(self.other_author, theirs.pk)

        self.assertEqual([a.pk for a in self.service.list_articles(self.author)], [mine.pk])
        self.assertEqual(len(self.service.list_articles(self.admin)), 2)
        self.assertEqual(
            [a.pk for a in self.service.list_articles(self.admin, status=ArticleStatus.PENDING_REVIEW)],
            [theirs.pk],
        )
        self.assertEqual(
            [a.pk for a in self.service.list_articles(self.admin, author_id=self.author.pk)], [mine.pk]
        )
        with self.assertRaises(Forbidden):
            self.service.list_articles(self.author, author_id=self.other_author.pk)
        with self.assertRaises(ValidationError):
            self.service.list_articles(self.admin, status="archived")

    def test_list_revisions(self):
        article = self._draft()
        self.service.update_article(self.author, article.pk, {"title": "Second"})

        revisions = self.service.list_revisions(self.author, article.pk)

        self.assertEqual([revision.title for revision in revisions], ["Second", "Hello World!"])

    # ----------------------------------------------------------- dashboard

    def test_dashboard_for_author_counts_own_articles_only(self):
        draft = self._draft(title="Draft one")
        pending = self._draft(title="Pending one")
        self.service.submit_article(self.author, pending.pk)
        self._draft(self.other_author, title="Not mine")

        stats = self.service.dashboard_stats(self.author)

        self.assertEqual(stats.total_articles, 2)
        self.assertEqual(stats.draft_articles, 1)
        self.assertEqual(stats.pending_articles, 1)
        self.assertEqual(stats.published_articles, 0)
        self.assertEqual([a.pk for a in stats.recent_articles], [pending.pk, draft.pk])
        self.assertIsNone(stats.total_accounts)

    def test_dashboard_for_admin_adds_account_total(self):
        article = self._draft(self.admin, title="Admin piece")
        self.service.submit_article(self.admin, article.pk)
        self.service.review_article(self.super_admin, article.pk, ArticleStatus.APPROVED)
        self.service.publish_article(self.super_admin, article.pk)
        self._draft(title="Author piece")

        stats = self.service.dashboard_stats(self.admin)

        self.assertEqual(stats.total_articles, 1)
        self.assertEqual(stats.published_articles, 1)
        self.assertEqual(stats.total_accounts, 4)

    def test_dashboard_requires_actor(self):
        with self.assertRaises(Unauthenticated):
            self.service.dashboard_stats(None)

    # ------------------------------------------------------------ accounts

    def test_list_accounts_requires_admin(self):
        with self.assertRaises(Forbidden):
            self.service.list_accounts(self.author)
        self.assertEqual(len(self.service.list_accounts(self.admin)), 4)

    def test_super_admin_updates_role_with_audit(self):
        result = self.service.update_account_role(self.super_admin, self.author.pk, "admin")

        self.assertEqual(result.value.role, Role.ADMIN)
        self.author.refresh_from_db()
        self.assertEqual(self.author.role, Role.ADMIN)
        entry = AuditEntry.objects.get(action=AuditAction.ACCOUNT_ROLE_UPDATED)
        self.assertEqual(entry.resource_type, "account")
        self.assertEqual(entry.resource_id, str(self.author.pk))
        self.assertEqual(entry.details["old_role"], "author")
        self.assertEqual(entry.details["new_role"], "admin")

    def test_role_update_rules(self):
        with self.assertRaises(Forbidden):
            self.service.update_account_role(self.admin, self.author.pk, Role.ADMIN)
        with self.assertRaises(ValidationError):
            self.service.update_account_role(self.super_admin, self.author.pk, "editor")
        with self.assertRaises(NotFound):
            self.service.update_account_role(self.super_admin, uuid.uuid4(), Role.ADMIN)
        self.assertFalse(AuditEntry.objects.filter(action=AuditAction.ACCOUNT_ROLE_UPDATED).exists())

    def test_only_super_admin_cannot_be_demoted(self):
        with self.assertRaises(ValidationError):
            self.service.update_account_role(self.super_admin, self.super_admin.pk, Role.ADMIN)
        self.super_admin.refresh_from_db()
        self.assertEqual(self.super_admin.role, Role.SUPER_ADMIN)

    def test_super_admin_may_change_own_role_when_another_remains(self):
        create_user("root2@example.com", role=Role.SUPER_ADMIN)

        result = self.service.update_account_role(self.super_admin, self.super_admin.pk, Role.ADMIN)

        self.assertEqual(result.value.role, Role.ADMIN)
        entry = AuditEntry.objects.get(action=AuditAction.ACCOUNT_ROLE_UPDATED)
        self.assertEqual(entry.resource_id, str(self.super_admin.pk))

    def test_promoting_to_super_admin_needs_no_other_super_admin(self):
        result = self.service.update_account_role(self.super_admin, self.admin.pk, Role.SUPER_ADMIN)
        self.assertEqual(result.value.role, Role.SUPER_ADMIN)

    def test_concurrent_role_change_conflicts(self):
        stale = type(self.author).objects.get(pk=self.author.pk)
        self.service.update_account_role(self.super_admin, self.author.pk, Role.ADMIN)

        with mock.patch.object(WorkflowService, "_load_account", return_value=stale):
            with self.assertRaises(Conflict):
                self.service.update_account_role(self.super_admin, self.author.pk, Role.SUPER_ADMIN)

        self.author.refresh_from_db()
        self.assertEqual(self.author.role, Role.ADMIN)

    # --------------------------------------------------------------- audit

    def test_audit_failure_is_a_warning_and_mutation_stands(self):
        article = self._draft()

        with mock.patch.object(
            AuditLog, "_next_sequence", side_effect=RedisConnectionError("Redis unavailable")
        ):
            result = self.service.submit_article(self.author, article.pk)

        self.assertEqual(len(result.warnings), 1)
        self.assertIn("article_submitted", result.warnings[0])
        article.refresh_from_db()
        self.assertEqual(article.status, ArticleStatus.PENDING_REVIEW)
        self.assertEqual(self._actions_for(article), [AuditAction.ARTICLE_CREATED])

    def test_audit_database_failure_is_a_warning(self):
        article = self._draft()

        with mock.patch.object(AuditEntry.objects, "create", side_effect=DatabaseError("disk full")):
            result = self.service.update_article(self.author, article.pk, {"title": "Still saved"})

        self.assertTrue(result.warnings)
        article.refresh_from_db()
        self.assertEqual(article.title, "Still saved")

    def test_audit_entries_newest_first_super_admin_only(self):
        article = self._draft()
        self.service.submit_article(self.author, article.pk)
        self.service.review_article(self.admin, article.pk, ArticleStatus.APPROVED)

        with self.assertRaises(Forbidden):
            self.service.list_audit_entries(self.admin)

        entries = self.service.list_audit_entries(self.super_admin)
        keys = [(entry.created_at, entry.sequence) for entry in entries]
        self.assertEqual(keys, sorted(keys, reverse=True))
        self.assertEqual(entries[0].action, AuditAction.ARTICLE_APPROVED)

        by_admin = self.service.list_audit_entries(self.super_admin, actor_id=self.admin.pk)
        self.assertEqual([entry.action for entry in by_admin], [AuditAction.ARTICLE_APPROVED])

        submitted = self.service.list_audit_entries(self.super_admin, action="article_submitted")
        self.assertEqual(len(submitted), 1)

        later = self.service.list_audit_entries(self.super_admin, since=timezone.now() + timedelta(minutes=1))
        self.assertEqual(later, [])

        with self.assertRaises(ValidationError):
            self.service.list_audit_entries(self.super_admin, action="article_archived")

    @override_settings(AUDIT_LOG_MAX_LIMIT=2, AUDIT_LOG_DEFAULT_LIMIT=2)
    def test_audit_limit_is_capped(self):
        article = self._draft()
        self.service.update_article(self.author, article.pk, {"title": "Two"})
        self.service.update_article(self.author, article.pk, {"title": "Three"})

        self.assertEqual(len(self.service.list_audit_entries(self.super_admin)), 2)
        self.assertEqual(len(self.service.list_audit_entries(self.super_admin, limit=50)), 2)
        self.assertEqual(len(self.service.list_audit_entries(self.super_admin, limit=1)), 1)
        with self.assertRaises(ValidationError):
            self.service.list_audit_entries(self.super_admin, limit=0)


class AuditLogTests(RedisPatchedTestCase):
    @classmethod
    def setUpTestData(cls):
        cls.actor = create_user("actor@example.com", role=Role.ADMIN)

    def _record(self, resource_id="1"):
        return AuditLog.record(
            AuditEntryDraft(
                actor_id=self.actor.pk,
                action=AuditAction.ARTICLE_UPDATED,
                resource_type=AuditLog.RESOURCE_ARTICLE,
                resource_id=resource_id,
            )
        )

    def test_sequence_increases_monotonically(self):
        sequences = [self._record(str(i)).sequence for i in range(3)]
        self.assertEqual(sequences, [1, 2, 3])

    def test_sequence_resumes_after_stored_maximum_when_counter_lost(self):
        self._record()
        self._record()
        self.fake_redis.flush()

        self.assertEqual(self._record().sequence, 3)

    def test_entries_are_append_only(self):
        entry = self._record()

        entry.details = {"tampered": True}
        with self.assertRaises(AppendOnlyError):
            entry.save()
        with self.assertRaises(AppendOnlyError):
            entry.delete()
        self.assertEqual(AuditEntry.objects.get(pk=entry.pk).details, {})

    def test_bulk_update_and_delete_are_refused(self):
        entry = self._record()

        with self.assertRaises(AppendOnlyError):
            AuditEntry.objects.filter(pk=entry.pk).update(details={"tampered": True})
        with self.assertRaises(AppendOnlyError):
            AuditEntry.objects.all().delete()
        self.assertEqual(AuditEntry.objects.get(pk=entry.pk).details, {})

    def test_same_timestamp_orders_by_sequence_descending(self):
        moment = timezone.now()
        with mock.patch("audit.services.timezone.now", return_value=moment):
            first = self._record("a")
            second = self._record("b")

        self.assertEqual(first.created_at, second.created_at)
        entries = AuditLog.list_for()
        self.assertEqual([entry.pk for entry in entries], [second.pk, first.pk])
        self.assertGreater(entries[0].sequence, entries[1].sequence)
