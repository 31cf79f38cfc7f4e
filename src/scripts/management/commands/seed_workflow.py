"""Seed demo accounts (one per role) and sample articles in every status."""

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from access_control.roles import Role
from articles.models import Article, ArticleStatus
from articles.state_machine import derive_slug
from authentication.managers import UserManager
from workflow.services import WorkflowService

DEMO_ACCOUNTS = [
    # (email, password, role, display name)
    ("superadmin@example.com", "superadminpass", Role.SUPER_ADMIN, "Super Admin"),
    ("admin@example.com", "adminpass", Role.ADMIN, "Admin"),
    ("author@example.com", "authorpass", Role.AUTHOR, "Author"),
]

DEMO_ARTICLES = [
    # (title, steps applied after creation)
    ("Getting Started With the Editor", []),
    ("Notes From the Field", ["submit"]),
    ("Why Sources Matter", ["submit", "reject"]),
    ("Quarterly Newsroom Update", ["submit", "approve"]),
    ("Welcome to the Publication", ["submit", "approve", "publish"]),
]


def create_seed_accounts() -> dict:
    """Create the demo accounts if missing and return a role->account map."""
    User = get_user_model()
    accounts = {}
    for email, password, role, display_name in DEMO_ACCOUNTS:
        account, _ = User.objects.get_or_create(
            email=email,
            defaults={
                "role": role,
                "display_name": display_name,
                "password_hash": UserManager.hash_password(password),
            },
        )
        accounts[role] = account
    return accounts


def create_seed_articles(accounts: dict, service: WorkflowService | None = None) -> tuple[list[Article], list[str]]:
    """Create one sample article per workflow status through the workflow service.

    The demo Author writes and submits; the demo Admin reviews and publishes.
    Every step is audited like any other request. Returns the articles and
    any audit warnings.
    """
    service = service or WorkflowService()
    author = accounts[Role.AUTHOR]
    reviewer = accounts[Role.ADMIN]
    articles: list[Article] = []
    warnings: list[str] = []
    for title, steps in DEMO_ARTICLES:
        existing = Article.objects.filter(slug=derive_slug(title)).first()
        if existing is not None:
            articles.append(existing)
            continue

        result = service.create_article(
            author,
            title=title,
            body={"blocks": [{"type": "paragraph", "text": f"Sample content for {title}."}]},
            tags=["demo"],
        )
        warnings.extend(result.warnings)
        article_id = result.value.pk
        for step in steps:
            if step == "submit":
                result = service.submit_article(author, article_id)
            elif step == "approve":
                result = service.review_article(reviewer, article_id, ArticleStatus.APPROVED, "Looks good.")
            elif step == "reject":
                result = service.review_article(reviewer, article_id, ArticleStatus.REJECTED, "needs sources")
            elif step == "publish":
                result = service.publish_article(reviewer, article_id)
            warnings.extend(result.warnings)
        articles.append(result.value)
    return articles, warnings


class Command(BaseCommand):
    """Management command to seed demo accounts and articles."""

    help = (
        "Seed one account per role and sample articles covering every workflow "
        "status. Use --reset to clear previously seeded data first."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Delete the demo articles, and demo accounts nothing else refers to, before seeding.",
        )

    def handle(self, *args, **options):
        """Entrypoint for the management command."""
        with transaction.atomic():
            if options.get("reset"):
                self._reset_seeded_data()

            self.stdout.write("Seeding workflow data...")
            accounts = create_seed_accounts()
            articles, warnings = create_seed_articles(accounts)
        for warning in warnings:
            self.stdout.write(self.style.WARNING(warning))
        self.stdout.write(
            self.style.SUCCESS(f"Workflow seed completed: {len(accounts)} accounts, {len(articles)} articles.")
        )

    def _reset_seeded_data(self) -> None:
        """Remove demo articles, then demo accounts that nothing references.

        This is a development teardown and bypasses the workflow. Audit
        entries are append-only, so accounts that appear in the audit log
        (or review, author, or revise articles outside the demo set) stay.
        """
        self.stdout.write("Resetting previously seeded workflow data...")
        User = get_user_model()
        emails = [email for email, *_ in DEMO_ACCOUNTS]
        Article.objects.filter(author__email__in=emails).delete()
        User.objects.filter(
            email__in=emails,
            audit_entries__isnull=True,
            articles__isnull=True,
            reviewed_articles__isnull=True,
            article_revisions__isnull=True,
        ).delete()
        self.stdout.write(self.style.WARNING("Seeded workflow data cleared."))
