import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AuditEntry",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("sequence", models.PositiveBigIntegerField(unique=True)),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("article_created", "Article created"),
                            ("article_updated", "Article updated"),
                            ("article_deleted", "Article deleted"),
                            ("article_submitted", "Article submitted"),
                            ("article_approved", "Article approved"),
                            ("article_rejected", "Article rejected"),
                            ("article_published", "Article published"),
                            ("account_role_updated", "Account role updated"),
                        ],
                        db_index=True,
                        max_length=50,
                    ),
                ),
                ("resource_type", models.CharField(db_index=True, max_length=50)),
                ("resource_id", models.CharField(blank=True, db_index=True, max_length=100, null=True)),
                ("details", models.JSONField(blank=True, default=dict)),
                (
                    "created_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now, editable=False),
                ),
                (
                    "actor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="audit_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-sequence"],
                "verbose_name_plural": "audit entries",
            },
        ),
    ]
