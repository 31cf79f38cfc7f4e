"""App configuration for the articles application."""

from django.apps import AppConfig


class ArticlesConfig(AppConfig):
    """Articles app holds the article model and its lifecycle state machine."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "articles"
