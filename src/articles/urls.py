"""Routing for article CRUD, the workflow actions, and the dashboard summary."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ArticleViewSet, DashboardView

router = DefaultRouter(trailing_slash=True)
router.register(r"articles", ArticleViewSet, basename="article")

urlpatterns = [
    path("dashboard/", DashboardView.as_view(), name="dashboard"),
    path("", include(router.urls)),
]
