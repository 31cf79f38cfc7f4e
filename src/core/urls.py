"""Root URL configuration for the editorial workflow API."""
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView

urlpatterns = [
    path("api/schema/", SpectacularAPIView.as_view(), name="api-schema"),
    path("auth/", include("authentication.urls")),
    path("", include("articles.urls")),
    path("", include("access_control.urls")),
    path("", include("audit.urls")),
]
