"""DRF authenticator that surfaces the account resolved by ``JWTAuthMiddleware``.

The middleware already decoded the bearer token, checked the blocklist and
the token version, and attached the account to the Django request. DRF wraps
that request, so this class only hands the account back to DRF. Anonymous
requests are left anonymous; the workflow layer turns them into
``Unauthenticated`` errors.
"""

from typing import Any, Optional, Tuple

from django.contrib.auth.models import AnonymousUser
from rest_framework.authentication import BaseAuthentication


class MiddlewareUserAuthentication(BaseAuthentication):
    """Expose ``request._request.user`` (set by middleware) to DRF."""

    def authenticate(self, request) -> Optional[Tuple[Any, None]]:
        django_request = getattr(request, "_request", None)
        if django_request is None:
            return None

        user = getattr(django_request, "user", None)
        if user is None or isinstance(user, AnonymousUser):
            return None

        if not getattr(user, "is_authenticated", False):
            return None

        return user, None

    def authenticate_header(self, request) -> str:
        # Makes DRF answer NotAuthenticated with 401 instead of 403.
        return "Bearer"


__all__ = ["MiddlewareUserAuthentication"]
