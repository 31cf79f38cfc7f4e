"""Account administration endpoints (listing and role changes)."""

from rest_framework.decorators import action

from articles.views import current_actor
from authentication.serializers import AccountSerializer
from core.response import BaseViewSet, api_response
from workflow.services import WorkflowService
from .serializers import RoleUpdateSerializer


class AccountViewSet(BaseViewSet):
    """Admins list accounts; SuperAdmins change roles."""

    lookup_value_regex = "[^/]+"
    service = WorkflowService()

    def list(self, request):
        accounts = self.service.list_accounts(current_actor(request))
        return api_response(AccountSerializer(accounts, many=True).data)

    @action(detail=True, methods=["post"])
    def role(self, request, pk=None):
        actor = self.service.require_actor(current_actor(request))
        self.service.check_account(actor, pk)
        serializer = RoleUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.service.update_account_role(actor, pk, serializer.validated_data["role"])
        return api_response(AccountSerializer(result.value).data, warnings=result.warnings)


__all__ = ["AccountViewSet"]
