"""Read-only audit log endpoint (SuperAdmin only)."""

from access_control.permissions import ActionKind
from articles.views import current_actor
from core.response import BaseViewSet, api_response
from workflow.services import WorkflowService
from .serializers import AuditEntrySerializer, AuditQuerySerializer


class AuditEntryViewSet(BaseViewSet):
    service = WorkflowService()

    def list(self, request):
        actor = self.service.require_actor(current_actor(request))
        self.service.check_capability(actor, ActionKind.READ_AUDIT_LOG)
        query = AuditQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        filters = dict(query.validated_data)
        entries = self.service.list_audit_entries(
            actor,
            actor_id=filters.pop("actor", None),
            **filters,
        )
        return api_response(AuditEntrySerializer(entries, many=True).data)


__all__ = ["AuditEntryViewSet"]
