"""Editorial workflow orchestration."""

from .services import DashboardStats, WorkflowResult, WorkflowService

__all__ = ["DashboardStats", "WorkflowResult", "WorkflowService"]
