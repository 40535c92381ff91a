"""Workflow application layer."""

from src.application.workflow.cancellation import CancellationToken, forward_interrupts
from src.application.workflow.dto import (
    ResumeWorkflowRequest,
    RunWorkflowRequest,
    SessionResponse,
)
from src.application.workflow.error_classifier import classify_error
from src.application.workflow.executor import StepExecutor
from src.application.workflow.manager import WorkflowManager, WorkflowSession
from src.application.workflow.parser import (
    WorkflowListing,
    find_workflow_files,
    get_workflow_by_name,
    list_workflows,
    load_workflow,
)
from src.application.workflow.steps import StepContext
from src.application.workflow.summary import WorkflowSummary, summarize
from src.application.workflow.validator import ValidationReport, validate_workflow_with_feedback

__all__ = [
    "CancellationToken",
    "ResumeWorkflowRequest",
    "RunWorkflowRequest",
    "SessionResponse",
    "StepContext",
    "StepExecutor",
    "ValidationReport",
    "WorkflowListing",
    "WorkflowManager",
    "WorkflowSession",
    "WorkflowSummary",
    "classify_error",
    "find_workflow_files",
    "forward_interrupts",
    "get_workflow_by_name",
    "list_workflows",
    "load_workflow",
    "summarize",
    "validate_workflow_with_feedback",
]
