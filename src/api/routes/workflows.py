"""Workflow API routes - discovery, validation, run / resume, sessions."""

import logging

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from src.api.dependencies import get_workflow_manager, limiter
from src.application.workflow.dto import ResumeWorkflowRequest, RunWorkflowRequest, SessionResponse
from src.application.workflow.manager import WorkflowManager, WorkflowSession
from src.domain.entities.workflow_state import SessionKey
from src.domain.errors import (
    ErrorCategory,
    LoopBoundError,
    SessionNotFoundError,
    StateError,
    ValidationError,
    WorkflowError,
    WorkflowNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["workflows"])


def _status_code(error: WorkflowError) -> int:
    if isinstance(error, (WorkflowNotFoundError, SessionNotFoundError)):
        return 404
    if isinstance(error, ValidationError) or error.category == ErrorCategory.VALIDATION:
        return 422
    if isinstance(error, (StateError, LoopBoundError)) or error.category == ErrorCategory.STATE:
        return 409
    return 502


def _http_error(error: WorkflowError) -> HTTPException:
    detail = error.to_dict()
    problems = getattr(error, "problems", None)
    if problems:
        detail["problems"] = [p.to_dict() if hasattr(p, "to_dict") else str(p) for p in problems]
    return HTTPException(status_code=_status_code(error), detail=detail)


def _session_response(session: WorkflowSession) -> SessionResponse:
    data = session.to_dict()
    return SessionResponse(
        session=data["session"],
        workflow=data["workflow"],
        status=data["status"],
        state=data["state"],
        input_request=data["inputRequest"],
    )


@router.get("")
@limiter.limit("60/minute")
async def list_workflows(
    request: Request,
    manager: WorkflowManager = Depends(get_workflow_manager),
) -> dict:
    """Workflows found in the search path, invalid ones included."""
    listings = manager.list_available_workflows()
    return {
        "directories": manager.directories,
        "workflows": [w.to_dict() for w in listings],
    }


@router.get("/sessions")
@limiter.limit("60/minute")
async def list_sessions(
    request: Request,
    workflow: str | None = None,
    manager: WorkflowManager = Depends(get_workflow_manager),
) -> dict:
    states = manager.list_sessions(workflow)
    return {
        "sessions": [
            {
                "session": str(s.key),
                "workflow": s.name,
                "status": s.status.value,
                "currentStep": s.current_step,
                "updatedAt": s.updated_at,
            }
            for s in states
        ]
    }


@router.get("/sessions/{workflow}/{session_id}")
@limiter.limit("60/minute")
async def session_status(
    request: Request,
    workflow: str,
    session_id: str,
    manager: WorkflowManager = Depends(get_workflow_manager),
) -> dict:
    try:
        state = manager.status(SessionKey(workflow, session_id))
    except WorkflowError as e:
        raise _http_error(e) from e
    return state.model_dump(mode="json", by_alias=True)


@router.get("/sessions/{workflow}/{session_id}/summary")
@limiter.limit("60/minute")
async def session_summary(
    request: Request,
    workflow: str,
    session_id: str,
    manager: WorkflowManager = Depends(get_workflow_manager),
) -> dict:
    try:
        summary = manager.summary(SessionKey(workflow, session_id))
    except WorkflowError as e:
        raise _http_error(e) from e
    return summary.model_dump(mode="json")


@router.post("/sessions/{workflow}/{session_id}/resume", response_model=SessionResponse)
@limiter.limit("30/minute")
async def resume_session(
    request: Request,
    workflow: str,
    session_id: str,
    body: ResumeWorkflowRequest | None = None,
    manager: WorkflowManager = Depends(get_workflow_manager),
) -> SessionResponse:
    """Continue a paused or failed session, optionally answering its prompt."""
    key = SessionKey(workflow, session_id)
    answer = body.answer if body else None
    with structlog.contextvars.bound_contextvars(workflow=workflow, session=str(key)):
        try:
            session = await manager.resume(key, answer=answer)
        except WorkflowError as e:
            raise _http_error(e) from e
        except Exception:
            logger.exception("Resume failed unexpectedly")
            raise HTTPException(status_code=500, detail="Workflow resume failed")
    return _session_response(session)


@router.delete("/sessions/{workflow}/{session_id}")
@limiter.limit("30/minute")
async def abandon_session(
    request: Request,
    workflow: str,
    session_id: str,
    manager: WorkflowManager = Depends(get_workflow_manager),
) -> dict:
    try:
        manager.abandon(SessionKey(workflow, session_id))
    except WorkflowError as e:
        raise _http_error(e) from e
    return {"deleted": True, "session": f"{workflow}/{session_id}"}


@router.get("/{name}")
@limiter.limit("60/minute")
async def show_workflow(
    request: Request,
    name: str,
    manager: WorkflowManager = Depends(get_workflow_manager),
) -> dict:
    try:
        workflow = manager.load(name)
    except WorkflowError as e:
        raise _http_error(e) from e
    return workflow.model_dump(mode="json", by_alias=True)


@router.get("/{name}/validate")
@limiter.limit("60/minute")
async def validate_workflow(
    request: Request,
    name: str,
    manager: WorkflowManager = Depends(get_workflow_manager),
) -> dict:
    """Every problem of the workflow file, plus warnings and hints."""
    try:
        report = manager.validate(name)
    except WorkflowError as e:
        raise _http_error(e) from e
    return report.to_dict()


@router.post("/{name}/run", response_model=SessionResponse)
@limiter.limit("30/minute")
async def run_workflow(
    request: Request,
    name: str,
    body: RunWorkflowRequest | None = None,
    manager: WorkflowManager = Depends(get_workflow_manager),
) -> SessionResponse:
    """Start a session; returns when it completes, pauses for input, or fails."""
    body = body or RunWorkflowRequest()
    with structlog.contextvars.bound_contextvars(workflow=name):
        try:
            session = await manager.run(name, initial_variables=body.variables, session_id=body.session_id)
        except WorkflowError as e:
            raise _http_error(e) from e
        except Exception:
            logger.exception("Workflow run failed unexpectedly")
            raise HTTPException(status_code=500, detail="Workflow execution failed")
    return _session_response(session)
