"""Application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.container import get_container
from src.api.dependencies import limiter
from src.api.routes.workflows import router as workflows_router
from src.infrastructure.config.model_validator import validate_agent_model
from src.shared.logging import setup_logging

log = structlog.get_logger()


def _apply_logging_config(container):
    """Apply logging from container config (stdout + optional file)."""
    c = container.config
    setup_logging(
        level=c.log_level,
        file_path=c.log_file or "",
        rotation_max_mb=c.log_rotation_max_mb,
        rotation_backups=c.log_rotation_backups,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: setup logging, check the agent model, report the workflow search path."""
    container = get_container()
    _apply_logging_config(container)
    wf = container.config.workflow
    log.info(
        "startup_begin",
        llm_provider=container.config.llm.provider,
        workflow_dirs=wf.directories,
        state_dir=wf.state_dir,
        max_iterations=wf.max_iterations,
    )
    models = await validate_agent_model(container.llm, container.config)
    container.available_models.update(f"{container.config.llm.provider}:{m}" for m in models)
    if container.source_hosting is None:
        log.info("pull_request_steps_disabled", reason="no github token")
    log.info("startup_complete")
    yield
    log.info("shutdown_begin")
    await container.process_runner.terminate()
    if hasattr(container.llm, "close"):
        try:
            await container.llm.close()
        except Exception:  # noqa: BLE001
            log.debug("llm_close_error", exc_info=True)
    log.info("shutdown_complete")


app = FastAPI(
    title="Codi Workflows",
    version="0.1.0",
    description="Declarative, resumable development workflows driven by AI, shell and git steps",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
container = get_container()
app.add_middleware(
    CORSMiddleware,
    allow_origins=container.config.security.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(workflows_router)


@app.get("/health")
@limiter.limit("100/minute")
async def health(request: Request) -> dict:
    """Health check with LLM availability."""
    container = get_container()
    llm_available = await container.llm.is_available()
    return {
        "status": "ok",
        "service": "codi-workflows",
        "llm_provider": container.config.llm.provider,
        "llm_available": llm_available,
        "workflows": len(container.workflow_manager.list_available_workflows()),
    }
