"""FastAPI dependencies."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from src.api.container import get_container
from src.application.workflow.manager import WorkflowManager
from src.domain.ports.config import AppConfig

limiter = Limiter(key_func=get_remote_address)


def get_config() -> AppConfig:
    return get_container().config


def get_workflow_manager() -> WorkflowManager:
    return get_container().workflow_manager
