"""Step handler contracts: execution context, results, input requests."""

from dataclasses import dataclass, field
from typing import Any

from src.domain.entities.workflow import InteractiveStep, WorkflowStep
from src.domain.ports.agent import AgentPort
from src.domain.ports.process import ProcessRunnerPort
from src.domain.ports.source_hosting import SourceHostingPort
from src.domain.services.interpolation import interpolate

# Textual step fields that accept {{variable}} placeholders
INTERPOLATED_FIELDS = ("message", "prompt", "command", "title", "body", "base", "head", "file", "model", "repo")

DEFAULT_SHELL_TIMEOUT = 300.0


@dataclass
class StepContext:
    """Collaborators available to step handlers."""

    agent: AgentPort | None = None
    runner: ProcessRunnerPort | None = None
    hosting: SourceHostingPort | None = None
    available_models: set[str] = field(default_factory=set)
    cwd: str | None = None
    shell_timeout: float = DEFAULT_SHELL_TIMEOUT
    default_repo: str | None = None


@dataclass
class InputRequest:
    """What an interactive step needs from a human before the session continues."""

    step_id: str
    prompt: str
    input_type: str = "text"
    choices: list[str] = field(default_factory=list)
    default_value: str | None = None
    validation_pattern: str | None = None
    timeout_ms: float | None = None
    variable: str = ""

    @classmethod
    def for_step(cls, step: InteractiveStep) -> "InputRequest":
        return cls(
            step_id=step.id,
            prompt=step.prompt,
            input_type=step.input_type,
            choices=list(step.choices),
            default_value=step.default_value,
            validation_pattern=step.validation_pattern,
            timeout_ms=step.timeout_ms,
            variable=step.answer_variable,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "stepId": self.step_id,
            "prompt": self.prompt,
            "inputType": self.input_type,
            "choices": list(self.choices),
            "defaultValue": self.default_value,
            "validationPattern": self.validation_pattern,
            "timeoutMs": self.timeout_ms,
            "variable": self.variable,
        }


@dataclass
class StepResult:
    """Outcome of one handler call.

    ``success=False`` means the operation ran and reported failure (non-zero exit).
    Hard failures are raised as WorkflowError instead.
    """

    output: dict[str, Any] = field(default_factory=dict)
    success: bool = True
    error: str | None = None
    # Redirect target; None = next step in sequence
    next_step: str | None = None
    # Values exported into the session's variables
    variables: dict[str, Any] = field(default_factory=dict)
    input_request: InputRequest | None = None


def interpolate_step(step: WorkflowStep, variables: dict[str, Any]) -> WorkflowStep:
    """Copy of ``step`` with placeholders substituted in its textual fields."""
    update: dict[str, Any] = {}
    for name in INTERPOLATED_FIELDS:
        value = getattr(step, name, None)
        if isinstance(value, str) and "{{" in value:
            update[name] = interpolate(value, variables)
    if not update:
        return step
    return step.model_copy(update=update)
