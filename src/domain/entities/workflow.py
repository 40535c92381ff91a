"""Workflow definition - immutable, typed representation of a workflow file.

Steps form a tagged union discriminated by the ``action`` field. Wire names are
camelCase (``onTrue``, ``maxIterations``), Python attributes are snake_case.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

GIT_ACTIONS = ("commit", "push", "pull", "sync")
PR_ACTIONS = ("create-pr", "review-pr", "merge-pr")
INPUT_TYPES = ("text", "password", "confirm", "choice", "multiline")


class _StepBase(BaseModel):
    """Fields shared by every step."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str
    description: str | None = None


class SwitchModelStep(_StepBase):
    """Change the active provider/model (``model`` or ``provider:model``)."""

    action: Literal["switch-model"] = "switch-model"
    model: str | None = None


class ConditionalStep(_StepBase):
    """Jump to ``on_true`` when ``check`` holds, else ``on_false`` or fall through."""

    action: Literal["conditional"] = "conditional"
    check: str
    on_true: str
    on_false: str | None = None


class LoopStep(_StepBase):
    """While ``condition`` holds, redirect execution to ``to``."""

    action: Literal["loop"] = "loop"
    to: str
    condition: str
    max_iterations: int | None = None


class InteractiveStep(_StepBase):
    """Suspend the session until a human answers ``prompt``."""

    action: Literal["interactive"] = "interactive"
    prompt: str
    input_type: Literal["text", "password", "confirm", "choice", "multiline"] = "text"
    choices: tuple[str, ...] = ()
    default_value: str | None = None
    validation_pattern: str | None = None
    timeout_ms: float | None = None
    variable: str | None = None

    @property
    def answer_variable(self) -> str:
        return self.variable or f"{self.id}_input"


class ShellStep(_StepBase):
    action: Literal["shell"] = "shell"
    command: str
    timeout: float | None = None


class GitStep(_StepBase):
    """Git operation; the action names the git sub-command."""

    action: Literal["commit", "push", "pull", "sync"]
    message: str | None = None
    base: str | None = None


class AiPromptStep(_StepBase):
    action: Literal["ai-prompt"] = "ai-prompt"
    prompt: str
    model: str | None = None


class PrStep(_StepBase):
    """Pull request operation through the source-hosting client."""

    action: Literal["create-pr", "review-pr", "merge-pr"]
    title: str | None = None
    body: str | None = None
    base: str | None = None
    head: str | None = None
    repo: str | None = None


class CheckFileExistsStep(_StepBase):
    action: Literal["check-file-exists"] = "check-file-exists"
    file: str


WorkflowStep = Annotated[
    Union[
        SwitchModelStep,
        ConditionalStep,
        LoopStep,
        InteractiveStep,
        ShellStep,
        GitStep,
        AiPromptStep,
        PrStep,
        CheckFileExistsStep,
    ],
    Field(discriminator="action"),
]

STEP_ADAPTER: TypeAdapter[WorkflowStep] = TypeAdapter(WorkflowStep)

KNOWN_ACTIONS = (
    "switch-model",
    "conditional",
    "loop",
    "interactive",
    "shell",
    *GIT_ACTIONS,
    "ai-prompt",
    *PR_ACTIONS,
    "check-file-exists",
)


class Workflow(BaseModel):
    """Named, ordered, immutable sequence of steps."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    name: str
    description: str | None = None
    version: str | None = None
    interactive: bool = False
    persistent: bool = False
    variables: dict[str, Any] = Field(default_factory=dict)
    steps: tuple[WorkflowStep, ...]

    def get_step(self, step_id: str) -> WorkflowStep | None:
        """Step with the given id, or None."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def index_of(self, step_id: str) -> int:
        """Position of step in sequence, -1 if absent."""
        for i, step in enumerate(self.steps):
            if step.id == step_id:
                return i
        return -1

    def next_step_id(self, step_id: str) -> str | None:
        """Id of the step following ``step_id``; None past the last step."""
        idx = self.index_of(step_id)
        if idx < 0 or idx + 1 >= len(self.steps):
            return None
        return self.steps[idx + 1].id

    @property
    def step_ids(self) -> list[str]:
        return [s.id for s in self.steps]
