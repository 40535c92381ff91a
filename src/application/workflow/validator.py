"""Workflow validator - reports every problem of a definition in one pass."""

import re
from dataclasses import dataclass, field
from typing import Any

import pydantic

from src.application.workflow.error_classifier import get_workflow_hints
from src.domain.entities.workflow import GIT_ACTIONS, INPUT_TYPES, KNOWN_ACTIONS, PR_ACTIONS, Workflow

# Same rules as the git service uses for refs
_SAFE_BRANCH_RE = re.compile(r"^[a-zA-Z0-9_.\-/]+$")
_FORBIDDEN_REF_PARTS = ("..", "~", "^", ":", "\\", " ", "[", "@{")
_REPO_RE = re.compile(r"^[\w.-]+/[\w.-]+$")
_CONTROL_CHARS_RE = re.compile(r"[\n\r\t]")


def is_safe_branch_name(name: str) -> bool:
    """Validate branch name is safe for git commands."""
    if not name or len(name) > 255:
        return False
    if not _SAFE_BRANCH_RE.match(name):
        return False
    if any(part in name for part in _FORBIDDEN_REF_PARTS):
        return False
    if name.startswith(("-", "/")) or name.endswith(("/", ".lock")):
        return False
    return True


def is_valid_pr_title(title: str) -> bool:
    return 0 < len(title) <= 256 and not _CONTROL_CHARS_RE.search(title)


@dataclass
class ValidationProblem:
    """One problem with a remediation hint."""

    message: str
    hint: str
    step_id: str | None = None

    def to_dict(self) -> dict:
        return {"message": self.message, "hint": self.hint, "step": self.step_id}


@dataclass
class ValidationReport:
    """Complete validation result for one workflow definition."""

    problems: list[ValidationProblem] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    hints: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.problems

    @property
    def errors(self) -> list[str]:
        return [p.message for p in self.problems]

    def add(self, message: str, hint: str, step_id: str | None = None) -> None:
        self.problems.append(ValidationProblem(message, hint, step_id))

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "problems": [p.to_dict() for p in self.problems],
            "warnings": list(self.warnings),
            "hints": list(self.hints),
        }


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def _check_switch_model(step: dict, sid: str, report: ValidationReport) -> None:
    if not _is_text(step.get("model")):
        report.add(
            f"Switch-model step {sid} must specify a model",
            "add a `model` field, e.g. `model: llama3.2` or `model: ollama:llama3.2`",
            sid,
        )


def _check_conditional(step: dict, sid: str, report: ValidationReport) -> None:
    if not _is_text(step.get("check")):
        report.add(
            f"Conditional step {sid} must specify a check",
            "add a `check` expression such as `approved` or `count > 3`",
            sid,
        )
    if not _is_text(step.get("onTrue")):
        report.add(
            f"Conditional step {sid} must specify onTrue target",
            "add an `onTrue` field naming the step to jump to when the check holds",
            sid,
        )
    if "onFalse" in step and step["onFalse"] is not None and not _is_text(step["onFalse"]):
        report.add(
            f"Conditional step {sid} onFalse must be a step id",
            "set `onFalse` to the id of an existing step or remove it",
            sid,
        )


def _check_loop(step: dict, sid: str, report: ValidationReport) -> None:
    if not _is_text(step.get("to")):
        report.add(
            f"Loop step {sid} must specify target step",
            "add a `to` field naming the step to jump back to",
            sid,
        )
    elif step["to"] == sid:
        report.add(
            f"Loop step {sid} cannot reference itself in 'to' field",
            "point `to` at the first step of the loop body",
            sid,
        )
    if not _is_text(step.get("condition")):
        report.add(
            f"Loop step {sid} must specify a condition",
            "add a `condition` that becomes false when the loop should stop",
            sid,
        )
    max_iter = step.get("maxIterations")
    if max_iter is not None and (isinstance(max_iter, bool) or not isinstance(max_iter, int) or max_iter < 1):
        report.add(
            f"Loop step {sid} must specify a positive integer for maxIterations",
            "set `maxIterations` to a whole number of at least 1, or remove it",
            sid,
        )


def _check_interactive(step: dict, sid: str, report: ValidationReport) -> None:
    prompt = step.get("prompt")
    if not isinstance(prompt, str):
        report.add(
            f"Interactive step {sid} must specify a prompt",
            "add a `prompt` with the question to ask",
            sid,
        )
    elif not prompt.strip():
        report.add(
            f"Interactive step {sid} prompt cannot be empty",
            "write the question in the `prompt` field",
            sid,
        )
    input_type = step.get("inputType")
    if input_type is not None and input_type not in INPUT_TYPES:
        report.add(
            f"Interactive step {sid} has invalid inputType: {input_type}",
            f"use one of: {', '.join(INPUT_TYPES)}",
            sid,
        )
    choices = step.get("choices")
    if choices is not None and (
        not isinstance(choices, list) or not all(isinstance(c, str) for c in choices)
    ):
        report.add(
            f"Interactive step {sid} choices must be a list of strings",
            "write `choices` as a YAML list of strings",
            sid,
        )
    elif input_type == "choice" and not choices:
        report.add(
            f"Interactive step {sid} with inputType 'choice' must specify choices array",
            "add a `choices` list",
            sid,
        )
    pattern = step.get("validationPattern")
    if pattern is not None:
        try:
            re.compile(str(pattern))
        except re.error:
            report.add(
                f"Interactive step {sid} has invalid validationPattern: {pattern}",
                "fix the regular expression or remove `validationPattern`",
                sid,
            )
    timeout_ms = step.get("timeoutMs")
    if timeout_ms is not None and (
        isinstance(timeout_ms, bool) or not isinstance(timeout_ms, (int, float)) or timeout_ms < 0
    ):
        report.add(
            f"Interactive step {sid} timeoutMs must be a non-negative number",
            "set `timeoutMs` to 0 (no timeout) or a positive number",
            sid,
        )
    variable = step.get("variable")
    if variable is not None and not _is_text(variable):
        report.add(
            f"Interactive step {sid} variable must be a name",
            "set `variable` to the variable name the answer is stored under",
            sid,
        )


def _check_shell(step: dict, sid: str, report: ValidationReport) -> None:
    command = step.get("command")
    if not isinstance(command, str) or not command.strip():
        report.add(
            f"Shell step {sid} must have a command",
            "add a `command` field with the shell command to run",
            sid,
        )
    timeout = step.get("timeout")
    if timeout is not None and (
        isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0
    ):
        report.add(
            f"Shell step {sid} timeout must be a positive number of seconds",
            "set `timeout` to a positive number or remove it",
            sid,
        )


def _check_git(step: dict, sid: str, report: ValidationReport) -> None:
    if step["action"] == "commit":
        message = step.get("message")
        if not isinstance(message, str):
            report.add(
                "Git commit action must have a message",
                "add a `message` field with the commit message",
                sid,
            )
        elif not message.strip():
            report.add(
                "Git commit message cannot be empty",
                "write a non-blank commit `message`",
                sid,
            )
    base = step.get("base")
    if base is not None and (not isinstance(base, str) or not is_safe_branch_name(base)):
        report.add(
            f"Invalid branch name: {base}",
            "use letters, digits, '-', '_', '.', '/' in `base`",
            sid,
        )


def _check_ai_prompt(step: dict, sid: str, report: ValidationReport) -> None:
    prompt = step.get("prompt")
    if not isinstance(prompt, str):
        report.add(
            f"AI prompt step {sid} must have a prompt",
            "add a `prompt` field with the text to send to the model",
            sid,
        )
    elif not prompt.strip():
        report.add(
            f"AI prompt step {sid} prompt cannot be empty",
            "write the instruction in the `prompt` field",
            sid,
        )
    if "model" in step and step["model"] is not None and not _is_text(step["model"]):
        report.add(
            f"AI prompt step {sid} model must be a string",
            "set `model` to a model name or remove it",
            sid,
        )


def _check_pr(step: dict, sid: str, report: ValidationReport) -> None:
    title = step.get("title")
    if step["action"] == "create-pr":
        if not isinstance(title, str):
            report.add(
                "PR create action must have a title",
                "add a `title` field for the pull request",
                sid,
            )
        elif not title.strip():
            report.add("PR title cannot be empty", "write a non-blank `title`", sid)
        elif not is_valid_pr_title(title):
            report.add(
                "Invalid PR title. Title must be 1-256 characters and not contain control characters.",
                "shorten the title and keep it on one line",
                sid,
            )
    repo = step.get("repo")
    if repo is not None and (not isinstance(repo, str) or not _REPO_RE.match(repo)):
        report.add(
            f"PR step {sid} repo must look like owner/name",
            "set `repo` to e.g. `octocat/hello-world` or remove it to use the configured default",
            sid,
        )
    for key in ("base", "head"):
        value = step.get(key)
        if value is not None and (
            not isinstance(value, str) or ("{{" not in value and not is_safe_branch_name(value))
        ):
            report.add(f"Invalid branch name: {value}", f"fix the `{key}` branch name", sid)


def _check_file_exists(step: dict, sid: str, report: ValidationReport) -> None:
    if not _is_text(step.get("file")):
        report.add(
            f"Check-file-exists step {sid} must specify a file",
            "add a `file` field with the path to check",
            sid,
        )


_CHECKS = {
    "switch-model": _check_switch_model,
    "conditional": _check_conditional,
    "loop": _check_loop,
    "interactive": _check_interactive,
    "shell": _check_shell,
    **{a: _check_git for a in GIT_ACTIONS},
    "ai-prompt": _check_ai_prompt,
    **{a: _check_pr for a in PR_ACTIONS},
    "check-file-exists": _check_file_exists,
}

_REFERENCE_FIELDS = ("onTrue", "onFalse", "to")
# Top-level fields with their own checks; model errors on them would repeat those
_TOP_LEVEL_CHECKED = ("name", "variables", "steps")


def model_data(raw: dict) -> dict:
    """Normalize a parsed document into input for ``Workflow.model_validate``."""
    data = dict(raw)
    # YAML reads "version: 1.0" as a float
    if data.get("version") is not None:
        data["version"] = str(data["version"])
    if data.get("variables") is None:
        data.pop("variables", None)
    return data


def _check_model(raw: dict, flagged: set[int], report: ValidationReport) -> None:
    """Report field type errors the typed model would raise on load."""
    try:
        Workflow.model_validate(model_data(raw))
    except pydantic.ValidationError as e:
        for err in e.errors():
            loc = err["loc"]
            if len(loc) > 1 and loc[0] == "steps" and isinstance(loc[1], int):
                if loc[1] in flagged:
                    continue
                sid = raw["steps"][loc[1]].get("id")
                name = ".".join(str(p) for p in loc[3:]) or "step"
                report.add(
                    f"Step {sid} field {name}: {err['msg']}",
                    f"fix the value of `{name}`; quote values YAML would read as numbers or lists",
                    sid,
                )
            elif not loc or loc[0] not in _TOP_LEVEL_CHECKED:
                name = ".".join(str(p) for p in loc) or "workflow"
                report.add(
                    f"Workflow field {name}: {err['msg']}",
                    f"fix the top-level `{name}` value",
                )


def _check_step(step: Any, index: int, seen: set[str], valid_steps: list[dict], report: ValidationReport) -> None:
    if not isinstance(step, dict):
        report.add(f"Step {index} must be an object", "write each step as a mapping with `id` and `action`")
        return

    sid = step.get("id")
    if not _is_text(sid):
        report.add(f"Step {index} must have an id", "add an `id` field with a unique name")
        label = str(index)
    elif sid in seen:
        report.add(f"Duplicate step ID: {sid}", "rename one of the steps; step ids must be unique", sid)
        label = sid
    else:
        seen.add(sid)
        label = sid

    action = step.get("action")
    if not _is_text(action):
        report.add(
            f"Step {label} must have an action",
            f"add an `action` field (one of: {', '.join(KNOWN_ACTIONS)})",
            label,
        )
        return
    check = _CHECKS.get(action)
    if check is None:
        report.add(
            f"Step {label} has unknown action '{action}'",
            f"use one of: {', '.join(KNOWN_ACTIONS)}",
            label,
        )
        return
    check(step, label, report)
    valid_steps.append(step)

    if action == "sync":
        report.warnings.append(
            f"Step {label} runs 'git reset --hard' and discards local changes"
        )


def validate_workflow_with_feedback(raw: Any) -> ValidationReport:
    """Validate a parsed workflow document, collecting every problem.

    A report without problems guarantees the document builds a ``Workflow``.
    """
    report = ValidationReport(hints=get_workflow_hints(raw))

    if not isinstance(raw, dict):
        report.add("Workflow must be an object", "the file must contain a mapping with `name` and `steps`")
        return report

    if not _is_text(raw.get("name")):
        report.add("Workflow must have a name field", "add a top-level `name: my-workflow`")

    if raw.get("variables") is not None and not isinstance(raw["variables"], dict):
        report.add("Workflow variables must be a mapping", "write `variables` as key: value pairs")

    steps = raw.get("steps")
    if not isinstance(steps, list):
        report.add("Workflow must have a steps array", "add a `steps:` list")
        return report
    if not steps:
        report.add("Workflow must have at least one step", "add at least one entry under `steps:`")
        return report

    seen: set[str] = set()
    valid_steps: list[dict] = []
    flagged: set[int] = set()
    for index, step in enumerate(steps, 1):
        before = len(report.problems)
        _check_step(step, index, seen, valid_steps, report)
        if len(report.problems) > before:
            flagged.add(index - 1)

    for step in valid_steps:
        for ref_field in _REFERENCE_FIELDS:
            target = step.get(ref_field)
            if _is_text(target) and target not in seen:
                report.add(
                    f"Step {step.get('id')} references non-existent step: {target} ({ref_field})",
                    f"check `{ref_field}` for typos; known step ids: {', '.join(sorted(seen))}",
                    step.get("id"),
                )

    _check_model(raw, flagged, report)

    if "interactive" in {s.get("action") for s in valid_steps} and not raw.get("interactive"):
        report.warnings.append("Workflow has interactive steps but is not marked `interactive: true`")

    return report
