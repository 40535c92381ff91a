"""Pull request steps: create-pr, review-pr, merge-pr."""

import logging

from src.application.workflow.steps.base import StepContext, StepResult
from src.application.workflow.steps.shell import run_command
from src.application.workflow.validator import is_safe_branch_name, is_valid_pr_title
from src.domain.entities.workflow import PrStep
from src.domain.entities.workflow_state import WorkflowState
from src.domain.errors import ErrorCategory, ExecutionError, ValidationError
from src.domain.ports.source_hosting import (
    HostingRejectedError,
    HostingUnavailableError,
    PullRequestParams,
    SourceHostingPort,
)

logger = logging.getLogger(__name__)

DEFAULT_PR_BASE = "main"


def _hosting(step: PrStep, ctx: StepContext) -> SourceHostingPort:
    if ctx.hosting is None:
        raise ExecutionError(
            "Pull request step needs a source hosting client",
            hints=["Set github.token (or GITHUB_TOKEN) in the configuration"],
            step_id=step.id,
            retryable=False,
        )
    return ctx.hosting


def _repo(step: PrStep, ctx: StepContext) -> str:
    repo = step.repo or ctx.default_repo
    if not repo:
        raise ValidationError(
            f"Pull request step {step.id} has no repository",
            hints=["Add `repo: owner/name` to the step or set github.repository"],
            step_id=step.id,
        )
    return repo


def _hosting_error(e: Exception, step: PrStep) -> ExecutionError:
    if isinstance(e, HostingRejectedError):
        category = ErrorCategory.PERMISSION if e.status_code in (401, 403) else ErrorCategory.EXECUTION
        return ExecutionError(
            f"Pull request {step.action.removesuffix('-pr')} rejected (HTTP {e.status_code}): {e}",
            category=category,
            step_id=step.id,
            retryable=e.status_code >= 500,
            cause=e,
        )
    timed_out = isinstance(e, HostingUnavailableError) and e.timed_out
    return ExecutionError(
        f"Pull request service {'timed out' if timed_out else 'unreachable'}: {e}",
        category=ErrorCategory.TIMEOUT if timed_out else ErrorCategory.NETWORK,
        step_id=step.id,
        cause=e,
    )


async def _current_branch(step: PrStep, ctx: StepContext) -> str:
    result = await run_command(
        ctx, ["git", "rev-parse", "--abbrev-ref", "HEAD"], step_id=step.id, label="Git command"
    )
    branch = result.stdout.strip()
    if not result.ok or not branch or branch == "HEAD":
        raise ExecutionError(
            "Git command failed: cannot determine the current branch for the pull request head",
            hints=["Set `head:` on the step explicitly"],
            step_id=step.id,
        )
    return branch


async def _create(step: PrStep, ctx: StepContext, hosting: SourceHostingPort) -> StepResult:
    title = step.title or ""
    if not is_valid_pr_title(title):
        raise ValidationError(
            "PR create action must have a title" if not title else f"Invalid pull request title: {title!r}",
            hints=["Titles are 1-256 characters without line breaks"],
            step_id=step.id,
        )
    head = step.head or await _current_branch(step, ctx)
    base = step.base or DEFAULT_PR_BASE
    for branch in (head, base):
        if not is_safe_branch_name(branch):
            raise ValidationError(f"Invalid branch name: {branch!r}", step_id=step.id)

    params = PullRequestParams(repo=_repo(step, ctx), title=title, head=head, base=base, body=step.body or "")
    try:
        pr = await hosting.create_pull_request(params)
    except (HostingRejectedError, HostingUnavailableError) as e:
        raise _hosting_error(e, step) from e
    logger.info("Opened pull request #%d: %s", pr.number, pr.url)
    return StepResult(
        output={"url": pr.url, "number": pr.number, "title": pr.title or title},
        variables={f"{step.id}_url": pr.url},
    )


async def _review(step: PrStep, ctx: StepContext, hosting: SourceHostingPort) -> StepResult:
    try:
        pr = await hosting.latest_open_pull_request(_repo(step, ctx))
    except (HostingRejectedError, HostingUnavailableError) as e:
        raise _hosting_error(e, step) from e
    if pr is None:
        return StepResult(output={"pullRequest": None}, success=False, error="No open pull request found")
    return StepResult(
        output={"pullRequest": pr.model_dump(), "url": pr.url, "number": pr.number},
        variables={f"{step.id}_url": pr.url},
    )


async def _merge(step: PrStep, ctx: StepContext, hosting: SourceHostingPort) -> StepResult:
    repo = _repo(step, ctx)
    try:
        pr = await hosting.latest_open_pull_request(repo)
        if pr is None:
            return StepResult(output={"merged": False}, success=False, error="No open pull request found")
        payload = await hosting.merge_pull_request(repo, pr.number)
    except (HostingRejectedError, HostingUnavailableError) as e:
        raise _hosting_error(e, step) from e
    logger.info("Merged pull request #%d", pr.number)
    return StepResult(
        output={"merged": bool(payload.get("merged", True)), "number": pr.number, "url": pr.url, "sha": payload.get("sha")},
        variables={f"{step.id}_url": pr.url},
    )


async def run_pr(step: PrStep, state: WorkflowState, ctx: StepContext) -> StepResult:
    hosting = _hosting(step, ctx)
    match step.action:
        case "create-pr":
            return await _create(step, ctx, hosting)
        case "review-pr":
            return await _review(step, ctx, hosting)
        case "merge-pr":
            return await _merge(step, ctx, hosting)
    raise ValidationError(f"Unknown pull request action: {step.action}", step_id=step.id)
