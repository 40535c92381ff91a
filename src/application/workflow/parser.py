"""Workflow parser - YAML definitions to immutable Workflow objects, plus discovery."""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pydantic
import yaml

from src.application.workflow.validator import ValidationReport, model_data, validate_workflow_with_feedback
from src.domain.entities.workflow import Workflow
from src.domain.errors import ValidationError

logger = logging.getLogger(__name__)

WORKFLOW_SUFFIXES = (".yaml", ".yml")


@dataclass
class WorkflowListing:
    """One discovered workflow file."""

    name: str
    file: str
    valid: bool
    error: str | None = None
    description: str | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "file": self.file,
            "valid": self.valid,
            "error": self.error,
            "description": self.description,
        }


def _read_yaml(text: str, origin: str | None = None) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        where = f" in {origin}" if origin else ""
        raise ValidationError(
            f"Invalid YAML{where}: {e}",
            hints=["Check indentation and quoting", "Validate the file with a YAML linter"],
            cause=e,
        ) from e


def _raise_for_report(report: ValidationReport, name: str | None) -> None:
    if report.valid:
        return
    if len(report.problems) == 1:
        message = report.problems[0].message
    else:
        listed = "; ".join(report.errors)
        message = f"Workflow has {len(report.problems)} problems: {listed}"
    raise ValidationError(
        message,
        problems=report.problems,
        hints=[p.hint for p in report.problems],
        workflow=name,
    )


def build_workflow(raw: Any) -> Workflow:
    """Validate a parsed document and build the typed Workflow.

    Raises:
        ValidationError: with every problem found, not just the first

    """
    report = validate_workflow_with_feedback(raw)
    name = raw.get("name") if isinstance(raw, Mapping) else None
    _raise_for_report(report, name if isinstance(name, str) else None)

    data = model_data(raw)
    try:
        return Workflow.model_validate(data)
    except pydantic.ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise ValidationError(
            f"Invalid workflow definition: {'; '.join(problems)}",
            hints=["Check field types against the step reference"],
            workflow=data.get("name"),
            cause=e,
        ) from e


def parse_workflow(text: str, origin: str | None = None) -> Workflow:
    """Parse YAML text into a Workflow."""
    return build_workflow(_read_yaml(text, origin))


def load_workflow(source: Path | str | Mapping[str, Any]) -> Workflow:
    """Load a workflow from a file path, YAML text, or an already parsed mapping.

    A ``str`` is treated as YAML text; pass a ``Path`` to read a file.
    """
    if isinstance(source, Mapping):
        return build_workflow(source)
    if isinstance(source, Path):
        workflow = build_workflow(read_workflow_document(source))
        logger.debug("Loaded workflow %s from %s", workflow.name, source)
        return workflow
    return parse_workflow(source)


def find_workflow_files(directories: Iterable[str | Path]) -> list[Path]:
    """YAML files in the given directories, in search-path order.

    Missing or unreadable directories are skipped.
    """
    files: list[Path] = []
    for directory in directories:
        path = Path(directory).expanduser()
        try:
            if not path.is_dir():
                continue
            entries = sorted(p for p in path.iterdir() if p.suffix in WORKFLOW_SUFFIXES and p.is_file())
        except OSError as e:
            logger.warning("Skipping workflow directory %s: %s", path, e)
            continue
        files.extend(entries)
    return files


def list_workflows(directories: Iterable[str | Path]) -> list[WorkflowListing]:
    """Every workflow file found; invalid ones are listed with valid=False.

    When two directories define the same name, the earlier one wins.
    """
    listings: list[WorkflowListing] = []
    seen: set[str] = set()
    for path in find_workflow_files(directories):
        try:
            workflow = load_workflow(path)
        except ValidationError as e:
            logger.info("Invalid workflow file %s: %s", path, e)
            listing = WorkflowListing(name=path.stem, file=str(path), valid=False, error=str(e))
        else:
            listing = WorkflowListing(
                name=workflow.name,
                file=str(path),
                valid=True,
                description=workflow.description,
            )
        if listing.name in seen:
            logger.debug("Workflow %s in %s shadowed by an earlier directory", listing.name, path)
            continue
        seen.add(listing.name)
        listings.append(listing)
    return listings


def read_workflow_document(path: Path) -> Any:
    """Raw parsed YAML of a workflow file (not validated)."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValidationError(
            f"Cannot read workflow file {path}: {e}",
            hints=["Check that the file exists and is readable"],
            cause=e,
        ) from e
    return _read_yaml(text, origin=str(path))


def find_workflow_file(name: str, directories: Iterable[str | Path]) -> Path | None:
    """File defining workflow ``name``: a matching file stem first, then a matching ``name:`` field."""
    files = find_workflow_files(directories)
    for path in files:
        if path.stem == name:
            return path
    for path in files:
        try:
            raw = read_workflow_document(path)
        except ValidationError:
            continue
        if isinstance(raw, Mapping) and raw.get("name") == name:
            return path
    return None


def get_workflow_by_name(name: str, directories: Iterable[str | Path]) -> Workflow | None:
    """Load workflow ``name`` from the search path, or None when no file defines it.

    Raises:
        ValidationError: the matching file exists but is invalid

    """
    path = find_workflow_file(name, directories)
    return load_workflow(path) if path is not None else None
