"""Minimal ``{{name}}`` template substitution.

Unresolved placeholders are left verbatim; substitution never raises.
"""

import json
import re
from collections.abc import Mapping
from typing import Any

_PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")


def _format(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


def interpolate(template: str, variables: Mapping[str, Any]) -> str:
    """Replace ``{{name}}`` with ``variables[name]``; keep unknown names as-is."""
    if not template or "{{" not in template:
        return template

    def _sub(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        return _format(variables[name])

    return _PLACEHOLDER_RE.sub(_sub, template)


def find_placeholders(template: str) -> list[str]:
    """Names referenced by ``{{name}}`` placeholders, in order of appearance."""
    return _PLACEHOLDER_RE.findall(template or "")
