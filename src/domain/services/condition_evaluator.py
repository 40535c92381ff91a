"""Condition evaluator - constrained expressions over a flat variable map.

Supported forms:
- keywords: ``true``, ``false``, ``approved``, ``file-exists``
- pipe forms: ``variable-equals|name|value``, ``contains|name|text``,
  ``greater-than|name|number``, ``less-than|name|number``
- comparisons: ``left OP right`` with OP in ``== != >= <= > <``; each side is a
  variable name or a literal
- a bare variable name (truthiness of its value; missing is false)
"""

from collections.abc import Mapping
from typing import Any

# Two-character operators first so ">=" is not split on ">"
_OPERATORS = ("==", "!=", ">=", "<=", ">", "<")

_MISSING = object()


def _lookup(context: Mapping[str, Any], name: str) -> Any:
    if name in context:
        return context[name]
    lowered = name.lower()
    for key, value in context.items():
        if key.lower() == lowered:
            return value
    return _MISSING


def _literal(token: str) -> Any:
    """Parse a literal operand: quoted string, number, bool, null, or bare text."""
    if len(token) >= 2 and token[0] == token[-1] and token[0] in ("'", '"'):
        return token[1:-1]
    lowered = token.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered in ("null", "none"):
        return None
    number = _as_number(token)
    return number if number is not None else token


def _operand(token: str, context: Mapping[str, Any]) -> Any:
    value = _lookup(context, token)
    return _literal(token) if value is _MISSING else value


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _loose_equals(left: Any, right: Any) -> bool:
    """Equality that treats 1, 1.0 and "1" alike."""
    ln, rn = _as_number(left), _as_number(right)
    if ln is not None and rn is not None:
        return ln == rn
    return _as_text(left) == _as_text(right)


def _compare(op: str, left: Any, right: Any) -> bool:
    if op == "==":
        return _loose_equals(left, right)
    if op == "!=":
        return not _loose_equals(left, right)
    ln, rn = _as_number(left), _as_number(right)
    if ln is None or rn is None:
        return False
    if op == ">=":
        return ln >= rn
    if op == "<=":
        return ln <= rn
    if op == ">":
        return ln > rn
    return ln < rn


_PIPE_FORMS = ("variable-equals", "contains", "greater-than", "less-than")


def _pipe_form(kind: str, parts: list[str], context: Mapping[str, Any]) -> bool | None:
    if kind not in _PIPE_FORMS:
        return None
    if len(parts) < 2:
        return False
    name, arg = parts[0].strip(), "|".join(parts[1:]).strip()
    value = _lookup(context, name)
    if kind == "variable-equals":
        return value is not _MISSING and _loose_equals(value, _literal(arg))
    if kind == "contains":
        return isinstance(value, str) and arg in value
    if kind == "greater-than":
        return value is not _MISSING and _compare(">", value, arg)
    return value is not _MISSING and _compare("<", value, arg)


def evaluate_condition(condition: str, context: Mapping[str, Any]) -> bool:
    """Evaluate ``condition`` against ``context``. Never raises on odd input."""
    expr = (condition or "").strip()
    lowered = expr.lower()

    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered == "approved":
        return _lookup(context, "approved") is True
    if lowered == "file-exists":
        return _lookup(context, "fileExists") is True or _lookup(context, "exists") is True

    if "|" in expr:
        kind, _, rest = expr.partition("|")
        result = _pipe_form(kind.strip().lower(), rest.split("|"), context)
        if result is not None:
            return result

    for op in _OPERATORS:
        if op in expr:
            left, _, right = expr.partition(op)
            return _compare(op, _operand(left.strip(), context), _operand(right.strip(), context))

    value = _lookup(context, expr)
    if value is _MISSING:
        return False
    return bool(value)
