"""
Field validation rules — registry and evaluator.

Rules are registered per entity kind and field with the @field_rule decorator
and evaluated in registration order. A rule receives the field's value and the
whole candidate (wire-named dict) and returns an error message or None.

Usage:
    @field_rule("task", "description")
    def description_required(value, data):
        if not str(value or "").strip():
            return "Description is required"
        return None

    errors = validate_many_fields("task", draft)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Tuple

from pydantic import BaseModel

from taskform.engine.errors import TaskFormValidationError

logger = logging.getLogger("taskform.rules.validation")

RuleFunc = Callable[[Any, Mapping[str, Any]], Optional[str]]

_rules: Dict[str, List[Tuple[str, RuleFunc]]] = {}


class FieldError(NamedTuple):
    """One failed rule: the wire field name and its message."""
    field: str
    err: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "err": self.err}


def field_rule(kind: str, field: str) -> Callable[[RuleFunc], RuleFunc]:
    """Register a rule for one field of an entity kind."""

    def decorator(func: RuleFunc) -> RuleFunc:
        _rules.setdefault(kind, []).append((field, func))
        logger.debug(f"Registered rule {func.__name__} for {kind}.{field}")
        return func

    return decorator


def rules_for(kind: str) -> List[Tuple[str, RuleFunc]]:
    if kind not in _rules:
        raise TaskFormValidationError(
            f"No validation rules registered for '{kind}'",
            kind=kind,
        )
    return list(_rules[kind])


def _as_mapping(data: Any) -> Mapping[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True)
    if isinstance(data, Mapping):
        return data
    raise TypeError(f"Cannot validate object of type {type(data).__name__}")


def validate_many_fields(kind: str, data: Any) -> List[FieldError]:
    """
    Evaluate every rule registered for *kind* against *data*.

    Returns the failures in rule order; empty list means valid. At most one
    error is reported per field (the first failing rule wins). Pure: the same
    input always yields the same list.
    """
    candidate = _as_mapping(data)
    errors: List[FieldError] = []
    failed_fields = set()

    for field, rule in rules_for(kind):
        if field in failed_fields:
            continue
        message = rule(candidate.get(field), candidate)
        if message:
            errors.append(FieldError(field, message))
            failed_fields.add(field)

    return errors
