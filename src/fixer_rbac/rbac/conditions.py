"""Condition predicates attached to role-permission grants.

A condition is a ``{"field", "operator", "value"}`` record. ``field`` is a
dot path into the check context (``resource_data.status``), ``operator`` one
of :class:`~fixer_rbac.db.enums.ConditionOperator`. A field that cannot be
reached resolves to :data:`MISSING`, which equals nothing and is contained in
nothing, so it only ever satisfies ``not_equals`` and ``not_in``.

Evaluation is total: unknown operators and mistyped operands evaluate to
``False`` instead of raising.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Final

from fixer_rbac.db.enums import ConditionOperator


class _Missing:
    """Marker for a context field that does not exist."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing()


@dataclass(frozen=True, slots=True)
class Condition:
    """A single predicate over the check context."""

    field: str
    operator: str
    value: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Condition":
        return cls(field=str(data.get("field", "")), operator=str(data.get("operator", "")), value=data.get("value"))

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator, "value": self.value}

    def is_satisfied_by(self, context: Mapping[str, Any] | None) -> bool:
        return evaluate_condition(resolve_field(context, self.field), self.operator, self.value)


def resolve_field(context: Mapping[str, Any] | None, field: str) -> Any:
    """Walk *context* along the dot-separated *field*, returning ``MISSING`` on any gap."""
    value: Any = context
    for part in field.split("."):
        if isinstance(value, Mapping) and part in value:
            value = value[part]
        else:
            return MISSING
    return value


def evaluate_condition(value: Any, operator: str, expected: Any) -> bool:
    """Apply *operator* to the resolved context *value* and the condition's *expected* operand."""
    match operator:
        case ConditionOperator.EQUALS:
            return _strict_equals(value, expected)
        case ConditionOperator.NOT_EQUALS:
            return not _strict_equals(value, expected)
        case ConditionOperator.IN:
            return isinstance(expected, list | tuple) and any(_strict_equals(value, item) for item in expected)
        case ConditionOperator.NOT_IN:
            return isinstance(expected, list | tuple) and not any(_strict_equals(value, item) for item in expected)
        case ConditionOperator.CONTAINS:
            return isinstance(value, str) and isinstance(expected, str) and expected in value
        case ConditionOperator.STARTS_WITH:
            return isinstance(value, str) and isinstance(expected, str) and value.startswith(expected)
        case ConditionOperator.ENDS_WITH:
            return isinstance(value, str) and isinstance(expected, str) and value.endswith(expected)
        case _:
            return False


def conditions_hold(
    conditions: Iterable[Condition | Mapping[str, Any]] | None,
    context: Mapping[str, Any] | None,
) -> bool:
    """Return ``True`` when every condition holds (vacuously true for none)."""
    for raw in conditions or ():
        if not isinstance(raw, Condition | Mapping):
            return False
        condition = raw if isinstance(raw, Condition) else Condition.from_dict(raw)
        if not condition.is_satisfied_by(context):
            return False
    return True


def _strict_equals(left: Any, right: Any) -> bool:
    # No cross-type coercion: True never equals 1 and "1" never equals 1.
    if left is MISSING or right is MISSING:
        return left is right
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if isinstance(left, int | float) and isinstance(right, int | float):
        return left == right
    if type(left) is not type(right):
        return False
    return bool(left == right)
