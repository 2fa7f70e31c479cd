"""Condition models for showIf rules, branches and skip rules.

A condition is a small predicate tree evaluated against the flat answer
context:

  - Predicate: compares one context field against a value
  - AllOf / AnyOf: conjunction / disjunction of nested conditions
  - NotCondition: negation (authored as ``{"not": ...}``)
  - Constant: a literal truth value (``{"const": true}``)

The union is undiscriminated: each variant is recognised by its required
keys, so YAML authors write ``{field: income, op: gt, value: 5000}`` or
``{all: [...]}`` without a type tag.  Extra keys are rejected so a typo
never silently turns into a different variant.
"""

from __future__ import annotations

from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Operators understood by the default ConditionEvaluator.
PredicateOp = Literal[
    "eq", "ne",
    "lt", "le", "gt", "ge", "between",
    "in", "not_in",
    "contains", "not_contains", "contains_any", "contains_all",
    "matches",
    "exists", "not_exists",
    "truthy", "falsy",
]


class Predicate(BaseModel):
    """A single comparison against a context field.

    Operators:
      - eq, ne: equality / inequality
      - lt, le, gt, ge: numeric comparisons (strings coerced to float)
      - between: value is [min, max] inclusive
      - in, not_in: answer is (not) one of the listed values
      - contains, not_contains: substring / element membership
      - contains_any, contains_all: set membership
      - matches: regex search
      - exists, not_exists: field present in context and not None
      - truthy, falsy: Python truthiness of the answer (value ignored)

    ``path`` drills into dict-valued answers with a dotted key, e.g.
    ``field="address", path="state"``.
    """

    model_config = ConfigDict(extra="forbid")

    field: str
    op: PredicateOp = "eq"
    value: Any = None
    path: Optional[str] = None


class AllOf(BaseModel):
    """True when every nested condition is true (empty list is true)."""

    model_config = ConfigDict(extra="forbid")

    all: List[Condition]


class AnyOf(BaseModel):
    """True when at least one nested condition is true (empty list is false)."""

    model_config = ConfigDict(extra="forbid")

    any: List[Condition]


class NotCondition(BaseModel):
    """Negates a nested condition."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    not_: Condition = Field(alias="not")


class Constant(BaseModel):
    """A literal truth value, e.g. for unconditional branches."""

    model_config = ConfigDict(extra="forbid")

    const: bool


Condition = Union[Predicate, AllOf, AnyOf, NotCondition, Constant]

AllOf.model_rebuild()
AnyOf.model_rebuild()
NotCondition.model_rebuild()


class EvaluationResult(BaseModel):
    """Raw output of a rule evaluator.

    ``result`` is read for truthiness only.  ``error`` carries the failure
    message when evaluation could not complete; the caller treats such a
    condition as not met.
    """

    result: Any = False
    error: Optional[str] = None
