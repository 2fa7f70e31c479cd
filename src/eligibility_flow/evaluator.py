"""ConditionEvaluator — the default rule interpreter for flow conditions.

Resolves the ``Condition`` tree (predicates, all/any/not, constants) against
the flat answer context.  Used for question ``showIf`` rules, branch
conditions and skip rules alike.

Evaluation never raises.  Malformed rules (an unparseable dict, bad
``between`` bounds, an invalid regex) come back as
``EvaluationResult(result=False, error=...)`` and are logged; the engine
then treats the condition as not met and carries on.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from pydantic import TypeAdapter

from eligibility_flow.interfaces import RuleEvaluator
from eligibility_flow.models.condition import (
    AllOf,
    AnyOf,
    Condition,
    Constant,
    EvaluationResult,
    NotCondition,
    Predicate,
)

logger = logging.getLogger(__name__)

_CONDITION_ADAPTER: TypeAdapter[Condition] = TypeAdapter(Condition)

# Sentinel for "field not present in context" (distinct from an explicit None).
_MISSING = object()

# Operators that hold when the referenced field has no answer yet.
_MISSING_TRUE_OPS = {"ne", "not_in", "not_contains", "not_exists", "falsy"}


def parse_condition(raw: Any) -> Condition:
    """Validate a raw dict (e.g. from YAML) into a ``Condition`` model."""
    if isinstance(raw, (Predicate, AllOf, AnyOf, NotCondition, Constant)):
        return raw
    return _CONDITION_ADAPTER.validate_python(raw)


class ConditionEvaluator(RuleEvaluator):
    """Evaluates ``Condition`` trees against an answer context."""

    def evaluate(self, rule: Any, context: Mapping[str, Any]) -> EvaluationResult:
        """Evaluate a condition (model or raw dict) against ``context``.

        Returns:
            ``EvaluationResult`` with a bool ``result``; on failure
            ``result`` is False and ``error`` carries the message.
        """
        try:
            condition = parse_condition(rule)
            return EvaluationResult(result=self._eval(condition, context))
        except (ValueError, TypeError, KeyError, IndexError, re.error) as exc:
            logger.warning("Condition evaluation failed for %r: %s", rule, exc)
            return EvaluationResult(result=False, error=str(exc))

    # ------------------------------------------------------------------
    # Tree walk
    # ------------------------------------------------------------------

    def _eval(self, cond: Condition, context: Mapping[str, Any]) -> bool:
        if isinstance(cond, Predicate):
            return self._eval_predicate(cond, context)
        if isinstance(cond, AllOf):
            return all(self._eval(c, context) for c in cond.all)
        if isinstance(cond, AnyOf):
            return any(self._eval(c, context) for c in cond.any)
        if isinstance(cond, NotCondition):
            return not self._eval(cond.not_, context)
        if isinstance(cond, Constant):
            return cond.const
        raise TypeError(f"Unsupported condition type: {type(cond).__name__}")

    # ------------------------------------------------------------------
    # Predicate evaluation
    # ------------------------------------------------------------------

    def _eval_predicate(self, pred: Predicate, context: Mapping[str, Any]) -> bool:
        """Evaluate a single predicate against the context.

        If the referenced field has not been answered (absent or None), only
        the negative operators hold.
        """
        answer = context.get(pred.field, _MISSING)

        # Drill into dict-valued answers for dotted paths
        if pred.path is not None and answer is not _MISSING:
            for key in pred.path.split("."):
                if isinstance(answer, Mapping) and key in answer:
                    answer = answer[key]
                else:
                    answer = _MISSING
                    break

        if answer is _MISSING or answer is None:
            return pred.op in _MISSING_TRUE_OPS

        return self._compare(pred.op, answer, pred.value)

    @staticmethod
    def _compare(op: str, answer: Any, value: Any) -> bool:
        """Apply an operator to an answer and an expected value.

        Handles type coercion for numeric comparisons (answers from form
        inputs are often strings).
        """
        if op == "eq":
            return answer == value

        if op == "ne":
            return answer != value

        if op in ("exists", "truthy"):
            return True if op == "exists" else bool(answer)

        if op == "not_exists":
            return False

        if op == "falsy":
            return not answer

        # --- Numeric comparisons ---
        if op in ("lt", "le", "gt", "ge", "between"):
            try:
                ans_num = float(answer)
            except (TypeError, ValueError):
                return False

            if op == "lt":
                return ans_num < float(value)
            if op == "le":
                return ans_num <= float(value)
            if op == "gt":
                return ans_num > float(value)
            if op == "ge":
                return ans_num >= float(value)
            # between: value is expected to be [min, max]
            lo, hi = float(value[0]), float(value[1])
            return lo <= ans_num <= hi

        # --- Enumerated membership ---
        if op == "in":
            return answer in value

        if op == "not_in":
            return answer not in value

        # --- Collection / string membership ---
        if op == "contains":
            if isinstance(answer, (list, tuple, set)):
                return value in answer
            return str(value) in str(answer)

        if op == "not_contains":
            if isinstance(answer, (list, tuple, set)):
                return value not in answer
            return str(value) not in str(answer)

        if op == "contains_any":
            if isinstance(answer, (list, tuple, set)):
                return any(v in answer for v in value)
            ans_str = str(answer)
            return any(str(v) in ans_str for v in value)

        if op == "contains_all":
            if isinstance(answer, (list, tuple, set)):
                return all(v in answer for v in value)
            ans_str = str(answer)
            return all(str(v) in ans_str for v in value)

        if op == "matches":
            return bool(re.search(str(value), str(answer)))

        logger.warning("Unknown predicate operator: %s", op)
        return False
