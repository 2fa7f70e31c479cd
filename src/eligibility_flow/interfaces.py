"""Abstract interface for the pluggable condition evaluator.

The traversal core never interprets conditions itself.  It hands each rule
plus the current answer context to a :class:`RuleEvaluator` and reads the
truthiness of the returned ``result``.  The package ships
:class:`~eligibility_flow.evaluator.ConditionEvaluator`; hosting
applications may substitute any rule interpreter by implementing this ABC::

    class JsonLogicEvaluator(RuleEvaluator):
        def evaluate(self, rule, context):
            return EvaluationResult(result=json_logic.apply(rule, context))

    engine = FlowEngine(flow, evaluator=JsonLogicEvaluator())
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping

from eligibility_flow.models.condition import EvaluationResult


class RuleEvaluator(ABC):
    """Interface for boolean rule evaluation over an answer context."""

    @abstractmethod
    def evaluate(self, rule: Any, context: Mapping[str, Any]) -> EvaluationResult:
        """Evaluate ``rule`` against ``context``.

        Parameters
        ----------
        rule:
            The condition as stored on the flow (a ``Condition`` model for
            the default evaluator, or whatever format the implementation
            understands).
        context:
            Flat ``field_name -> value`` answer map.  Implementations must
            not mutate it.

        Returns
        -------
        EvaluationResult
            ``result`` is read for truthiness.  Implementations should
            report failures through ``error`` rather than raising; the
            engine also guards against exceptions and treats them as
            "condition not met".
        """
        ...
