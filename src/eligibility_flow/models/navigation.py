"""Navigation and validation result models.

These are the values the traversal core hands back to callers.  Failures
are data, not exceptions: ``success=False`` plus a human-readable ``error``
and a machine-readable ``error_code`` (see :mod:`eligibility_flow.errors`).
"""

from typing import Any, List, Literal, Optional

from pydantic import BaseModel

from eligibility_flow.errors import STRUCTURAL_VALIDATION_ERROR


class NavigationResult(BaseModel):
    """Outcome of a forward, backward or jump step.

    A successful step with ``target_node_id=None`` means a terminal node was
    reached: the flow is finished, nothing failed.

    ``questions_skipped`` is None unless at least one question was elided;
    its presence is the caller's skip signal.
    """

    success: bool
    target_node_id: Optional[str] = None
    previous_node_id: Optional[str] = None
    branch_taken: Optional[bool] = None
    branch_id: Optional[str] = None
    questions_skipped: Optional[List[str]] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def failure(
        cls, error_code: str, error: str, previous_node_id: Optional[str] = None
    ) -> "NavigationResult":
        """Shorthand for a failed step."""
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            previous_node_id=previous_node_id,
        )

    @property
    def is_terminal(self) -> bool:
        """True when the step succeeded by reaching the end of the flow."""
        return self.success and self.target_node_id is None


class ConditionEvaluationResult(BaseModel):
    """A condition's outcome as seen by the engine (errors already failed open)."""

    met: bool
    rule: Any = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    # Wall-clock milliseconds spent in the evaluator
    evaluation_time: float = 0.0


class ValidationIssue(BaseModel):
    """One structural finding from ``validate_flow``."""

    node_id: Optional[str] = None
    message: str
    severity: Literal["error", "warning"]
    code: str = STRUCTURAL_VALIDATION_ERROR


class FlowValidationResult(BaseModel):
    """Advisory structural report for a flow.

    ``valid`` is False iff at least one issue has severity "error".
    Unreachable nodes are warnings only.
    """

    valid: bool
    errors: List[ValidationIssue] = []
    orphaned_nodes: List[str] = []
    circular_references: List[List[str]] = []
    missing_branches: List[str] = []

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [e for e in self.errors if e.severity == "warning"]
