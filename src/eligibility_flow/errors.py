"""Error taxonomy for the traversal core.

Navigation failures are returned as data (``NavigationResult(success=False,
error=..., error_code=...)``) so callers can render fallbacks without
exception handling.  The codes below are the values of ``error_code``.

The single hard failure is :class:`SkipLoopError`: a skip/show configuration
that keeps eliding nodes past the iteration cap is an authoring bug, not an
ordinary dead end, and is raised rather than reported as "no next node".
"""

# --- Error codes carried on NavigationResult.error_code ---
NODE_NOT_FOUND = "NodeNotFound"
NO_NEXT_NODE = "NoNextNode"
NO_PREVIOUS_NODE = "NoPreviousNode"
FLOW_NOT_INITIALIZED = "FlowNotInitialized"

# Carried on ConditionEvaluationResult when the evaluator failed; the
# condition is treated as not met.
CONDITION_EVALUATION_ERROR = "ConditionEvaluationError"

# Carried on ValidationIssue; validate_flow() is advisory and never gates
# runtime traversal.
STRUCTURAL_VALIDATION_ERROR = "StructuralValidationError"


class SkipLoopError(RuntimeError):
    """Raised when forward navigation skips more nodes than the flow holds.

    Attributes:
        node_id: the node navigation started from
        skipped: the ids elided before the cap was hit
    """

    def __init__(self, node_id: str, skipped: list[str], limit: int) -> None:
        self.node_id = node_id
        self.skipped = list(skipped)
        self.limit = limit
        super().__init__(
            f"Skip loop from node '{node_id}': skipped {len(skipped)} nodes "
            f"(limit {limit}); check skip rules and showIf conditions for a cycle"
        )
