"""FlowEngine — stateless graph + condition traversal primitives.

The engine answers "where does this node lead under the current context?"
and nothing more.  It keeps no navigation history; the
:class:`~eligibility_flow.navigation.NavigationManager` layers history,
skip rules and undo on top.

Traversal order for ``find_next_node``:

    1. unknown node          → failure (NodeNotFound)
    2. terminal node         → success, no target (flow finished)
    3. branches by priority  → first condition that holds wins
    4. default ``next_id``   → taken when no branch holds
    5. nothing left          → failure (NoNextNode)

Condition failures never abort traversal: an evaluator error is logged and
the condition counts as not met.

Module-level builder helpers (``create_flow``, ``link_nodes``, ...) mutate a
``QuestionFlow`` in place for programmatic authoring.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Any, Iterator, Mapping

from eligibility_flow.errors import (
    CONDITION_EVALUATION_ERROR,
    NO_NEXT_NODE,
    NO_PREVIOUS_NODE,
    NODE_NOT_FOUND,
)
from eligibility_flow.evaluator import ConditionEvaluator
from eligibility_flow.interfaces import RuleEvaluator
from eligibility_flow.models.flow import FlowBranch, FlowNode, QuestionFlow
from eligibility_flow.models.navigation import (
    ConditionEvaluationResult,
    FlowValidationResult,
    NavigationResult,
    ValidationIssue,
)
from eligibility_flow.models.question import QuestionDefinition

logger = logging.getLogger(__name__)


class FlowEngine:
    """Evaluates conditions and links of a single flow against a context.

    Args:
        flow: the question graph to traverse
        evaluator: rule interpreter for showIf/branch conditions
            (defaults to :class:`ConditionEvaluator`)
    """

    def __init__(self, flow: QuestionFlow, evaluator: RuleEvaluator | None = None) -> None:
        self._flow = flow
        self._evaluator = evaluator or ConditionEvaluator()
        self._context: dict[str, Any] = {}

    # ==================================================================
    # Flow accessors
    # ==================================================================

    @property
    def flow(self) -> QuestionFlow:
        return self._flow

    @property
    def evaluator(self) -> RuleEvaluator:
        return self._evaluator

    def get_start_node(self) -> FlowNode | None:
        return self._flow.nodes.get(self._flow.start_node_id)

    def get_node(self, node_id: str) -> FlowNode | None:
        return self._flow.nodes.get(node_id)

    def get_question(self, node_id: str) -> QuestionDefinition | None:
        node = self.get_node(node_id)
        return node.question if node is not None else None

    # ==================================================================
    # Context
    # ==================================================================

    def update_context(self, field_name: str, value: Any) -> None:
        """Store one answer in the context."""
        self._context[field_name] = value

    def get_context(self) -> dict[str, Any]:
        """Return a copy of the current context."""
        return dict(self._context)

    def set_context(self, context: Mapping[str, Any]) -> None:
        """Replace the context with a copy of ``context``."""
        self._context = dict(context)

    # ==================================================================
    # Conditions
    # ==================================================================

    def evaluate_condition(self, condition: Any) -> ConditionEvaluationResult:
        """Evaluate a condition against the current context.

        Evaluator errors (reported or raised) fail open to ``met=False``;
        the message is kept on the result for diagnostics.
        """
        start = time.perf_counter()
        try:
            raw = self._evaluator.evaluate(condition, dict(self._context))
            met, error = bool(raw.result), raw.error
        except Exception as exc:  # pluggable evaluator: any failure means "not met"
            logger.warning("Evaluator raised for %r: %s", condition, exc, exc_info=True)
            met, error = False, str(exc) or type(exc).__name__

        if error is not None:
            met = False
            logger.warning("Condition not met due to evaluation error: %s", error)

        return ConditionEvaluationResult(
            met=met,
            rule=condition,
            error=error,
            error_code=CONDITION_EVALUATION_ERROR if error is not None else None,
            evaluation_time=(time.perf_counter() - start) * 1000.0,
        )

    def should_show(self, question: QuestionDefinition) -> bool:
        """True if the question has no ``show_if`` or its condition holds."""
        if question.show_if is None:
            return True
        return self.evaluate_condition(question.show_if).met

    # ==================================================================
    # Traversal
    # ==================================================================

    def find_next_node(self, current_node_id: str) -> NavigationResult:
        """Resolve the next node from ``current_node_id`` under the current context."""
        node = self.get_node(current_node_id)
        if node is None:
            return NavigationResult.failure(NODE_NOT_FOUND, f"Node {current_node_id} not found")

        if node.is_terminal:
            return NavigationResult(success=True, previous_node_id=current_node_id)

        # Stable sort: equal priorities keep declaration order
        for branch in sorted(node.branches, key=lambda b: -b.priority):
            if self.evaluate_condition(branch.condition).met:
                return NavigationResult(
                    success=True,
                    target_node_id=branch.target_id,
                    previous_node_id=current_node_id,
                    branch_taken=True,
                    branch_id=branch.id,
                )

        if node.next_id:
            return NavigationResult(
                success=True,
                target_node_id=node.next_id,
                previous_node_id=current_node_id,
                branch_taken=False,
            )

        return NavigationResult.failure(
            NO_NEXT_NODE,
            "No next node found and not a terminal node",
            previous_node_id=current_node_id,
        )

    def navigate_next(self, current_node_id: str) -> NavigationResult:
        return self.find_next_node(current_node_id)

    def navigate_previous(self, current_node_id: str) -> NavigationResult:
        """Follow the static ``previous_id`` link.

        This cannot know which branch or skips led here; the navigation
        manager uses it only when history has nothing to offer.
        """
        node = self.get_node(current_node_id)
        if node is None:
            return NavigationResult.failure(NODE_NOT_FOUND, f"Node {current_node_id} not found")

        if not node.previous_id:
            return NavigationResult.failure(
                NO_PREVIOUS_NODE,
                "No previous node available",
                previous_node_id=current_node_id,
            )

        return NavigationResult(
            success=True,
            target_node_id=node.previous_id,
            previous_node_id=current_node_id,
        )

    def jump_to_node(self, target_node_id: str) -> NavigationResult:
        """Existence check only; conditions are bypassed for explicit jumps."""
        if self.get_node(target_node_id) is None:
            return NavigationResult.failure(NODE_NOT_FOUND, f"Node {target_node_id} not found")
        return NavigationResult(success=True, target_node_id=target_node_id)

    # ==================================================================
    # Visibility partition (recomputed on every call)
    # ==================================================================

    def get_visible_questions(self) -> list[QuestionDefinition]:
        return [n.question for n in self._flow.nodes.values() if self.should_show(n.question)]

    def get_skipped_questions(self) -> list[QuestionDefinition]:
        return [n.question for n in self._flow.nodes.values() if not self.should_show(n.question)]

    # ==================================================================
    # Structural validation
    # ==================================================================

    def validate_flow(self) -> FlowValidationResult:
        """Check the flow's structure.  Advisory: never gates traversal.

        Errors: missing start node, dangling links/branch targets, questions
        without a ``field_name``, cycles.  Warnings: nodes unreachable from
        the start node.
        """
        issues: list[ValidationIssue] = []
        missing_branches: list[str] = []
        nodes = self._flow.nodes

        # (a) start node
        if self._flow.start_node_id not in nodes:
            issues.append(ValidationIssue(message="Start node not found in flow", severity="error"))

        # (b) links, branch targets, field names
        for node_id, node in nodes.items():
            if node.next_id and node.next_id not in nodes:
                issues.append(ValidationIssue(
                    node_id=node_id,
                    message=f"Next node {node.next_id} not found",
                    severity="error",
                ))
                missing_branches.append(node.next_id)

            if node.previous_id and node.previous_id not in nodes:
                issues.append(ValidationIssue(
                    node_id=node_id,
                    message=f"Previous node {node.previous_id} not found",
                    severity="error",
                ))
                missing_branches.append(node.previous_id)

            for branch in node.branches:
                if branch.target_id not in nodes:
                    issues.append(ValidationIssue(
                        node_id=node_id,
                        message=f"Branch target {branch.target_id} not found",
                        severity="error",
                    ))
                    missing_branches.append(branch.target_id)

            if not node.question.field_name:
                issues.append(ValidationIssue(
                    node_id=node_id,
                    message="Question missing fieldName",
                    severity="error",
                ))

        # (c) reachability (orphans are warnings)
        reachable = self._find_reachable_nodes()
        orphaned = [node_id for node_id in nodes if node_id not in reachable]
        for node_id in orphaned:
            issues.append(ValidationIssue(
                node_id=node_id,
                message="Node is not reachable from start",
                severity="warning",
            ))

        # (d) structural cycles
        cycles = self._detect_cycles()
        for cycle in cycles:
            issues.append(ValidationIssue(
                node_id=cycle[0],
                message=f"Circular reference detected: {' -> '.join(cycle)}",
                severity="error",
            ))

        valid = not any(i.severity == "error" for i in issues)
        if not valid:
            logger.info(
                "Flow %s failed validation with %d error(s)",
                self._flow.id,
                sum(1 for i in issues if i.severity == "error"),
            )

        return FlowValidationResult(
            valid=valid,
            errors=issues,
            orphaned_nodes=orphaned,
            circular_references=cycles,
            missing_branches=missing_branches,
        )

    def _successors(self, node_id: str) -> list[str]:
        """Default + branch targets of a node, de-duplicated in edge order."""
        node = self.get_node(node_id)
        if node is None:
            return []
        targets = ([node.next_id] if node.next_id else []) + [b.target_id for b in node.branches]
        return list(dict.fromkeys(targets))

    def _find_reachable_nodes(self) -> set[str]:
        """BFS from the start node over default and branch edges."""
        reachable: set[str] = set()
        queue = deque([self._flow.start_node_id])
        while queue:
            node_id = queue.popleft()
            if node_id in reachable or node_id not in self._flow.nodes:
                continue
            reachable.add(node_id)
            queue.extend(self._successors(node_id))
        return reachable

    def _detect_cycles(self) -> list[list[str]]:
        """Iterative DFS; every back edge yields the cycle path ``[a, ..., a]``.

        Structural: any branch is assumed takeable.  Roots are the start node
        first, then every not-yet-visited node so orphan cycles are reported too.
        """
        nodes = self._flow.nodes
        cycles: list[list[str]] = []
        visited: set[str] = set()
        roots = [self._flow.start_node_id, *nodes.keys()]

        for root in roots:
            if root in visited or root not in nodes:
                continue
            visited.add(root)
            path = [root]
            on_path = {root}
            stack: list[Iterator[str]] = [iter(self._successors(root))]

            while stack:
                succ = next(stack[-1], None)
                if succ is None:
                    stack.pop()
                    on_path.discard(path.pop())
                    continue
                if succ in on_path:
                    cycles.append(path[path.index(succ):] + [succ])
                    continue
                if succ in visited or succ not in nodes:
                    continue
                visited.add(succ)
                path.append(succ)
                on_path.add(succ)
                stack.append(iter(self._successors(succ)))

        return cycles


# ======================================================================
# Builder helpers
# ======================================================================


def create_flow(flow_id: str, name: str, start_node_id: str) -> QuestionFlow:
    """Create an empty flow."""
    return QuestionFlow(id=flow_id, name=name, start_node_id=start_node_id)


def create_flow_node(node_id: str, question: QuestionDefinition) -> FlowNode:
    """Create a node with no links."""
    return FlowNode(id=node_id, question=question)


def add_node_to_flow(flow: QuestionFlow, node: FlowNode) -> QuestionFlow:
    """Add (or replace) a node.  Mutates ``flow`` in place and returns it."""
    flow.nodes[node.id] = node
    flow.touch()
    return flow


def link_nodes(flow: QuestionFlow, from_id: str, to_id: str) -> QuestionFlow:
    """Create a default path ``from_id → to_id`` (and the reverse previous link).

    Raises:
        KeyError: if either node is missing.
    """
    if from_id not in flow.nodes or to_id not in flow.nodes:
        raise KeyError(f"One or both nodes not found: {from_id!r}, {to_id!r}")
    flow.nodes[from_id].next_id = to_id
    flow.nodes[to_id].previous_id = from_id
    flow.touch()
    return flow


def add_branch(flow: QuestionFlow, from_node_id: str, branch: FlowBranch) -> QuestionFlow:
    """Append a conditional branch to a node.

    Raises:
        KeyError: if the node is missing.
    """
    node = flow.nodes.get(from_node_id)
    if node is None:
        raise KeyError(f"Node {from_node_id} not found")
    node.branches.append(branch)
    flow.touch()
    return flow
