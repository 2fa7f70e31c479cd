"""Skip logic and history-aware navigation.

Two orthogonal mechanisms shape the path through a flow:

  - **Branches** (on nodes) choose *where* to go next.
  - **Skip rules** (on the flow) declare *which* otherwise-reachable
    questions to omit, whatever the path.

:class:`NavigationManager` combines a :class:`FlowEngine`, a
:class:`SkipLogicManager` and a history stack.  Forward steps elide skipped
and hidden questions; backward steps replay the history log rather than the
graph's static ``previous_id`` link, because only history knows which
branch and which skips led to the current node.

History contract (outside a transition)::

    history[0]  == flow.start_node_id
    history[-1] == the node currently shown
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from eligibility_flow.errors import NO_PREVIOUS_NODE, NODE_NOT_FOUND, SkipLoopError
from eligibility_flow.flow_engine import FlowEngine
from eligibility_flow.interfaces import RuleEvaluator
from eligibility_flow.models.flow import FlowBranch, FlowNode, QuestionFlow, SkipRule
from eligibility_flow.models.navigation import NavigationResult

logger = logging.getLogger(__name__)


def _last_index(items: list[str], value: str) -> int:
    """Index of the last occurrence of ``value`` in ``items``, or -1."""
    for i in range(len(items) - 1, -1, -1):
        if items[i] == value:
            return i
    return -1


# ======================================================================
# Skip logic
# ======================================================================


class SkipLogicManager:
    """Holds skip rules and computes the skip-set for a context.

    Rules are kept sorted by descending priority; ties keep insertion order.
    The flow's own ``skip_rules`` are loaded at construction.
    """

    def __init__(self, flow: QuestionFlow, evaluator: RuleEvaluator | None = None) -> None:
        self._engine = FlowEngine(flow, evaluator)
        self._rules: list[SkipRule] = []
        for rule in flow.skip_rules:
            self.add_skip_rule(rule)

    def add_skip_rule(self, rule: SkipRule) -> None:
        self._rules.append(rule)
        self._rules.sort(key=lambda r: -r.priority)

    def remove_skip_rule(self, rule_id: str) -> bool:
        """Remove a rule by id.  Returns True if anything was removed."""
        before = len(self._rules)
        self._rules = [r for r in self._rules if r.id != rule_id]
        return len(self._rules) < before

    def get_skip_rules(self) -> list[SkipRule]:
        return list(self._rules)

    def get_questions_to_skip(self, context: Mapping[str, Any]) -> list[str]:
        """Union of ``question_ids`` of every rule whose condition holds now.

        Ordered by first appearance (rule priority, then listing order).
        """
        self._engine.set_context(context)
        to_skip: dict[str, None] = {}
        for rule in self._rules:
            if self._engine.evaluate_condition(rule.condition).met:
                for question_id in rule.question_ids:
                    to_skip[question_id] = None
        return list(to_skip)

    def should_skip_question(self, question_id: str, context: Mapping[str, Any]) -> bool:
        return question_id in self.get_questions_to_skip(context)


# ======================================================================
# Navigation manager
# ======================================================================


class NavigationManager:
    """Directional, skip-aware, undo-capable navigation over one flow.

    One manager per active session: it exclusively owns the context and the
    history.  Callers serialise their own calls.

    Args:
        flow: the question graph
        evaluator: rule interpreter shared by the engine and skip manager
    """

    def __init__(self, flow: QuestionFlow, evaluator: RuleEvaluator | None = None) -> None:
        self._flow = flow
        self._engine = FlowEngine(flow, evaluator)
        self._skip_manager = SkipLogicManager(flow, evaluator)
        self._history: list[str] = [flow.start_node_id]

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def engine(self) -> FlowEngine:
        return self._engine

    @property
    def skip_manager(self) -> SkipLogicManager:
        return self._skip_manager

    def update_context(self, field_name: str, value: Any) -> None:
        self._engine.update_context(field_name, value)

    def get_context(self) -> dict[str, Any]:
        return self._engine.get_context()

    def set_context(self, context: Mapping[str, Any]) -> None:
        self._engine.set_context(context)

    def get_history(self) -> list[str]:
        return list(self._history)

    def set_history(self, history: list[str]) -> None:
        """Restore a persisted history.  An empty list reseeds ``[start]``."""
        self._history = list(history) or [self._flow.start_node_id]

    def clear_history(self) -> None:
        self._history = [self._flow.start_node_id]

    # ------------------------------------------------------------------
    # Forward
    # ------------------------------------------------------------------

    def navigate_forward(self, current_node_id: str) -> NavigationResult:
        """Advance from ``current_node_id``, stepping over skipped/hidden questions.

        Raises:
            SkipLoopError: if more nodes are skipped than the flow holds
                (a cyclic skip configuration).
        """
        # Context may have changed since the last step
        skip_set = set(self._skip_manager.get_questions_to_skip(self._engine.get_context()))
        skipped: list[str] = []
        limit = len(self._flow.nodes)

        result = self._engine.find_next_node(current_node_id)

        while result.success and result.target_node_id is not None:
            target = self._engine.get_node(result.target_node_id)
            if target is None:
                logger.warning(
                    "Link from %s resolves to missing node %s",
                    result.previous_node_id, result.target_node_id,
                )
                result = NavigationResult.failure(
                    NODE_NOT_FOUND,
                    f"Node {result.target_node_id} not found",
                    previous_node_id=result.previous_node_id,
                )
                break

            question = target.question
            if question.id not in skip_set and self._engine.should_show(question):
                break

            skipped.append(question.id)
            if len(skipped) > limit:
                logger.error("Skip loop from %s after skipping %s", current_node_id, skipped)
                raise SkipLoopError(current_node_id, skipped, limit)
            result = self._engine.find_next_node(target.id)

        if result.success and result.target_node_id is not None:
            if not self._history or self._history[-1] != current_node_id:
                self._history.append(current_node_id)
            if result.target_node_id != current_node_id:
                self._history.append(result.target_node_id)

        logger.debug(
            "forward %s -> %s (branch=%s, skipped=%s, ok=%s)",
            current_node_id, result.target_node_id, result.branch_id, skipped, result.success,
        )
        update: dict[str, Any] = {"questions_skipped": skipped or None}
        if result.success:
            update["previous_node_id"] = current_node_id
        return result.model_copy(update=update)

    # ------------------------------------------------------------------
    # Backward
    # ------------------------------------------------------------------

    def navigate_backward(self, current_node_id: str) -> NavigationResult:
        """Return to the node shown before ``current_node_id``.

        Resolution order:
          1. ``current`` is the last history entry → pop it
          2. ``current`` occurs earlier in history (caller drifted, e.g. after
             an external jump) → truncate there, return the entry before it
          3. static ``previous_id`` link → on success trim history to the last
             occurrence of ``current`` if present, else leave it untouched
        """
        history = self._history

        if len(history) > 1 and history[-1] == current_node_id:
            history.pop()
            target = history[-1]
            logger.debug("backward %s -> %s (history pop)", current_node_id, target)
            return NavigationResult(
                success=True, target_node_id=target, previous_node_id=current_node_id,
            )

        idx = _last_index(history, current_node_id)
        if idx > 0:
            del history[idx:]
            target = history[-1]
            logger.debug("backward %s -> %s (history truncate at %d)", current_node_id, target, idx)
            return NavigationResult(
                success=True, target_node_id=target, previous_node_id=current_node_id,
            )

        result = self._engine.navigate_previous(current_node_id)
        if result.success:
            if idx >= 0:
                del history[idx + 1:]
            logger.debug("backward %s -> %s (static link)", current_node_id, result.target_node_id)
            return result

        if result.error_code == NODE_NOT_FOUND:
            return result
        return NavigationResult.failure(
            NO_PREVIOUS_NODE, "No previous node available", previous_node_id=current_node_id,
        )

    # ------------------------------------------------------------------
    # Jump
    # ------------------------------------------------------------------

    def jump_to(self, target_node_id: str) -> NavigationResult:
        """Explicit detour: bypasses conditions and appends to history (never trims)."""
        result = self._engine.jump_to_node(target_node_id)
        if result.success and result.target_node_id is not None:
            if self._history[-1:] != [result.target_node_id]:
                self._history.append(result.target_node_id)
        return result

    # ------------------------------------------------------------------
    # Capability checks
    # ------------------------------------------------------------------

    def can_go_back(self) -> bool:
        return len(self._history) > 1

    def can_go_forward(self, current_node_id: str) -> bool:
        """True if a concrete next node exists (a terminal landing is not one)."""
        result = self._engine.find_next_node(current_node_id)
        return result.success and result.target_node_id is not None


# ======================================================================
# Branch / path helpers
# ======================================================================


def evaluate_branches(
    node: FlowNode,
    context: Mapping[str, Any],
    evaluator: RuleEvaluator | None = None,
) -> FlowBranch | None:
    """Return the branch ``find_next_node`` would take from ``node``, if any."""
    if not node.branches:
        return None
    engine = FlowEngine(
        QuestionFlow(id="branch-eval", start_node_id=node.id, nodes={node.id: node}),
        evaluator,
    )
    engine.set_context(context)
    for branch in sorted(node.branches, key=lambda b: -b.priority):
        if engine.evaluate_condition(branch.condition).met:
            return branch
    return None


def find_flow_path(
    flow: QuestionFlow,
    context: Mapping[str, Any],
    evaluator: RuleEvaluator | None = None,
    max_steps: int = 1000,
) -> list[str]:
    """Walk the flow from its start under a fixed context.

    Follows branches and default links only (no skip rules, no showIf).
    Stops at a terminal node, a dead end, a revisited node or ``max_steps``.
    """
    engine = FlowEngine(flow, evaluator)
    engine.set_context(context)

    path: list[str] = []
    visited: set[str] = set()
    current: str | None = flow.start_node_id

    while current is not None and len(path) < max_steps:
        if current in visited:
            logger.debug("find_flow_path: cycle at %s", current)
            break
        visited.add(current)
        path.append(current)

        result = engine.find_next_node(current)
        if not result.success or result.target_node_id is None:
            break
        current = result.target_node_id

    return path
