"""NavigationManager / SkipLogicManager tests.

History contract (outside a transition):
    history[0]  == flow.start_node_id
    history[-1] == the node currently shown

Backward resolution order:
    1. current is the last history entry      → pop
    2. current occurs earlier in history      → truncate there
    3. static previous_id link                → fall back to the graph
"""

import pytest

from eligibility_flow.errors import NO_PREVIOUS_NODE, NODE_NOT_FOUND, SkipLoopError
from eligibility_flow.models import QuestionFlow, SkipRule
from eligibility_flow.navigation import (
    NavigationManager,
    SkipLogicManager,
    evaluate_branches,
    find_flow_path,
)

from helpers.flows import branch, linear_flow, make_node, make_question


# =====================================================================
# Skip logic
# =====================================================================


class TestSkipLogicManager:
    def test_flow_rules_loaded(self, skip_flow):
        manager = SkipLogicManager(skip_flow)
        assert [r.id for r in manager.get_skip_rules()] == ["no-children"]

    def test_questions_to_skip(self, skip_flow):
        manager = SkipLogicManager(skip_flow)
        assert manager.get_questions_to_skip({"hasChildren": False}) == ["q2"]
        assert manager.get_questions_to_skip({"hasChildren": True}) == []
        assert manager.should_skip_question("q2", {"hasChildren": False}) is True
        assert manager.should_skip_question("q3", {"hasChildren": False}) is False

    def test_rules_sorted_by_priority_and_union_deduplicated(self, skip_flow):
        manager = SkipLogicManager(skip_flow)
        manager.add_skip_rule(SkipRule(
            id="always", question_ids=["q3", "q2"], condition={"const": True}, priority=5,
        ))
        assert [r.id for r in manager.get_skip_rules()] == ["always", "no-children"]
        assert manager.get_questions_to_skip({"hasChildren": False}) == ["q3", "q2"]

    def test_remove_skip_rule(self, skip_flow):
        manager = SkipLogicManager(skip_flow)
        assert manager.remove_skip_rule("no-children") is True
        assert manager.remove_skip_rule("no-children") is False
        assert manager.get_questions_to_skip({"hasChildren": False}) == []


# =====================================================================
# Forward
# =====================================================================


class TestNavigateForward:
    def test_skip_scenario(self, skip_flow):
        """hasChildren=false: forward(q1) lands q3 with q2 reported skipped."""
        nav = NavigationManager(skip_flow)
        nav.update_context("hasChildren", False)

        result = nav.navigate_forward("q1")
        assert result.success is True
        assert result.target_node_id == "q3"
        assert result.questions_skipped == ["q2"]
        assert nav.get_history() == ["q1", "q3"]

    def test_no_skip_signal_when_nothing_skipped(self, skip_flow):
        nav = NavigationManager(skip_flow)
        nav.update_context("hasChildren", True)
        result = nav.navigate_forward("q1")
        assert result.target_node_id == "q2"
        assert result.questions_skipped is None

    def test_hidden_questions_are_stepped_over(self):
        flow = linear_flow(["a", "b", "c"], questions={
            "b": make_question("b", show_if={"field": "a", "value": "yes"}),
        })
        nav = NavigationManager(flow)
        nav.set_context({"a": "no"})
        result = nav.navigate_forward("a")
        assert result.target_node_id == "c"
        assert result.questions_skipped == ["b"]

    def test_skip_set_recomputed_each_call(self, skip_flow):
        nav = NavigationManager(skip_flow)
        nav.update_context("hasChildren", False)
        assert nav.navigate_forward("q1").target_node_id == "q3"

        nav.clear_history()
        nav.update_context("hasChildren", True)
        assert nav.navigate_forward("q1").target_node_id == "q2"

    def test_skipping_onto_terminal_finishes(self):
        flow = linear_flow(["a", "b"], questions={
            "b": make_question("b", show_if={"const": False}),
        })
        nav = NavigationManager(flow)
        result = nav.navigate_forward("a")
        assert result.success is True
        assert result.target_node_id is None
        assert result.questions_skipped == ["b"]

    def test_terminal_landing_leaves_history(self, four_step_flow):
        nav = NavigationManager(four_step_flow)
        nav.set_history(["q1", "q2", "q3", "q4"])
        result = nav.navigate_forward("q4")
        assert result.is_terminal
        assert nav.get_history() == ["q1", "q2", "q3", "q4"]

    def test_dangling_target_is_node_not_found(self):
        flow = QuestionFlow(id="f", start_node_id="a", nodes=[make_node("a", "ghost")])
        nav = NavigationManager(flow)
        result = nav.navigate_forward("a")
        assert result.success is False
        assert result.error_code == NODE_NOT_FOUND
        assert nav.get_history() == ["a"]

    def test_branch_result_carries_branch_id(self, branching_flow):
        nav = NavigationManager(branching_flow)
        nav.navigate_forward("start")
        nav.update_context("income", 6000)
        result = nav.navigate_forward("income")
        assert result.branch_taken is True
        assert result.branch_id == "high-income"
        assert result.target_node_id == "high"
        assert result.previous_node_id == "income"
        assert nav.get_history() == ["start", "income", "high"]

    def test_skip_loop_raises(self):
        """A cycle whose every node is skipped trips the iteration cap."""
        flow = QuestionFlow(
            id="loop",
            start_node_id="a",
            nodes=[make_node("a", "b"), make_node("b", "c"), make_node("c", "b")],
            skip_rules=[SkipRule(id="all", question_ids=["b", "c"], condition={"const": True})],
        )
        nav = NavigationManager(flow)
        with pytest.raises(SkipLoopError) as excinfo:
            nav.navigate_forward("a")
        assert excinfo.value.node_id == "a"
        assert excinfo.value.limit == 3
        assert len(excinfo.value.skipped) == 4
        assert isinstance(excinfo.value, RuntimeError)


# =====================================================================
# Backward
# =====================================================================


class TestNavigateBackward:
    def test_three_forward_three_back(self, four_step_flow):
        nav = NavigationManager(four_step_flow)
        current = "q1"
        for expected in ("q2", "q3", "q4"):
            result = nav.navigate_forward(current)
            assert result.target_node_id == expected
            current = result.target_node_id

        visited = []
        for _ in range(3):
            result = nav.navigate_backward(current)
            assert result.success is True
            current = result.target_node_id
            visited.append(current)

        assert visited == ["q3", "q2", "q1"]
        assert nav.get_history() == ["q1"]

    def test_round_trip_keeps_history_length(self, four_step_flow):
        nav = NavigationManager(four_step_flow)
        nav.navigate_forward("q1")
        before = len(nav.get_history())

        forward = nav.navigate_forward("q2")
        back = nav.navigate_backward(forward.target_node_id)
        assert back.target_node_id == "q2"
        assert len(nav.get_history()) == before

    def test_backward_replays_branch_path(self, branching_flow):
        """Back from 'end' via the high branch returns to 'high', not the static link."""
        nav = NavigationManager(branching_flow)
        nav.set_context({"income": 6000})
        nav.navigate_forward("start")
        nav.navigate_forward("income")
        nav.navigate_forward("high")
        result = nav.navigate_backward("end")
        assert result.target_node_id == "high"

    def test_backward_returns_over_skipped_questions(self, skip_flow):
        nav = NavigationManager(skip_flow)
        nav.update_context("hasChildren", False)
        nav.navigate_forward("q1")
        result = nav.navigate_backward("q3")
        assert result.target_node_id == "q1"

    def test_truncates_when_caller_drifted(self, four_step_flow):
        nav = NavigationManager(four_step_flow)
        nav.set_history(["q1", "q2", "q3", "q4"])
        result = nav.navigate_backward("q3")
        assert result.target_node_id == "q2"
        assert nav.get_history() == ["q1", "q2"]

    def test_falls_back_to_static_link(self, four_step_flow):
        nav = NavigationManager(four_step_flow)
        result = nav.navigate_backward("q3")
        assert result.success is True
        assert result.target_node_id == "q2"
        assert nav.get_history() == ["q1"]

    def test_at_start_fails(self, four_step_flow):
        nav = NavigationManager(four_step_flow)
        result = nav.navigate_backward("q1")
        assert result.success is False
        assert result.error_code == NO_PREVIOUS_NODE
        assert nav.can_go_back() is False

    def test_unknown_node(self, four_step_flow):
        result = NavigationManager(four_step_flow).navigate_backward("zzz")
        assert result.error_code == NODE_NOT_FOUND


# =====================================================================
# Jump / history management
# =====================================================================


class TestJumpAndHistory:
    def test_jump_appends_without_trimming(self, four_step_flow):
        nav = NavigationManager(four_step_flow)
        nav.navigate_forward("q1")
        result = nav.jump_to("q4")
        assert result.success is True
        assert nav.get_history() == ["q1", "q2", "q4"]

        back = nav.navigate_backward("q4")
        assert back.target_node_id == "q2"

    def test_jump_to_unknown_leaves_history(self, four_step_flow):
        nav = NavigationManager(four_step_flow)
        result = nav.jump_to("nope")
        assert result.error_code == NODE_NOT_FOUND
        assert nav.get_history() == ["q1"]

    def test_set_history_empty_reseeds_start(self, four_step_flow):
        nav = NavigationManager(four_step_flow)
        nav.set_history([])
        assert nav.get_history() == ["q1"]

    def test_get_history_is_a_copy(self, four_step_flow):
        nav = NavigationManager(four_step_flow)
        nav.get_history().append("q9")
        assert nav.get_history() == ["q1"]

    def test_can_go_forward(self, four_step_flow):
        nav = NavigationManager(four_step_flow)
        assert nav.can_go_forward("q1") is True
        assert nav.can_go_forward("q4") is False


# =====================================================================
# Module helpers
# =====================================================================


class TestHelpers:
    def test_evaluate_branches(self, branching_flow):
        node = branching_flow.nodes["income"]
        assert evaluate_branches(node, {"income": 6000}).id == "high-income"
        assert evaluate_branches(node, {"income": 100}) is None
        assert evaluate_branches(branching_flow.nodes["start"], {}) is None

    def test_find_flow_path(self, branching_flow):
        assert find_flow_path(branching_flow, {"income": 6000}) == ["start", "income", "high", "end"]
        assert find_flow_path(branching_flow, {"income": 10}) == ["start", "income", "end"]

    def test_find_flow_path_stops_on_cycle(self):
        flow = QuestionFlow(id="cyc", start_node_id="a", nodes=[
            make_node("a", "b"), make_node("b", "a"),
        ])
        assert find_flow_path(flow, {}) == ["a", "b"]

    def test_find_flow_path_priority_branch(self):
        flow = QuestionFlow(id="f", start_node_id="a", nodes=[
            make_node("a", "b", branches=[branch("go-c", "c", {"const": True})]),
            make_node("b", terminal=True),
            make_node("c", terminal=True),
        ])
        assert find_flow_path(flow, {}) == ["a", "c"]
