"""eligibility_flow — Questionnaire traversal and navigation core for eligibility screening.

Public API:
    QuestionnaireSession — stateful session: answers, statuses, navigation, checkpoints
    FlowEngine           — stateless traversal: branches, links, visibility, validation
    NavigationManager    — history-aware forward/backward/jump with skip rules
    SkipLogicManager     — computes which questions skip rules remove
    FlowStore            — loads YAML flow definitions into typed models
    ConditionEvaluator   — default interpreter for showIf/branch/skip conditions

Progress:
    calculate_progress   — completion metrics over the visible question set
    is_flow_complete     — completion check (required-only or strict)
    CheckpointManager    — FIFO-capped answer snapshots
    TimeTracker          — pause-aware elapsed time

Interfaces:
    RuleEvaluator        — ABC for pluggable condition interpreters

Errors:
    SkipLoopError        — raised when skip logic elides more nodes than exist
"""

from eligibility_flow.evaluator import ConditionEvaluator, parse_condition
from eligibility_flow.errors import SkipLoopError
from eligibility_flow.flow_engine import (
    FlowEngine,
    add_branch,
    add_node_to_flow,
    create_flow,
    create_flow_node,
    link_nodes,
)
from eligibility_flow.graph import build_flow_graph
from eligibility_flow.interfaces import RuleEvaluator
from eligibility_flow.loader import FlowStore, load_flow
from eligibility_flow.models import (
    FlowBranch,
    FlowNode,
    FlowSection,
    NavigationResult,
    ProgressMetrics,
    QuestionDefinition,
    QuestionFlow,
    SkipRule,
)
from eligibility_flow.navigation import (
    NavigationManager,
    SkipLogicManager,
    evaluate_branches,
    find_flow_path,
)
from eligibility_flow.progress import (
    CheckpointManager,
    TimeTracker,
    calculate_all_sections_progress,
    calculate_completion_percentage,
    calculate_progress,
    calculate_section_progress,
    estimate_time_remaining,
    get_incomplete_required_questions,
    is_flow_complete,
)
from eligibility_flow.session import QuestionnaireSession

__all__ = [
    # Session & store
    "QuestionnaireSession",
    "FlowStore",
    "load_flow",
    # Traversal
    "FlowEngine",
    "NavigationManager",
    "SkipLogicManager",
    "evaluate_branches",
    "find_flow_path",
    "build_flow_graph",
    # Builders
    "create_flow",
    "create_flow_node",
    "add_node_to_flow",
    "link_nodes",
    "add_branch",
    # Conditions
    "RuleEvaluator",
    "ConditionEvaluator",
    "parse_condition",
    # Progress
    "calculate_progress",
    "calculate_completion_percentage",
    "calculate_section_progress",
    "calculate_all_sections_progress",
    "estimate_time_remaining",
    "get_incomplete_required_questions",
    "is_flow_complete",
    "CheckpointManager",
    "TimeTracker",
    # Models
    "FlowBranch",
    "FlowNode",
    "FlowSection",
    "NavigationResult",
    "ProgressMetrics",
    "QuestionDefinition",
    "QuestionFlow",
    "SkipRule",
    # Errors
    "SkipLoopError",
]
