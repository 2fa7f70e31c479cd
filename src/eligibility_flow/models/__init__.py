"""Public model re-exports for eligibility_flow.

Consumers should import from ``eligibility_flow.models`` rather than
reaching into sub-modules directly.
"""

# --- Conditions ---
from eligibility_flow.models.condition import (
    AllOf,
    AnyOf,
    Condition,
    Constant,
    EvaluationResult,
    NotCondition,
    Predicate,
)

# --- Questions ---
from eligibility_flow.models.question import (
    ComputedText,
    LiteralText,
    QuestionDefinition,
    QuestionOption,
    QuestionText,
    TemplateText,
    render_text,
)

# --- Flow graph ---
from eligibility_flow.models.flow import (
    FlowBranch,
    FlowNode,
    FlowSection,
    QuestionFlow,
    SkipRule,
)

# --- Navigation / validation ---
from eligibility_flow.models.navigation import (
    ConditionEvaluationResult,
    FlowValidationResult,
    NavigationResult,
    ValidationIssue,
)

# --- Session ---
from eligibility_flow.models.session import (
    FlowEvent,
    PersistedSession,
    ProgressCheckpoint,
    ProgressMetrics,
    QuestionAnswer,
    QuestionState,
    QuestionStatus,
    SectionProgress,
)

__all__ = [
    # Conditions
    "AllOf",
    "AnyOf",
    "Condition",
    "Constant",
    "EvaluationResult",
    "NotCondition",
    "Predicate",
    # Questions
    "ComputedText",
    "LiteralText",
    "QuestionDefinition",
    "QuestionOption",
    "QuestionText",
    "TemplateText",
    "render_text",
    # Flow graph
    "FlowBranch",
    "FlowNode",
    "FlowSection",
    "QuestionFlow",
    "SkipRule",
    # Navigation
    "ConditionEvaluationResult",
    "FlowValidationResult",
    "NavigationResult",
    "ValidationIssue",
    # Session
    "FlowEvent",
    "PersistedSession",
    "ProgressCheckpoint",
    "ProgressMetrics",
    "QuestionAnswer",
    "QuestionState",
    "QuestionStatus",
    "SectionProgress",
]
