"""Session-side models: answers, per-question state, progress and persistence.

These records belong to the hosting session, not to the traversal core.
The engine never writes a ``QuestionState``; status transitions are the
session's responsibility.

``PersistedSession`` is the caller-owned save format.  It holds ids and
answers only (never the flow graph or manager objects), so a resume
always rebuilds managers fresh from the current flow definition.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel

QuestionStatus = Literal["pending", "current", "answered", "skipped", "hidden"]


class QuestionAnswer(BaseModel):
    """An answer recorded against a question."""

    question_id: str
    field_name: str
    value: Any = None
    answered_at: datetime
    confidence: Optional[float] = None
    source: Literal["user", "prefilled", "calculated"] = "user"


class QuestionState(BaseModel):
    """Externally-owned status of one question within a session."""

    question_id: str
    status: QuestionStatus = "pending"
    answer: Optional[QuestionAnswer] = None
    errors: List[str] = []
    visible: bool = True
    visited: bool = False
    visit_count: int = 0


class ProgressMetrics(BaseModel):
    """Completion metrics over the currently visible question set."""

    total_questions: int
    required_questions: int
    answered_questions: int
    skipped_questions: int
    # Not clamped: a negative value surfaces an inconsistent status map
    remaining_questions: int
    # 1-based position of the current question within the visible set
    current_question_position: int
    progress_percent: int
    required_progress_percent: int
    # Seconds
    estimated_time_remaining: Optional[float] = None
    current_section: Optional[str] = None


class SectionProgress(BaseModel):
    """Progress metrics scoped to one ``FlowSection``."""

    section_id: str
    total_questions: int
    answered_questions: int
    skipped_questions: int = 0
    progress_percent: int
    completed: bool


class ProgressCheckpoint(BaseModel):
    """A named snapshot of answers at a node."""

    id: str
    node_id: str
    name: str
    description: Optional[str] = None
    timestamp: datetime
    # field_name -> value
    answers_snapshot: Dict[str, Any] = {}


class FlowEvent(BaseModel):
    """Session event log entry."""

    type: Literal[
        "start",
        "question_answered",
        "question_updated",
        "navigation",
        "skip",
        "branch",
        "checkpoint",
        "complete",
        "error",
    ]
    timestamp: datetime
    node_id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class PersistedSession(BaseModel):
    """Caller-owned persistence layout for save-and-resume."""

    session_id: str
    flow_id: str
    current_node_id: Optional[str] = None
    history: List[str] = []
    # [[field_name, value], ...] in answer order
    answers: List[Tuple[str, Any]] = []
    started: bool = False
    completed: bool = False
    paused: bool = False
    started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
