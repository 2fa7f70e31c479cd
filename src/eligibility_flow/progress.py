"""Progress tracking — completion metrics, checkpoints and time tracking.

Progress is a pure function of three inputs:

  - the flow (which questions exist, which are required)
  - the answer context (which questions are currently visible)
  - a per-question status map owned by the caller

Metrics are recomputed on every call and never cached across answers,
because any answer can change which questions are visible.

The status map may hold ``QuestionState`` records or bare status strings
(``"answered"``, ``"skipped"``, ...) keyed by question id.
"""

from __future__ import annotations

import copy
import logging
import math
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from eligibility_flow.constants import (
    DEFAULT_AVG_SECONDS_PER_QUESTION,
    DEFAULT_MAX_CHECKPOINTS,
    OPEN_STATUSES,
)
from eligibility_flow.flow_engine import FlowEngine
from eligibility_flow.interfaces import RuleEvaluator
from eligibility_flow.models.flow import FlowSection, QuestionFlow
from eligibility_flow.models.question import QuestionDefinition
from eligibility_flow.models.session import (
    ProgressCheckpoint,
    ProgressMetrics,
    QuestionAnswer,
    QuestionState,
    SectionProgress,
)

logger = logging.getLogger(__name__)

StatusMap = Mapping[str, "QuestionState | str"]


def _status_of(states: StatusMap, question_id: str) -> str | None:
    """Read a status from a map of QuestionState records or plain strings."""
    state = states.get(question_id)
    if state is None:
        return None
    if isinstance(state, QuestionState):
        return state.status
    return str(state)


def _round_percent(numerator: int, denominator: int) -> int:
    """Round half up, like the UI's percentage display."""
    return int(math.floor(numerator * 100 / denominator + 0.5))


def _visible_questions(
    flow: QuestionFlow,
    context: Mapping[str, Any] | None,
    evaluator: RuleEvaluator | None,
) -> list[QuestionDefinition]:
    engine = FlowEngine(flow, evaluator)
    engine.set_context(context or {})
    return engine.get_visible_questions()


# ======================================================================
# Progress calculator
# ======================================================================


def calculate_progress(
    flow: QuestionFlow,
    question_states: StatusMap,
    context: Mapping[str, Any],
    current_node_id: str | None = None,
    *,
    avg_seconds_per_question: float = DEFAULT_AVG_SECONDS_PER_QUESTION,
    evaluator: RuleEvaluator | None = None,
) -> ProgressMetrics:
    """Compute completion metrics over the currently visible questions.

    - ``progress_percent`` is 0 when nothing is visible.
    - ``required_progress_percent`` is 100 when no visible question is
      required (vacuously complete).
    - ``remaining_questions`` is not clamped at zero.
    """
    visible = _visible_questions(flow, context, evaluator)
    total = len(visible)
    required = sum(1 for q in visible if q.required)

    answered = answered_required = skipped = 0
    for question in visible:
        status = _status_of(question_states, question.id)
        if status == "answered":
            answered += 1
            if question.required:
                answered_required += 1
        elif status == "skipped":
            skipped += 1

    remaining = total - answered - skipped

    # Position of the current question within the visible set (1-based)
    position = min(answered + 1, total)
    current_question_id: str | None = None
    if current_node_id is not None and current_node_id in flow.nodes:
        current_question_id = flow.nodes[current_node_id].question.id
        visible_ids = [q.id for q in visible]
        if current_question_id in visible_ids:
            position = visible_ids.index(current_question_id) + 1

    current_section = None
    if current_question_id is not None:
        for section in sorted(flow.sections, key=lambda s: s.order):
            if current_question_id in section.question_ids:
                current_section = section.id
                break

    return ProgressMetrics(
        total_questions=total,
        required_questions=required,
        answered_questions=answered,
        skipped_questions=skipped,
        remaining_questions=remaining,
        current_question_position=position,
        progress_percent=_round_percent(answered, total) if total > 0 else 0,
        required_progress_percent=(
            _round_percent(answered_required, required) if required > 0 else 100
        ),
        estimated_time_remaining=remaining * avg_seconds_per_question,
        current_section=current_section,
    )


def estimate_time_remaining(
    progress: ProgressMetrics,
    average_time_per_question: float = DEFAULT_AVG_SECONDS_PER_QUESTION,
) -> float:
    """Linear estimate: remaining questions × seconds per question."""
    return progress.remaining_questions * average_time_per_question


def calculate_completion_percentage(answered_questions: int, total_questions: int) -> int:
    """Percentage 0-100; an empty questionnaire counts as complete."""
    if total_questions == 0:
        return 100
    return _round_percent(answered_questions, total_questions)


# ======================================================================
# Completion checks
# ======================================================================


def is_flow_complete(
    flow: QuestionFlow,
    question_states: StatusMap,
    context: Mapping[str, Any] | None = None,
    require_all_required: bool = True,
    *,
    evaluator: RuleEvaluator | None = None,
) -> bool:
    """Decide whether the questionnaire is complete.

    With ``require_all_required`` every visible required question must be
    ``answered``.  Otherwise no visible question may still be ``pending`` or
    ``current``.
    """
    visible = _visible_questions(flow, context, evaluator)

    if require_all_required:
        return all(
            _status_of(question_states, q.id) == "answered"
            for q in visible
            if q.required
        )

    return not any(_status_of(question_states, q.id) in OPEN_STATUSES for q in visible)


def get_incomplete_required_questions(
    flow: QuestionFlow,
    question_states: StatusMap,
    context: Mapping[str, Any],
    *,
    evaluator: RuleEvaluator | None = None,
) -> list[QuestionDefinition]:
    """Visible required questions whose status is not ``answered``."""
    return [
        q
        for q in _visible_questions(flow, context, evaluator)
        if q.required and _status_of(question_states, q.id) != "answered"
    ]


# ======================================================================
# Section progress
# ======================================================================


def calculate_section_progress(
    section: FlowSection,
    question_states: StatusMap,
    flow: QuestionFlow | None = None,
    context: Mapping[str, Any] | None = None,
    *,
    evaluator: RuleEvaluator | None = None,
) -> SectionProgress:
    """Progress scoped to a section's ``question_ids``.

    When ``flow`` is given, only questions visible under ``context`` count;
    otherwise every listed id counts.  An empty section is 100% complete.
    """
    question_ids = list(section.question_ids)
    if flow is not None:
        visible_ids = {q.id for q in _visible_questions(flow, context, evaluator)}
        question_ids = [qid for qid in question_ids if qid in visible_ids]

    total = len(question_ids)
    answered = sum(1 for qid in question_ids if _status_of(question_states, qid) == "answered")
    skipped = sum(1 for qid in question_ids if _status_of(question_states, qid) == "skipped")

    return SectionProgress(
        section_id=section.id,
        total_questions=total,
        answered_questions=answered,
        skipped_questions=skipped,
        progress_percent=_round_percent(answered, total) if total > 0 else 100,
        completed=answered == total,
    )


def calculate_all_sections_progress(
    sections: Iterable[FlowSection],
    question_states: StatusMap,
    flow: QuestionFlow | None = None,
    context: Mapping[str, Any] | None = None,
    *,
    evaluator: RuleEvaluator | None = None,
) -> list[SectionProgress]:
    return [
        calculate_section_progress(s, question_states, flow, context, evaluator=evaluator)
        for s in sections
    ]


# ======================================================================
# Checkpoints
# ======================================================================


class CheckpointManager:
    """FIFO-capped list of answer snapshots.

    Args:
        max_checkpoints: how many checkpoints to keep; the oldest are
            evicted first once the cap is exceeded
    """

    def __init__(self, max_checkpoints: int = DEFAULT_MAX_CHECKPOINTS) -> None:
        self._checkpoints: list[ProgressCheckpoint] = []
        self._max_checkpoints = max_checkpoints

    @property
    def max_checkpoints(self) -> int:
        return self._max_checkpoints

    def create_checkpoint(
        self,
        node_id: str,
        name: str,
        answers: Mapping[str, QuestionAnswer] | Iterable[QuestionAnswer],
        description: str | None = None,
    ) -> ProgressCheckpoint:
        """Snapshot ``answers`` as ``field_name -> value`` at ``node_id``."""
        records = answers.values() if isinstance(answers, Mapping) else answers
        snapshot = {a.field_name: copy.deepcopy(a.value) for a in records}

        checkpoint = ProgressCheckpoint(
            id=f"checkpoint-{uuid.uuid4().hex[:12]}",
            node_id=node_id,
            name=name,
            description=description,
            timestamp=datetime.now(timezone.utc),
            answers_snapshot=snapshot,
        )
        self._checkpoints.append(checkpoint)
        self._trim()
        return checkpoint

    def get_checkpoints(self) -> list[ProgressCheckpoint]:
        return list(self._checkpoints)

    def get_checkpoint(self, checkpoint_id: str) -> ProgressCheckpoint | None:
        return next((c for c in self._checkpoints if c.id == checkpoint_id), None)

    def get_latest_checkpoint(self) -> ProgressCheckpoint | None:
        return self._checkpoints[-1] if self._checkpoints else None

    def restore_checkpoint(self, checkpoint_id: str) -> dict[str, Any] | None:
        """Return a copy of the checkpoint's answers, or None if unknown."""
        checkpoint = self.get_checkpoint(checkpoint_id)
        if checkpoint is None:
            return None
        return copy.deepcopy(checkpoint.answers_snapshot)

    def clear_checkpoints(self) -> None:
        self._checkpoints = []

    def set_max_checkpoints(self, max_checkpoints: int) -> None:
        self._max_checkpoints = max_checkpoints
        self._trim()

    def _trim(self) -> None:
        if len(self._checkpoints) > self._max_checkpoints:
            evicted = len(self._checkpoints) - self._max_checkpoints
            self._checkpoints = self._checkpoints[evicted:]
            logger.debug("Evicted %d oldest checkpoint(s)", evicted)


# ======================================================================
# Time tracking
# ======================================================================


class TimeTracker:
    """Elapsed-time tracker that excludes paused intervals.

    All durations are in seconds.

    Args:
        clock: time source returning seconds (defaults to ``time.monotonic``)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._start_time: float | None = None
        self._paused_time: float | None = None
        self._total_paused_duration = 0.0
        self._question_times: dict[str, float] = {}

    @property
    def is_paused(self) -> bool:
        return self._paused_time is not None

    def start(self) -> None:
        self._start_time = self._clock()

    def pause(self) -> None:
        # A second pause must not move the pause start
        if self._paused_time is None:
            self._paused_time = self._clock()

    def resume(self) -> None:
        if self._paused_time is not None:
            self._total_paused_duration += self._clock() - self._paused_time
            self._paused_time = None

    def record_question_time(self, question_id: str, duration: float) -> None:
        """Add ``duration`` to the question's total (revisits accumulate)."""
        self._question_times[question_id] = self._question_times.get(question_id, 0.0) + duration

    def get_elapsed_time(self) -> float:
        if self._start_time is None:
            return 0.0
        now = self._paused_time if self._paused_time is not None else self._clock()
        return now - self._start_time - self._total_paused_duration

    def get_average_question_time(self) -> float:
        if not self._question_times:
            return 0.0
        return sum(self._question_times.values()) / len(self._question_times)

    def get_question_time(self, question_id: str) -> float:
        return self._question_times.get(question_id, 0.0)

    def get_all_question_times(self) -> dict[str, float]:
        return dict(self._question_times)

    def reset(self) -> None:
        self._start_time = None
        self._paused_time = None
        self._total_paused_duration = 0.0
        self._question_times.clear()
