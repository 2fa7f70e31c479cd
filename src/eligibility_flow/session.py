"""QuestionnaireSession — the hosting application's handle on one active flow.

The session owns everything that changes while a user fills in a
questionnaire: the navigation manager (context + history), the answers,
the per-question status map, checkpoints, timing and the event log.  The
traversal core below it never writes a status; every status transition
happens here.

One session per active questionnaire.  Sessions are plain objects created
by the caller, never module-level singletons, so several can coexist.

Save-and-resume::

    saved = session.to_persisted()            # PersistedSession (ids + answers)
    ...
    session = QuestionnaireSession.from_persisted(flow, saved)

The persisted layout never contains the flow graph or manager objects; on
resume the managers are rebuilt fresh from the current flow definition and
the saved answers are replayed into the context.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from eligibility_flow.config import FlowSettings, load_settings
from eligibility_flow.errors import FLOW_NOT_INITIALIZED, SkipLoopError
from eligibility_flow.interfaces import RuleEvaluator
from eligibility_flow.models.flow import QuestionFlow
from eligibility_flow.models.navigation import FlowValidationResult, NavigationResult
from eligibility_flow.models.question import QuestionDefinition
from eligibility_flow.models.session import (
    FlowEvent,
    PersistedSession,
    ProgressCheckpoint,
    ProgressMetrics,
    QuestionAnswer,
    QuestionState,
)
from eligibility_flow.navigation import NavigationManager
from eligibility_flow.progress import (
    CheckpointManager,
    TimeTracker,
    calculate_progress,
    is_flow_complete,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _not_initialized() -> NavigationResult:
    return NavigationResult.failure(FLOW_NOT_INITIALIZED, "Flow not initialized")


class QuestionnaireSession:
    """Stateful questionnaire session over one :class:`QuestionFlow`.

    Args:
        settings: checkpoint cap and time-estimate tuning
            (defaults to :func:`load_settings`)
        evaluator: rule interpreter for showIf/branch/skip conditions
        clock: time source in seconds for the time tracker
    """

    def __init__(
        self,
        settings: FlowSettings | None = None,
        *,
        evaluator: RuleEvaluator | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or load_settings()
        self._evaluator = evaluator
        self._clock = clock
        self._clear()

    def _clear(self) -> None:
        self.session_id: str | None = None
        self.flow: QuestionFlow | None = None
        self.current_node_id: str | None = None
        self.history: list[str] = []
        self.question_states: dict[str, QuestionState] = {}
        # question_id -> answer, most recently answered last
        self.answers: dict[str, QuestionAnswer] = {}
        self.progress: ProgressMetrics | None = None
        self.events: list[FlowEvent] = []
        self.started = False
        self.completed = False
        self.paused = False
        self.started_at: datetime | None = None
        self.updated_at: datetime | None = None
        self.completed_at: datetime | None = None

        self._navigation: NavigationManager | None = None
        self._checkpoints: CheckpointManager | None = None
        self._timer: TimeTracker | None = None
        self._entered_at: float | None = None

    # ==================================================================
    # Lifecycle
    # ==================================================================

    def start_flow(self, flow: QuestionFlow) -> None:
        """Begin a fresh run of ``flow``, discarding any previous state."""
        self._clear()
        self._attach(flow)
        self.session_id = uuid.uuid4().hex

        for node in flow.nodes.values():
            self.question_states[node.question.id] = QuestionState(question_id=node.question.id)

        start_node = flow.nodes.get(flow.start_node_id)
        if start_node is not None:
            self._mark_current(start_node.question.id)
        else:
            logger.warning("Flow %s has no start node %s", flow.id, flow.start_node_id)

        now = _utcnow()
        self.current_node_id = flow.start_node_id
        self.history = self._navigation.get_history()
        self.started = True
        self.started_at = now
        self.updated_at = now
        self._emit("start", flow.start_node_id)

        logger.info("Session %s started flow %s", self.session_id, flow.id)
        self.update_progress()

    def pause(self) -> None:
        if self._timer is not None:
            self._timer.pause()
        self.paused = True
        self._touch()

    def resume(self) -> None:
        if self._timer is not None:
            self._timer.resume()
        self.paused = False
        self._touch()

    def reset(self) -> None:
        """Drop the flow and every piece of session state."""
        logger.debug("Session %s reset", self.session_id)
        self._clear()

    def complete(self) -> None:
        """Mark the session finished; the current question counts as answered."""
        if self.current_node_id is None:
            return

        question = self._question_at(self.current_node_id)
        if question is not None:
            self._leave_forward(question.id)

        now = _utcnow()
        self.completed_at = now
        self.updated_at = now
        self._emit("complete", self.current_node_id)

        logger.info("Session %s completed flow %s", self.session_id, self.flow.id if self.flow else None)
        self.update_progress()

    # ==================================================================
    # Answers
    # ==================================================================

    def answer_question(
        self,
        question_id: str,
        field_name: str,
        value: Any,
        source: str = "user",
    ) -> QuestionAnswer:
        """Record an answer and write it into the context.

        The question's status is left as-is; it becomes ``answered`` once the
        user navigates away.
        """
        answer = QuestionAnswer(
            question_id=question_id,
            field_name=field_name,
            value=value,
            answered_at=_utcnow(),
            source=source,
        )
        # Re-insert so answer order follows call order for shared field names
        self.answers.pop(question_id, None)
        self.answers[question_id] = answer

        state = self.question_states.get(question_id)
        if state is not None:
            state.answer = answer
            state.errors = []

        if self._navigation is not None:
            self._navigation.update_context(field_name, value)

        self._touch()
        self._emit("question_answered", question_id, {"field_name": field_name, "value": value})
        self.update_progress()
        return answer

    def skip_question(self, question_id: str, reason: str | None = None) -> None:
        state = self.question_states.get(question_id)
        if state is not None:
            state.status = "skipped"

        self._touch()
        self._emit("skip", question_id, {"reason": reason})
        self.update_progress()

    def update_question(self, question_id: str, **changes: Any) -> bool:
        """Patch a question definition in this session's copy of the flow.

        Context and history are carried over to the rebuilt managers.
        Returns False when no node holds ``question_id``.
        """
        if self.flow is None:
            return False

        node_id = self._node_id_for(question_id)
        if node_id is None:
            logger.warning("Question %s not found in flow %s", question_id, self.flow.id)
            return False

        flow = self.flow.model_copy(deep=True)
        node = flow.nodes[node_id]
        node.question = node.question.model_copy(update=changes)
        flow.touch()

        context = self.answer_context()
        history = self._navigation.get_history() if self._navigation else [flow.start_node_id]
        self._attach(flow, keep_checkpoints=True)
        self._navigation.set_context(context)
        self._navigation.set_history(history)

        self._touch()
        self._emit("question_updated", question_id, {"fields": sorted(changes)})
        return True

    # ==================================================================
    # Navigation
    # ==================================================================

    def next(self) -> NavigationResult:
        """Advance along the flow.

        A terminal landing (success without target) leaves the session on
        the current node; call :meth:`complete` to finish.  Questions stepped
        over on the way are still marked ``skipped``.

        Raises:
            SkipLoopError: propagated from the navigation manager after an
                ``error`` event is recorded.
        """
        if self._navigation is None or self.current_node_id is None:
            return _not_initialized()

        try:
            result = self._navigation.navigate_forward(self.current_node_id)
        except SkipLoopError as exc:
            self._emit("error", exc.node_id, {"error": str(exc), "skipped": exc.skipped})
            raise

        if result.success:
            # Elided questions are skipped even when the walk ends at a terminal node
            for question_id in result.questions_skipped or []:
                state = self.question_states.get(question_id)
                if state is not None:
                    state.status = "skipped"
                    state.visible = False

        if result.success and result.target_node_id is not None:
            current = self._question_at(self.current_node_id)
            target = self._question_at(result.target_node_id)

            if current is not None:
                self._record_time(current.id)
                self._leave_forward(current.id)
            if target is not None:
                self._mark_current(target.id)

            self.current_node_id = result.target_node_id
            self.history = self._navigation.get_history()
            self._touch()
            self._emit("navigation", result.target_node_id, {
                "direction": "forward",
                "branch_taken": result.branch_taken,
                "skipped": result.questions_skipped,
            })
            if result.branch_taken:
                self._emit("branch", result.previous_node_id, {
                    "branch_id": result.branch_id,
                    "target_node_id": result.target_node_id,
                })
            self.update_progress()
        elif result.success and result.questions_skipped:
            self._touch()
            self.update_progress()

        return result

    def previous(self) -> NavigationResult:
        if self._navigation is None or self.current_node_id is None:
            return _not_initialized()

        result = self._navigation.navigate_backward(self.current_node_id)

        if result.success and result.target_node_id is not None:
            self._move_to(result.target_node_id)
            self.history = self._navigation.get_history()
            self._emit("navigation", result.target_node_id, {"direction": "backward"})
            self.update_progress()

        return result

    def jump_to(self, question_id: str) -> NavigationResult:
        """Detour to the node holding ``question_id`` (or a node id), ignoring conditions."""
        if self._navigation is None:
            return _not_initialized()

        node_id = self._node_id_for(question_id) or question_id
        result = self._navigation.jump_to(node_id)

        if result.success and result.target_node_id is not None:
            self._move_to(result.target_node_id)
            self.history = self._navigation.get_history()
            self._emit("navigation", result.target_node_id, {"direction": "jump"})
            self.update_progress()

        return result

    def can_go_forward(self) -> bool:
        if self._navigation is None or self.current_node_id is None:
            return False
        return self._navigation.can_go_forward(self.current_node_id)

    def can_go_back(self) -> bool:
        if self._navigation is None:
            return False
        return self._navigation.can_go_back()

    # ==================================================================
    # Queries
    # ==================================================================

    def current_question(self) -> QuestionDefinition | None:
        if self.current_node_id is None:
            return None
        return self._question_at(self.current_node_id)

    def answer_context(self) -> dict[str, Any]:
        """The ``field_name -> value`` context navigation branches on."""
        if self._navigation is not None:
            return self._navigation.get_context()
        return self._context_from_answers()

    def update_progress(self) -> ProgressMetrics | None:
        """Recompute progress and the ``completed`` flag from scratch."""
        if self.flow is None:
            return None

        context = self.answer_context()
        self.progress = calculate_progress(
            self.flow,
            self.question_states,
            context,
            self.current_node_id,
            avg_seconds_per_question=self._settings.avg_seconds_per_question,
            evaluator=self._evaluator,
        )
        self.completed = self.completed_at is not None or is_flow_complete(
            self.flow, self.question_states, context, evaluator=self._evaluator,
        )
        return self.progress

    def validate_flow(self) -> FlowValidationResult | None:
        if self._navigation is None:
            return None
        return self._navigation.engine.validate_flow()

    def elapsed_time(self) -> float:
        """Seconds spent in the session, excluding paused intervals."""
        return self._timer.get_elapsed_time() if self._timer is not None else 0.0

    def question_time(self, question_id: str) -> float:
        return self._timer.get_question_time(question_id) if self._timer is not None else 0.0

    # ==================================================================
    # Checkpoints
    # ==================================================================

    def create_checkpoint(self, name: str, description: str | None = None) -> ProgressCheckpoint | None:
        if self._checkpoints is None or self.current_node_id is None:
            return None
        checkpoint = self._checkpoints.create_checkpoint(
            self.current_node_id, name, self.answers, description,
        )
        self._emit("checkpoint", self.current_node_id, {"checkpoint_id": checkpoint.id, "name": name})
        return checkpoint

    def get_checkpoints(self) -> list[ProgressCheckpoint]:
        return self._checkpoints.get_checkpoints() if self._checkpoints is not None else []

    def restore_checkpoint(self, checkpoint_id: str) -> bool:
        """Replace answers and context with a checkpoint's snapshot.

        Answers come back as ``prefilled``; snapshot fields that no longer
        match a question in the flow are dropped.  The current node is not
        moved.
        """
        if self._checkpoints is None or self.flow is None:
            return False

        snapshot = self._checkpoints.restore_checkpoint(checkpoint_id)
        if snapshot is None:
            return False

        self.answers = self._answers_from_fields(snapshot.items(), source="prefilled")
        for question_id, state in self.question_states.items():
            state.answer = self.answers.get(question_id)
        self._navigation.set_context(self._context_from_answers())

        self._touch()
        logger.debug("Session %s restored checkpoint %s", self.session_id, checkpoint_id)
        self.update_progress()
        return True

    # ==================================================================
    # Persistence
    # ==================================================================

    def to_persisted(self) -> PersistedSession:
        if self.flow is None or self.session_id is None:
            raise ValueError("Cannot persist a session that has not started a flow")
        return PersistedSession(
            session_id=self.session_id,
            flow_id=self.flow.id,
            current_node_id=self.current_node_id,
            history=list(self.history),
            answers=[(a.field_name, a.value) for a in self.answers.values()],
            started=self.started,
            completed=self.completed,
            paused=self.paused,
            started_at=self.started_at,
            updated_at=self.updated_at,
            completed_at=self.completed_at,
        )

    @classmethod
    def from_persisted(
        cls,
        flow: QuestionFlow,
        persisted: PersistedSession,
        settings: FlowSettings | None = None,
        *,
        evaluator: RuleEvaluator | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> "QuestionnaireSession":
        """Rebuild a session from its persisted layout and the current flow.

        Raises:
            ValueError: if ``persisted`` belongs to a different flow.
        """
        if persisted.flow_id != flow.id:
            raise ValueError(
                f"Persisted session {persisted.session_id} belongs to flow "
                f"{persisted.flow_id!r}, not {flow.id!r}"
            )

        session = cls(settings, evaluator=evaluator, clock=clock)
        session._attach(flow)
        session.session_id = persisted.session_id

        session.answers = session._answers_from_fields(persisted.answers, source="user")
        session._navigation.set_context(session._context_from_answers())
        history = [node_id for node_id in persisted.history if node_id in flow.nodes]
        session._navigation.set_history(history)
        session.history = session._navigation.get_history()

        current = persisted.current_node_id
        if current is None or current not in flow.nodes:
            current = session.history[-1]
        session.current_node_id = current

        for node in flow.nodes.values():
            qid = node.question.id
            answer = session.answers.get(qid)
            session.question_states[qid] = QuestionState(
                question_id=qid,
                status="answered" if answer is not None else "pending",
                answer=answer,
            )
        for node_id in session.history:
            question = session._question_at(node_id)
            if question is not None:
                state = session.question_states[question.id]
                state.visited = True
                state.visit_count += 1
        current_question = session._question_at(current)
        if current_question is not None:
            session.question_states[current_question.id].status = "current"

        session.started = persisted.started
        session.paused = persisted.paused
        session.started_at = persisted.started_at
        session.completed_at = persisted.completed_at
        session.updated_at = _utcnow()
        if session.paused:
            session._timer.pause()

        logger.info("Session %s resumed on flow %s at %s", session.session_id, flow.id, current)
        session.update_progress()
        return session

    # ==================================================================
    # Internal helpers
    # ==================================================================

    def _attach(self, flow: QuestionFlow, keep_checkpoints: bool = False) -> None:
        """Bind ``flow`` and build fresh managers for it."""
        self.flow = flow
        self._navigation = NavigationManager(flow, self._evaluator)
        if not keep_checkpoints or self._checkpoints is None:
            self._checkpoints = CheckpointManager(self._settings.max_checkpoints)
        if self._timer is None:
            self._timer = TimeTracker(self._clock)
            self._timer.start()
            self._entered_at = self._clock()

    def _question_at(self, node_id: str) -> QuestionDefinition | None:
        node = self.flow.nodes.get(node_id) if self.flow is not None else None
        return node.question if node is not None else None

    def _node_id_for(self, question_id: str) -> str | None:
        if self.flow is None:
            return None
        for node_id, node in self.flow.nodes.items():
            if node.question.id == question_id:
                return node_id
        return None

    def _context_from_answers(self) -> dict[str, Any]:
        return {a.field_name: a.value for a in self.answers.values()}

    def _answers_from_fields(self, pairs, source: str) -> dict[str, QuestionAnswer]:
        """Map ``(field_name, value)`` pairs back onto the flow's questions."""
        by_field = {n.question.field_name: n.question.id for n in self.flow.nodes.values()}
        now = _utcnow()
        answers: dict[str, QuestionAnswer] = {}
        for field_name, value in pairs:
            question_id = by_field.get(field_name)
            if question_id is None:
                logger.debug("No question for field %s; dropping value", field_name)
                continue
            answers[question_id] = QuestionAnswer(
                question_id=question_id,
                field_name=field_name,
                value=value,
                answered_at=now,
                source=source,
            )
        return answers

    def _mark_current(self, question_id: str) -> None:
        state = self.question_states.get(question_id)
        if state is not None:
            state.status = "current"
            state.visible = True
            state.visited = True
            state.visit_count += 1

    def _leave_forward(self, question_id: str) -> None:
        state = self.question_states.get(question_id)
        if state is not None and state.status == "current":
            state.status = "answered"

    def _move_to(self, target_node_id: str) -> None:
        """Leave the current question without answering it and land on ``target_node_id``."""
        current = self._question_at(self.current_node_id) if self.current_node_id else None
        if current is not None:
            self._record_time(current.id)
            state = self.question_states.get(current.id)
            if state is not None:
                state.status = "answered" if current.id in self.answers else "pending"

        target = self._question_at(target_node_id)
        if target is not None:
            self._mark_current(target.id)

        self.current_node_id = target_node_id
        self._touch()

    def _record_time(self, question_id: str) -> None:
        if self._timer is None or self._entered_at is None or self.paused:
            return
        now = self._clock()
        self._timer.record_question_time(question_id, now - self._entered_at)
        self._entered_at = now

    def _touch(self) -> None:
        self.updated_at = _utcnow()

    def _emit(self, event_type: str, node_id: str | None, data: dict[str, Any] | None = None) -> None:
        self.events.append(FlowEvent(type=event_type, timestamp=_utcnow(), node_id=node_id, data=data))
