"""Flow graph models: nodes, branches, sections, skip rules and the flow itself.

A flow is an arena: ``nodes`` maps stable ids to ``FlowNode`` records and
every link (``next_id``, ``previous_id``, branch ``target_id``) is expressed
as an id.  Cycles in the graph are therefore just ids pointing back, with no
ownership issues.  Link integrity is *not* enforced here; call
``FlowEngine.validate_flow()`` at load time.

Branches are kept in declaration order; the engine sorts by priority at
traversal time so equal-priority branches resolve by that order.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .condition import Condition
from .question import QuestionDefinition


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FlowBranch(BaseModel):
    """A prioritized conditional edge overriding the node's default link.

    Higher ``priority`` is evaluated first.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: str
    condition: Condition
    target_id: str
    description: Optional[str] = None
    priority: int = 0


class FlowNode(BaseModel):
    """One question's position in the flow, with its outgoing links."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: str
    question: QuestionDefinition
    next_id: Optional[str] = None
    previous_id: Optional[str] = None
    branches: List[FlowBranch] = []
    is_terminal: bool = False
    metadata: Dict[str, Any] = {}


class SkipRule(BaseModel):
    """Removes specific questions from the active path while its condition holds.

    Skip rules never alter the graph; they only make forward navigation
    step over the listed question ids.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: str
    question_ids: List[str]
    condition: Condition
    description: Optional[str] = None
    priority: int = 0


class FlowSection(BaseModel):
    """A named group of questions for section-level progress."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: str
    name: str
    description: Optional[str] = None
    question_ids: List[str] = []
    order: int = 0
    required: bool = False


class QuestionFlow(BaseModel):
    """The directed graph of questions for one questionnaire."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: str
    name: str = ""
    description: str = ""
    version: str = "1.0.0"
    start_node_id: str
    nodes: Dict[str, FlowNode] = {}
    skip_rules: List[SkipRule] = []
    sections: List[FlowSection] = []
    allow_save_and_resume: bool = True
    metadata: Dict[str, Any] = {}
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="before")
    @classmethod
    def _key_nodes_by_id(cls, data: Any) -> Any:
        """Accept ``nodes`` as a list (as authored in YAML) and key it by id.

        Duplicate ids are rejected; a dict whose key disagrees with the
        node's own id is rejected too.
        """
        if not isinstance(data, dict):
            return data
        raw_nodes = data.get("nodes")
        if isinstance(raw_nodes, list):
            keyed: Dict[str, Any] = {}
            for raw in raw_nodes:
                node_id = raw.id if isinstance(raw, FlowNode) else raw.get("id")
                if node_id in keyed:
                    raise ValueError(f"Duplicate node id: {node_id!r}")
                keyed[node_id] = raw
            data = {**data, "nodes": keyed}
        elif isinstance(raw_nodes, dict):
            for key, raw in raw_nodes.items():
                node_id = raw.id if isinstance(raw, FlowNode) else raw.get("id", key)
                if node_id != key:
                    raise ValueError(f"Node key {key!r} does not match node id {node_id!r}")
        return data

    def touch(self) -> None:
        """Bump ``updated_at`` after an in-place mutation."""
        self.updated_at = _utcnow()
