"""Graph export for flow inspection.

Produces Cytoscape.js-style element lists (``{"data": {...}}``) so a flow
can be drawn and drilled into by a visualiser.
"""

from __future__ import annotations

from typing import Any, Dict, List

from eligibility_flow.models.flow import QuestionFlow
from eligibility_flow.models.question import LiteralText, QuestionDefinition, TemplateText


def _label(question: QuestionDefinition) -> str:
    # Computed text needs a live context, so fall back to the id
    if isinstance(question.text, LiteralText):
        return question.text.value
    if isinstance(question.text, TemplateText):
        return question.text.template
    return question.id


def build_flow_graph(flow: QuestionFlow) -> Dict[str, Any]:
    """Build ``{"nodes": [...], "edges": [...]}`` for a flow.

    Default links are labelled ``"next"``; branches carry their id as the
    label plus their priority.  Edges to missing nodes are kept so dangling
    links show up in the drawing.
    """
    nodes: List[Dict[str, Any]] = []
    edges: List[Dict[str, Any]] = []

    for node_id, node in flow.nodes.items():
        question = node.question
        data = {
            "id": node_id,
            "label": _label(question),
            "question_id": question.id,
            "field": question.field_name,
            "input_type": question.input_type,
            "required": question.required,
            "terminal": node.is_terminal,
            "start": node_id == flow.start_node_id,
            "conditional": question.show_if is not None,
        }
        if question.options:
            data["options"] = [o.model_dump() for o in question.options]
        nodes.append({"data": data})

    for node_id, node in flow.nodes.items():
        if node.next_id:
            edges.append({"data": {
                "id": f"{node_id}->{node.next_id}",
                "source": node_id,
                "target": node.next_id,
                "label": "next",
            }})
        for branch in node.branches:
            edges.append({"data": {
                "id": f"{node_id}->{branch.target_id}#{branch.id}",
                "source": node_id,
                "target": branch.target_id,
                "label": branch.id,
                "priority": branch.priority,
                "description": branch.description,
            }})

    return {"nodes": nodes, "edges": edges}
