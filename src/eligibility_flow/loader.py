"""FlowStore — loads YAML flow definitions into typed ``QuestionFlow`` models.

Each ``*.yaml`` file under the flow directory holds one flow, authored with
the same camelCase keys the models expose (``startNodeId``, ``nextId``,
``showIf`` ...).  ``nodes`` is written as a list; the model keys it by id.

Usage::

    store = FlowStore()             # FLOW_DIR, else flows/ under the repo root
    store.load()                    # parse all YAML files

    flow = store.get_flow("benefits-eligibility")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from eligibility_flow.config import FlowSettings, load_settings
from eligibility_flow.flow_engine import FlowEngine
from eligibility_flow.models.flow import QuestionFlow

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------

def find_repo_root(start: Optional[Path] = None) -> Path:
    """Walk upwards from *start* to find the repo root (dir with pyproject.toml or .git).

    Falls back to cwd if no marker is found.
    """
    p = (start or Path(__file__).resolve()).parent
    for parent in [p, *p.parents]:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return Path.cwd()


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def derive_previous_links(flow: QuestionFlow) -> QuestionFlow:
    """Fill in ``previous_id`` from incoming ``next_id`` links where absent.

    When several nodes lead to the same node, the first in flow order wins.
    Explicit ``previous_id`` values are never overwritten.
    """
    for node_id, node in flow.nodes.items():
        target = flow.nodes.get(node.next_id) if node.next_id else None
        if target is not None and target.previous_id is None:
            target.previous_id = node_id
    return flow


def load_flow(path: Path | str) -> QuestionFlow:
    """Parse one flow definition file.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the file is not a YAML mapping.
        pydantic.ValidationError: if the mapping is not a valid flow.
    """
    raw = load_yaml(path)
    if not isinstance(raw, dict):
        raise ValueError(f"Flow file {path} must contain a mapping, got {type(raw).__name__}")
    return derive_previous_links(QuestionFlow.model_validate(raw))


# ---------------------------------------------------------------------------
# FlowStore
# ---------------------------------------------------------------------------

class FlowStore:
    """Loads every flow under ``flows/`` and provides lookup by flow id.

    Attributes populated after :meth:`load`:

        flows — dict[flow_id, QuestionFlow]
    """

    def __init__(
        self,
        flow_dir: str | Path | None = None,
        settings: FlowSettings | None = None,
    ) -> None:
        # Explicit argument, then FLOW_DIR, then flows/ under the repo root
        if flow_dir is None:
            flow_dir = (settings or load_settings()).flow_dir
        if flow_dir is None:
            flow_dir = find_repo_root() / "flows"
        self._base = Path(flow_dir)

        # Populated by load()
        self.flows: dict[str, QuestionFlow] = {}

    @property
    def flow_dir(self) -> Path:
        return self._base

    def load(self, validate: bool = True) -> None:
        """Parse all ``*.yaml`` files under the flow directory.

        Call this once at startup.  With ``validate`` each flow is checked
        with :meth:`FlowEngine.validate_flow`; problems are logged, never
        raised, since validation is advisory.

        Raises:
            FileNotFoundError: if the flow directory does not exist.
            ValueError: if two files declare the same flow id.
        """
        if not self._base.is_dir():
            raise FileNotFoundError(f"Missing flow directory: {self._base}")

        for path in sorted(self._base.glob("*.yaml")):
            flow = load_flow(path)
            if flow.id in self.flows:
                raise ValueError(f"Duplicate flow id {flow.id!r} in {path.name}")
            self.flows[flow.id] = flow

            if validate:
                result = FlowEngine(flow).validate_flow()
                for issue in result.errors:
                    log = logger.warning if issue.severity == "error" else logger.info
                    log("Flow %s, node %s: %s", flow.id, issue.node_id, issue.message)

        logger.info("FlowStore loaded %d flow(s) from %s", len(self.flows), self._base)

    def get_flow(self, flow_id: str) -> QuestionFlow:
        """Look up a flow by id.

        Raises:
            KeyError: if no flow with that id was loaded.
        """
        return self.flows[flow_id]

    def list_flow_ids(self) -> list[str]:
        return sorted(self.flows)
