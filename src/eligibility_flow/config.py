"""Runtime configuration — reads settings from environment variables.

All settings have sensible defaults for local development.  Hosting
applications typically call :func:`load_settings` once at startup and pass
the result to :func:`configure_logging` and to each
:class:`~eligibility_flow.session.QuestionnaireSession` they create.
"""

import logging
import os
from dataclasses import dataclass

from eligibility_flow.constants import (
    DEFAULT_AVG_SECONDS_PER_QUESTION,
    DEFAULT_MAX_CHECKPOINTS,
)


@dataclass(frozen=True)
class FlowSettings:
    """Immutable questionnaire configuration read from environment at startup."""

    # Directory holding *.yaml flow definitions (None → FlowStore default,
    # which is flows/ under the repo root)
    flow_dir: str | None = None

    # Logging
    log_level: str = "INFO"

    # Checkpoints kept per session before FIFO eviction
    max_checkpoints: int = DEFAULT_MAX_CHECKPOINTS

    # Linear time estimate used by progress metrics
    avg_seconds_per_question: float = DEFAULT_AVG_SECONDS_PER_QUESTION


def load_settings() -> FlowSettings:
    """Build settings from ``FLOW_*`` environment variables."""
    return FlowSettings(
        flow_dir=os.getenv("FLOW_DIR") or None,
        log_level=os.getenv("FLOW_LOG_LEVEL", "INFO").upper(),
        max_checkpoints=int(os.getenv("FLOW_MAX_CHECKPOINTS", str(DEFAULT_MAX_CHECKPOINTS))),
        avg_seconds_per_question=float(
            os.getenv("FLOW_AVG_SECONDS_PER_QUESTION", str(DEFAULT_AVG_SECONDS_PER_QUESTION))
        ),
    )


def configure_logging(settings: FlowSettings | None = None) -> None:
    """Install a root logging handler at the configured level."""
    if settings is None:
        settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s — %(message)s",
    )
