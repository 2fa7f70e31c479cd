"""Questionnaire constants shared across the package.

These values are referenced by the session, progress calculator and
checkpoint manager.  Several can be overridden via environment variables so
that deployments can tune estimates without code changes.
"""

import os

# Seconds assumed per unanswered question when estimating time remaining.
# Overridable via FLOW_AVG_SECONDS_PER_QUESTION env var.
DEFAULT_AVG_SECONDS_PER_QUESTION = float(os.getenv("FLOW_AVG_SECONDS_PER_QUESTION", "30"))

# Maximum number of checkpoints kept per session (oldest evicted first).
# Overridable via FLOW_MAX_CHECKPOINTS env var.
DEFAULT_MAX_CHECKPOINTS = int(os.getenv("FLOW_MAX_CHECKPOINTS", "50"))

# Statuses that mean "the user still has to deal with this question".
OPEN_STATUSES: set[str] = {"pending", "current"}
