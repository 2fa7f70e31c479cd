import pytest

from eligibility_flow.config import FlowSettings
from eligibility_flow.evaluator import ConditionEvaluator
from eligibility_flow.loader import find_repo_root

from helpers.flows import children_flow, income_flow, linear_flow


class FakeClock:
    """Manually advanced clock for TimeTracker / session timing tests."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def evaluator():
    """Fresh ConditionEvaluator for each test."""
    return ConditionEvaluator()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    """Deterministic settings independent of FLOW_* env vars."""
    return FlowSettings(max_checkpoints=3, avg_seconds_per_question=30.0)


@pytest.fixture
def four_step_flow():
    return linear_flow(["q1", "q2", "q3", "q4"])


@pytest.fixture
def branching_flow():
    return income_flow()


@pytest.fixture
def skip_flow():
    return children_flow()


@pytest.fixture(scope="session")
def flows_dir():
    return find_repo_root() / "flows"
