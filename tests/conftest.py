"""
Pytest configuration and fixtures for onboarding tests.
"""

import os
from datetime import date

import pytest

# Set test environment before importing amped modules
os.environ["AMPED_ENV"] = "development"

from onboarding.progress import ProgressTracker
from onboarding.sequencer import OnboardingSequencer
from onboarding.steps import Step
from onboarding.store import InMemorySettingsStore


class FakeClock:
    """Manually advanced clock for progress timestamps."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# One valid answer per step, used to walk the flow forward
SAMPLE_ANSWERS = {
    Step.MASCOT_INTRODUCTION: "meet",
    Step.MASCOT_NAMING: "Sparky",
    Step.GENDER_SELECTION: "female",
    Step.AGE_SELECTION: date(1990, 5, 17),
    Step.HEIGHT_STATS: {"value": 170, "unit": "cm"},
    Step.WEIGHT_STATS: {"value": 70, "unit": "kg"},
    Step.STRESS_STATS: "low",
    Step.ANXIETY_STATS: "moderate",
    Step.DIET_STATS: "high",
    Step.SMOKE_STATS: "low",
    Step.ALCOHOLIC_STATS: "low",
    Step.SOCIAL_CONNECTION_STATS: "moderate",
    Step.BLOOD_PRESSURE_STATS: "low",
    Step.MAIN_REASON_STATS: "family",
    Step.GOALS_STATS: 30,
    Step.SYNC_DEVICE_STATS: "skip",
    Step.TERMS: True,
    Step.PAYWALL: "later",
}


@pytest.fixture
def store():
    """Empty in-memory settings store."""
    return InMemorySettingsStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(store, clock):
    return ProgressTracker(store, clock=clock)


@pytest.fixture
def sequencer(store, tracker):
    """Sequencer started at the first step, saving progress to `store`."""
    seq = OnboardingSequencer(store, progress=tracker)
    seq.start()
    return seq


@pytest.fixture
def sample_answers():
    return dict(SAMPLE_ANSWERS)


@pytest.fixture
def walk_to():
    """Advance a sequencer with sample answers until it shows `target`."""

    def _walk(seq: OnboardingSequencer, target: Step, answers: dict | None = None) -> None:
        answers = {**SAMPLE_ANSWERS, **(answers or {})}
        while seq.current_step != target:
            seq.advance(answers.get(seq.current_step), step=seq.current_step)

    return _walk
