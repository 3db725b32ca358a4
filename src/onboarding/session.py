"""
Onboarding session bootstrap shared by the CLI and web hosts.
"""

import logging
import time
from typing import Callable

from .progress import DEFAULT_HARD_CLOSE_THRESHOLD, ClosureType, ProgressTracker
from .questions import Question
from .sequencer import OnboardingSequencer
from .steps import FIRST_STEP, Step
from .store import SettingsStore

logger = logging.getLogger(__name__)


def launch_sequencer(
    store: SettingsStore,
    questions: dict[Step, Question] | None = None,
    clock: Callable[[], float] = time.time,
    hard_close_threshold: float = DEFAULT_HARD_CLOSE_THRESHOLD,
) -> OnboardingSequencer:
    """
    Build a sequencer for an app launch.

    Soft close resumes at the saved step with its history replayed; anything
    else starts fresh at the first step.
    """
    tracker = ProgressTracker(store, clock=clock, hard_close_threshold=hard_close_threshold)
    closure = tracker.detect_closure()
    step = tracker.load(closure)
    tracker.mark_launch()

    sequencer = OnboardingSequencer(store, questions=questions, progress=tracker)
    if closure is ClosureType.SOFT and step != FIRST_STEP:
        sequencer.restore(step)
    else:
        sequencer.start()
    return sequencer
