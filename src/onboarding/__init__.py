"""
Amped Onboarding.

Sequences the first-run questionnaire: which screen comes next, what is
persisted on the way, where a relaunch resumes, and how the circular goal
dial turns pointer drags into values.

Pieces:
- steps:     canonical step catalog and progress fraction
- questions: one answer descriptor per step (encode/decode/defaults)
- state:     routing rule (next_step) and the navigation snapshot
- sequencer: the state machine hosts drive
- selector:  circular dial geometry and drag state
- progress:  soft vs hard close detection
- store:     settings store interfaces and string codecs
"""

from .errors import (
    EditInProgressError,
    InvalidAnswerError,
    MalformedPersistedValueError,
    NoPriorStepError,
    OnboardingError,
    StaleStepError,
    TerminalStepError,
)
from .progress import ClosureType, ProgressTracker
from .questions import QUESTIONS, Question, build_question_table
from .selector import CircularValueSelector, SelectorState
from .sequencer import COMPLETE, OnboardingSequencer
from .session import launch_sequencer
from .state import SequencerState, next_step
from .steps import STEP_ORDER, Step, progress_fraction
from .store import InMemorySettingsStore, JsonFileSettingsStore, SettingsStore

__all__ = [
    "Step",
    "STEP_ORDER",
    "progress_fraction",
    "next_step",
    "SequencerState",
    "OnboardingSequencer",
    "COMPLETE",
    "launch_sequencer",
    "Question",
    "QUESTIONS",
    "build_question_table",
    "CircularValueSelector",
    "SelectorState",
    "ClosureType",
    "ProgressTracker",
    "SettingsStore",
    "InMemorySettingsStore",
    "JsonFileSettingsStore",
    "OnboardingError",
    "EditInProgressError",
    "TerminalStepError",
    "NoPriorStepError",
    "StaleStepError",
    "MalformedPersistedValueError",
    "InvalidAnswerError",
]
