"""
Onboarding State and Routing.

SequencerState is the navigation snapshot hosts render from. next_step() is
the routing rule: a pure function of the current step and the answers stored
so far, so replaying it over saved answers reproduces the same path.
"""

from dataclasses import dataclass, field
from typing import Callable, Mapping

from .questions import PREMIUM_USER_KEY, TERMS_ACCEPTED_KEY
from .steps import STEP_ORDER, Step, completed_steps, progress_fraction
from .store import SettingsStore

Answers = Mapping[str, str]


# =============================================================================
# Skip Rules
# =============================================================================
# A rule may only look at answers of earlier steps or at flags owned outside
# onboarding, never at the answer of the step it guards.


def _mascot_skipped(answers: Answers) -> bool:
    return answers.get(Step.MASCOT_INTRODUCTION.key) == "skip"


def _already_premium(answers: Answers) -> bool:
    return (answers.get(PREMIUM_USER_KEY) or "").strip().lower() == "true"


def _terms_already_accepted(answers: Answers) -> bool:
    return (answers.get(TERMS_ACCEPTED_KEY) or "").strip().lower() == "true"


SkipRules = dict[Step, Callable[[Answers], bool]]

SKIP_RULES: SkipRules = {
    Step.MASCOT_NAMING: _mascot_skipped,
    Step.TERMS: _terms_already_accepted,
    Step.PAYWALL: _already_premium,
}

# Keys outside the step catalog that routing reads
GATING_KEYS = (PREMIUM_USER_KEY, TERMS_ACCEPTED_KEY)


def is_skippable(step: Step) -> bool:
    """Whether any routing rule can skip this step."""
    return step in SKIP_RULES


def should_skip(step: Step, answers: Answers, rules: SkipRules | None = None) -> bool:
    rule = (SKIP_RULES if rules is None else rules).get(step)
    return bool(rule and rule(answers))


def next_step(current: Step, answers: Answers, rules: SkipRules | None = None) -> Step | None:
    """
    Next step to show after `current`, or None when the flow is finished.

    Deterministic and side-effect free.
    """
    for step in STEP_ORDER[current.index + 1:]:
        if not should_skip(step, answers, rules):
            return step
    return None


def route_from_start(
    answers: Answers,
    until: Step | None = None,
    rules: SkipRules | None = None,
) -> list[Step]:
    """Path the flow takes from the first step, stopping at `until` if reached."""
    path = [STEP_ORDER[0]]
    while path[-1] != until:
        nxt = next_step(path[-1], answers, rules)
        if nxt is None:
            break
        path.append(nxt)
    return path


def answers_from_store(store: SettingsStore) -> dict[str, str]:
    """Every stored answer routing could care about, keyed by persistence key."""
    answers = {}
    for key in [s.key for s in STEP_ORDER] + list(GATING_KEYS):
        value = store.get(key)
        if value is not None:
            answers[key] = value
    return answers


# =============================================================================
# Sequencer State
# =============================================================================


@dataclass
class SequencerState:
    """
    Navigation snapshot.

    history[-1] is the current step during forward flow. While a step is
    opened for editing from settings, current_step points at that step and
    history is left untouched.
    """
    current_step: Step = STEP_ORDER[0]
    history: list[Step] = field(default_factory=lambda: [STEP_ORDER[0]])
    completed: bool = False
    editing: bool = False

    @property
    def progress_fraction(self) -> float:
        return progress_fraction(self.current_step)

    @property
    def can_go_back(self) -> bool:
        return not self.editing and len(self.history) > 1

    def to_dict(self) -> dict:
        """Serialize for hosts and storage."""
        return {
            "current_step": self.current_step.value,
            "history": [s.value for s in self.history],
            "progress": self.progress_fraction,
            "steps_completed": completed_steps(self.current_step),
            "completed": self.completed,
            "editing": self.editing,
            "can_go_back": self.can_go_back,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SequencerState":
        """Deserialize. Unknown step ids in history are dropped."""
        history = [s for s in (Step.from_id(v) for v in data.get("history", [])) if s]
        current = Step.from_id(data.get("current_step")) or (history[-1] if history else STEP_ORDER[0])
        if not history:
            history = [current]
        return cls(
            current_step=current,
            history=history,
            completed=bool(data.get("completed", False)),
            editing=bool(data.get("editing", False)),
        )
