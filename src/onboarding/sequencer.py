"""
Onboarding Sequencer.

Owns which step is active and mediates every transition:
- advance: persist the current step's answer, then move to next_step()
- retreat: pop history, never writes anything
- resume_for_editing: open a step from settings, pre-seeded from stored values
- restore: rebuild history for a saved step by replaying the routing rule

Renderers subscribe for state-changed notifications; the sequencer itself
never renders.
"""

import logging
from enum import Enum
from typing import Any, Callable

from .errors import (
    EditInProgressError,
    NoPriorStepError,
    OnboardingError,
    StaleStepError,
    TerminalStepError,
)
from .progress import ProgressTracker
from .questions import QUESTIONS, DialQuestion, InfoQuestion, Question
from .selector import CircularValueSelector
from .state import SequencerState, SkipRules, answers_from_store, next_step, route_from_start
from .steps import FIRST_STEP, LAST_STEP, Step
from .store import AsyncSettingsStore, SettingsStore

logger = logging.getLogger(__name__)


class Completion(Enum):
    """Terminal signal returned by advance() when no step remains."""
    COMPLETE = "complete"


COMPLETE = Completion.COMPLETE

StateListener = Callable[[SequencerState], None]


class OnboardingSequencer:
    """
    Step state machine for the onboarding flow.

    The settings store is passed in explicitly. An optional ProgressTracker
    records the current step after every transition.
    """

    def __init__(
        self,
        store: SettingsStore | AsyncSettingsStore,
        questions: dict[Step, Question] | None = None,
        progress: ProgressTracker | None = None,
        skip_rules: SkipRules | None = None,
    ):
        self.store = store
        self.questions = questions or QUESTIONS
        self.progress = progress
        self.skip_rules = skip_rules
        self._state = SequencerState()
        self._listeners: list[StateListener] = []
        self._active_input: Any = None
        self._advancing: Step | None = None

    # =========================================================================
    # State
    # =========================================================================

    @property
    def current_step(self) -> Step:
        return self._state.current_step

    @property
    def history(self) -> list[Step]:
        return list(self._state.history)

    @property
    def progress_fraction(self) -> float:
        return self._state.progress_fraction

    @property
    def is_complete(self) -> bool:
        return self._state.completed

    @property
    def is_editing(self) -> bool:
        return self._state.editing

    @property
    def state(self) -> SequencerState:
        """Copy of the current navigation state."""
        return SequencerState(
            current_step=self._state.current_step,
            history=list(self._state.history),
            completed=self._state.completed,
            editing=self._state.editing,
        )

    @property
    def active_input(self) -> Any:
        """Transient input for the displayed step (a selector for dial steps)."""
        return self._active_input

    def question(self, step: Step | None = None) -> Question:
        return self.questions[step or self.current_step]

    def answers(self) -> dict[str, str]:
        return answers_from_store(self.store)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state-changed listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _changed(self) -> None:
        if self.progress is not None and not self._state.editing:
            self.progress.save(self._state.current_step, completed=self._state.completed)
        snapshot = self.state
        for listener in list(self._listeners):
            listener(snapshot)

    # =========================================================================
    # Transient input
    # =========================================================================

    def _discard_input(self) -> None:
        if isinstance(self._active_input, CircularValueSelector):
            self._active_input.dismiss()
        self._active_input = None

    def input_for(self, step: Step | None = None, **selector_kwargs) -> Any:
        """
        Pre-seeded input for a step: the stored answer if present and valid,
        otherwise the question default. Dial steps get a selector whose needle
        already sits at the stored value.
        """
        step = step or self.current_step
        question = self.questions[step]
        value = question.load(self.store)
        self._discard_input()
        if isinstance(question, DialQuestion):
            self._active_input = question.make_selector(value=value, **selector_kwargs)
        else:
            self._active_input = value
        return self._active_input

    # =========================================================================
    # Navigation
    # =========================================================================

    def start(self, initial_step: Step | None = None) -> Step:
        """Begin (or restart) the flow at `initial_step`, default the first step."""
        self._refuse_while_advancing()
        step = initial_step or FIRST_STEP
        self._discard_input()
        self._state = SequencerState(current_step=step, history=[step])
        logger.info(f"Onboarding started at {step.value}")
        self._changed()
        return step

    def restore(self, step: Step) -> Step:
        """
        Re-enter the flow at a saved step.

        History is rebuilt by replaying next_step() over the stored answers so
        back navigation follows the same path the user took. A step the replay
        never reaches becomes the only history entry.
        """
        self._refuse_while_advancing()
        path = route_from_start(self.answers(), until=step, rules=self.skip_rules)
        if path[-1] != step:
            logger.warning(f"Saved step {step.value} not reachable with stored answers, resuming without history")
            path = [step]
        self._discard_input()
        self._state = SequencerState(current_step=step, history=path)
        logger.info(f"Onboarding restored at {step.value} ({len(path)} steps of history)")
        self._changed()
        return step

    def _guard(self, step: Step | None) -> Step:
        current = self._state.current_step
        if step is not None and step != current:
            raise StaleStepError(step.value, current.value)
        if self._advancing is not None:
            raise StaleStepError(self._advancing.value, current.value)
        if self._state.completed or current == LAST_STEP:
            raise TerminalStepError(f"Cannot advance past {current.value}")
        return current

    def _encode(self, step: Step, answer: Any) -> dict[str, str]:
        question = self.questions[step]
        if isinstance(question, InfoQuestion):
            return {}
        return question.encode(question.check_answer(answer))

    def _move_forward(self, current: Step) -> Step | Completion:
        self._discard_input()
        nxt = next_step(current, self.answers(), self.skip_rules)
        if nxt is None:
            self._state.completed = True
            logger.info(f"Onboarding complete after {current.value}")
            self._changed()
            return COMPLETE

        self._state.history.append(nxt)
        self._state.current_step = nxt
        logger.info(f"Advanced {current.value} -> {nxt.value}")
        self._changed()
        return nxt

    def advance(self, answer: Any = None, step: Step | None = None) -> Step | Completion:
        """
        Persist `answer` for the current step and move on.

        Pass `step` (the step the caller was showing) to make repeated taps
        safe: once the sequencer has moved on, the stale call is rejected with
        StaleStepError before anything is written.

        Raises EditInProgressError while a step is open from settings; the
        edit is closed with finish_editing() or cancel_editing().
        """
        self._refuse_while_editing()
        current = self._guard(step)
        values = self._encode(current, answer)
        for key, value in values.items():
            self.store.set(key, value)
        if values:
            logger.info(f"Recorded answer for {current.value}")
        return self._move_forward(current)

    async def advance_async(self, answer: Any = None, step: Step | None = None) -> Step | Completion:
        """
        advance() for stores with async writes. Waits for the write before moving.

        Navigation is locked while the write is in flight: other advances,
        retreat, start, restore and resume_for_editing raise StaleStepError.
        """
        self._refuse_while_editing()
        current = self._guard(step)
        values = self._encode(current, answer)
        self._advancing = current
        try:
            for key, value in values.items():
                await self.store.set(key, value)
        finally:
            self._advancing = None
        if values:
            logger.info(f"Recorded answer for {current.value}")
        if self._state.current_step is not current or self._state.editing:
            raise StaleStepError(current.value, self._state.current_step.value)
        return self._move_forward(current)

    def _refuse_while_editing(self) -> None:
        if self._state.editing:
            raise EditInProgressError(
                f"Step {self._state.current_step.value} is open for editing, finish or cancel it first"
            )

    def _refuse_while_advancing(self) -> None:
        if self._advancing is not None:
            raise StaleStepError(self._advancing.value, self._state.current_step.value)

    def retreat(self) -> Step:
        """
        Go back one step. Pure navigation: nothing is written.

        While editing this just closes the editor. Raises NoPriorStepError at
        the start of history.
        """
        self._refuse_while_advancing()
        if self._state.editing:
            return self.cancel_editing()
        if len(self._state.history) <= 1:
            raise NoPriorStepError(f"No step before {self._state.current_step.value}")

        left = self._state.history.pop()
        self._discard_input()
        self._state.current_step = self._state.history[-1]
        self._state.completed = False
        logger.info(f"Retreated {left.value} -> {self._state.current_step.value}")
        self._changed()
        return self._state.current_step

    def go_back(self) -> Step:
        """retreat() for hosts: going back from the first step does nothing."""
        try:
            return self.retreat()
        except NoPriorStepError:
            logger.debug("Back ignored at first step")
            return self._state.current_step

    # =========================================================================
    # Edit from settings
    # =========================================================================

    def resume_for_editing(self, step: Step, **selector_kwargs) -> Any:
        """
        Open `step` outside the forward flow. History is not touched.

        Returns the pre-seeded input (see input_for).
        """
        self._refuse_while_advancing()
        self._state.current_step = step
        self._state.editing = True
        seeded = self.input_for(step, **selector_kwargs)
        logger.info(f"Editing {step.value} from settings")
        self._changed()
        return seeded

    def finish_editing(self, answer: Any) -> Step:
        """Persist the edited answer and return to where the flow was."""
        if not self._state.editing:
            raise OnboardingError("Not editing a step")
        step = self._state.current_step
        for key, value in self._encode(step, answer).items():
            self.store.set(key, value)
        logger.info(f"Saved edited answer for {step.value}")
        return self._leave_editing()

    def cancel_editing(self) -> Step:
        return self._leave_editing()

    def _leave_editing(self) -> Step:
        self._discard_input()
        self._state.editing = False
        self._state.current_step = self._state.history[-1]
        self._changed()
        return self._state.current_step
