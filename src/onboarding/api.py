"""
Onboarding API Endpoints.

HTTP navigation host for the onboarding sequencer. Each user gets one
sequencer bound to their own settings store; the presentation layer renders
whatever the returned state says.
"""

import logging
from datetime import date
from typing import Any, Callable

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel

from .errors import EditInProgressError, InvalidAnswerError, StaleStepError, TerminalStepError
from .progress import ProgressTracker
from .questions import Measurement, Question
from .selector import CircularValueSelector
from .sequencer import COMPLETE, OnboardingSequencer
from .session import launch_sequencer
from .state import is_skippable
from .steps import LAST_STEP, STEP_ORDER, Step, progress_fraction
from .store import InMemorySettingsStore, SettingsStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


# =============================================================================
# Session Registry
# =============================================================================


class SessionRegistry:
    """
    One sequencer per user, created on first use.

    interaction_delay holds dial input disabled for that many seconds after a
    dial step is presented.
    """

    def __init__(
        self,
        store_factory: Callable[[str], SettingsStore] | None = None,
        questions: dict[Step, Question] | None = None,
        hard_close_threshold: float = 5.0,
        interaction_delay: float = 0.0,
    ):
        self.store_factory = store_factory or (lambda user_id: InMemorySettingsStore())
        self.questions = questions
        self.hard_close_threshold = hard_close_threshold
        self.interaction_delay = interaction_delay
        self._sessions: dict[str, OnboardingSequencer] = {}

    def get(self, user_id: str) -> OnboardingSequencer:
        sequencer = self._sessions.get(user_id)
        if sequencer is None:
            store = self.store_factory(user_id)
            sequencer = launch_sequencer(
                store,
                questions=self.questions,
                hard_close_threshold=self.hard_close_threshold,
            )
            self._sessions[user_id] = sequencer
            logger.info(f"Opened onboarding session for {user_id} at {sequencer.current_step.value}")
        return sequencer

    def drop(self, user_id: str) -> None:
        self._sessions.pop(user_id, None)

    def release(self, sequencer: OnboardingSequencer) -> None:
        """Forget a finished session. Its store keeps the saved progress."""
        for user_id, held in list(self._sessions.items()):
            if held is sequencer:
                del self._sessions[user_id]
                logger.info(f"Closed onboarding session for {user_id}")

    def __len__(self) -> int:
        return len(self._sessions)


_registry = SessionRegistry()


def configure_registry(registry: SessionRegistry) -> None:
    """Swap the process-wide registry (app startup, tests)."""
    global _registry
    _registry = registry


def get_registry() -> SessionRegistry:
    return _registry


async def get_sequencer(
    x_user_id: str = Header("local"),
    registry: SessionRegistry = Depends(get_registry),
) -> OnboardingSequencer:
    """Sequencer for the calling user (X-User-Id header, "local" when absent)."""
    return registry.get(x_user_id)


# =============================================================================
# Request/Response Models
# =============================================================================


class AdvanceRequest(BaseModel):
    """Continue from a step. `step` guards against double taps."""
    step: str
    answer: Any = None


class FinishEditRequest(BaseModel):
    answer: Any = None


class DragRequest(BaseModel):
    """Pointer position and dial centre in the same coordinate space."""
    x: float
    y: float
    center_x: float = 0.0
    center_y: float = 0.0


class StateResponse(BaseModel):
    current_step: str
    history: list[str]
    progress: float
    steps_completed: list[str]
    completed: bool
    editing: bool
    can_go_back: bool


class QuestionResponse(BaseModel):
    state: StateResponse
    question: dict
    value: Any = None


class StepInfo(BaseModel):
    id: str
    index: int
    progress: float
    skippable: bool
    kind: str


# =============================================================================
# Helpers
# =============================================================================


def _state_response(sequencer: OnboardingSequencer) -> StateResponse:
    return StateResponse(**sequencer.state.to_dict())


def _serialize_input(value: Any) -> Any:
    if isinstance(value, CircularValueSelector):
        return value.state.model_dump()
    if isinstance(value, Measurement):
        return value.model_dump()
    if isinstance(value, date):
        return value.isoformat()
    return value


def _parse_step(step_id: str) -> Step:
    step = Step.from_id(step_id)
    if step is None:
        raise HTTPException(status_code=404, detail=f"Unknown step: {step_id}")
    return step


def _selector_kwargs(delay: float) -> dict:
    return {"interaction_enabled": False} if delay > 0 else {}


def _hold_dial(seeded: Any, delay: float) -> None:
    """Start the post-transition delay on a freshly presented dial."""
    if isinstance(seeded, CircularValueSelector) and delay > 0:
        seeded.enable_after(delay)


def _question_response(sequencer: OnboardingSequencer, seeded: Any) -> QuestionResponse:
    return QuestionResponse(
        state=_state_response(sequencer),
        question=sequencer.question().describe(),
        value=_serialize_input(seeded),
    )


# =============================================================================
# Endpoints: Catalog & State
# =============================================================================


@router.get("/steps", response_model=list[StepInfo])
async def list_steps(sequencer: OnboardingSequencer = Depends(get_sequencer)) -> list[StepInfo]:
    """Canonical step catalog."""
    return [
        StepInfo(
            id=step.value,
            index=step.index,
            progress=progress_fraction(step),
            skippable=is_skippable(step),
            kind=sequencer.questions[step].kind,
        )
        for step in STEP_ORDER
    ]


@router.get("/state", response_model=StateResponse)
async def get_state(sequencer: OnboardingSequencer = Depends(get_sequencer)) -> StateResponse:
    """Current onboarding position."""
    return _state_response(sequencer)


@router.get("/question", response_model=QuestionResponse)
async def get_question(
    sequencer: OnboardingSequencer = Depends(get_sequencer),
    registry: SessionRegistry = Depends(get_registry),
) -> QuestionResponse:
    """Descriptor for the current step, pre-seeded from stored answers."""
    seeded = sequencer.active_input
    if seeded is None:
        delay = registry.interaction_delay
        seeded = sequencer.input_for(**_selector_kwargs(delay))
        _hold_dial(seeded, delay)
    return _question_response(sequencer, seeded)


# =============================================================================
# Endpoints: Navigation
# =============================================================================


@router.post("/advance", response_model=StateResponse)
async def advance(
    request: AdvanceRequest,
    sequencer: OnboardingSequencer = Depends(get_sequencer),
    registry: SessionRegistry = Depends(get_registry),
) -> StateResponse:
    """
    Record the answer for `step` and move on.

    409 when `step` is no longer current, the flow is finished, or a step is
    open for editing (use /edit/finish).
    """
    step = _parse_step(request.step)
    answer = request.answer
    if answer is None and isinstance(sequencer.active_input, CircularValueSelector):
        # Dial steps may continue with whatever the dial shows
        answer = sequencer.active_input.quantized_value

    try:
        result = sequencer.advance(answer, step=step)
    except (StaleStepError, TerminalStepError, EditInProgressError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidAnswerError as e:
        raise HTTPException(status_code=400, detail=str(e))

    response = _state_response(sequencer)
    if result is COMPLETE or result is LAST_STEP:
        logger.info(f"Onboarding flow finished via API at {sequencer.current_step.value}")
        registry.release(sequencer)
    return response


@router.post("/back", response_model=StateResponse)
async def go_back(sequencer: OnboardingSequencer = Depends(get_sequencer)) -> StateResponse:
    """Previous step; a no-op at the first step."""
    try:
        sequencer.go_back()
    except StaleStepError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _state_response(sequencer)


@router.post("/edit/finish", response_model=StateResponse)
async def finish_edit(
    request: FinishEditRequest,
    sequencer: OnboardingSequencer = Depends(get_sequencer),
) -> StateResponse:
    """Save the edited answer and return to the flow."""
    if not sequencer.is_editing:
        raise HTTPException(status_code=409, detail="Not editing a step")
    answer = request.answer
    if answer is None and isinstance(sequencer.active_input, CircularValueSelector):
        answer = sequencer.active_input.quantized_value
    try:
        sequencer.finish_editing(answer)
    except InvalidAnswerError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _state_response(sequencer)


@router.post("/edit/{step_id}", response_model=QuestionResponse)
async def edit_step(
    step_id: str,
    sequencer: OnboardingSequencer = Depends(get_sequencer),
    registry: SessionRegistry = Depends(get_registry),
) -> QuestionResponse:
    """Open a step from settings, pre-seeded with the stored answer."""
    step = _parse_step(step_id)
    delay = registry.interaction_delay
    try:
        seeded = sequencer.resume_for_editing(step, **_selector_kwargs(delay))
    except StaleStepError as e:
        raise HTTPException(status_code=409, detail=str(e))
    _hold_dial(seeded, delay)
    return _question_response(sequencer, seeded)


@router.post("/dial/drag")
async def drag_dial(
    request: DragRequest,
    sequencer: OnboardingSequencer = Depends(get_sequencer),
    registry: SessionRegistry = Depends(get_registry),
) -> dict:
    """
    Feed a pointer position to the current step's dial.

    A dial presented by this call is held for the interaction delay like one
    fetched through /question, so the first drag may be ignored.
    """
    selector = sequencer.active_input
    if not isinstance(selector, CircularValueSelector):
        delay = registry.interaction_delay
        selector = sequencer.input_for(**_selector_kwargs(delay))
        _hold_dial(selector, delay)
    if not isinstance(selector, CircularValueSelector):
        raise HTTPException(
            status_code=400,
            detail=f"Step {sequencer.current_step.value} has no dial",
        )
    selector.center = (request.center_x, request.center_y)
    selector.on_drag((request.x, request.y))
    return selector.state.model_dump()


@router.post("/reset", response_model=StateResponse)
async def reset(sequencer: OnboardingSequencer = Depends(get_sequencer)) -> StateResponse:
    """Clear saved progress and start over. Stored answers are kept."""
    if sequencer.progress is not None:
        sequencer.progress.clear()
    else:
        ProgressTracker(sequencer.store).clear()
    sequencer.start()
    return _state_response(sequencer)
