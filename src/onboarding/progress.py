"""
Onboarding progress persistence with soft vs hard close detection.

The current step's stable id is saved after every transition. On relaunch:
- soft close (app was backgrounded and came back quickly): resume at the saved step
- hard close (force quit, fresh launch, or a long gap): start over at welcome
"""

import logging
import time
from enum import Enum
from typing import Callable

from .steps import FIRST_STEP, Step
from .store import SettingsStore, format_bool, parse_bool

logger = logging.getLogger(__name__)

CURRENT_STEP_KEY = "currentOnboardingStep"
LAST_SAVE_TIMESTAMP_KEY = "onboardingLastSaveTimestamp"
APP_LAUNCH_TIMESTAMP_KEY = "appLaunchTimestamp"
CLEAN_TERMINATION_KEY = "appTerminatedCleanly"
SESSION_START_KEY = "onboardingSessionStart"

# Cleared together with progress
TRANSIENT_KEYS = ("questionnaire_current_question",)

DEFAULT_HARD_CLOSE_THRESHOLD = 5.0


class ClosureType(Enum):
    SOFT = "soft"  # backgrounded, still running
    HARD = "hard"  # terminated


class ProgressTracker:
    """Saves and restores the onboarding position through the settings store."""

    def __init__(
        self,
        store: SettingsStore,
        clock: Callable[[], float] = time.time,
        hard_close_threshold: float = DEFAULT_HARD_CLOSE_THRESHOLD,
    ):
        self.store = store
        self.clock = clock
        self.hard_close_threshold = hard_close_threshold

    def _timestamp(self, key: str) -> float | None:
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return float(raw)
        except ValueError:
            logger.warning(f"Ignoring malformed timestamp {key}={raw!r}")
            return None

    def _clean_termination(self) -> bool:
        raw = self.store.get(CLEAN_TERMINATION_KEY)
        if raw is None:
            return False
        try:
            return parse_bool(raw)
        except ValueError:
            logger.warning(f"Ignoring malformed flag {CLEAN_TERMINATION_KEY}={raw!r}")
            return False

    def detect_closure(self) -> ClosureType:
        """Classify how the previous session ended."""
        last_save = self._timestamp(LAST_SAVE_TIMESTAMP_KEY)
        if not last_save:
            logger.info("Fresh launch detected")
            return ClosureType.HARD

        if not self._clean_termination():
            logger.info("Hard close detected - no clean termination")
            return ClosureType.HARD

        gap = self.clock() - last_save
        if gap > self.hard_close_threshold:
            logger.info(f"Hard close detected - {gap:.1f}s since last save")
            return ClosureType.HARD

        logger.info("Soft close detected - restoring onboarding position")
        return ClosureType.SOFT

    def save(self, step: Step, completed: bool = False) -> None:
        """Record the current step. Completing onboarding clears progress instead."""
        if completed:
            self.clear()
            return
        now = self.clock()
        self.store.set(CURRENT_STEP_KEY, step.value)
        self.store.set(LAST_SAVE_TIMESTAMP_KEY, repr(now))
        # Flipped back to true when the app goes to the background
        self.store.set(CLEAN_TERMINATION_KEY, format_bool(False))
        if self.store.get(SESSION_START_KEY) is None:
            self.store.set(SESSION_START_KEY, repr(now))
        logger.info(f"Saved onboarding progress: {step.value}")

    def saved_step(self) -> Step | None:
        return Step.from_id(self.store.get(CURRENT_STEP_KEY))

    def load(self, closure: ClosureType) -> Step:
        """Step to resume at for the given closure type."""
        if closure is ClosureType.SOFT:
            step = self.saved_step()
            if step is not None:
                logger.info(f"Restored onboarding progress: {step.value} (soft close)")
                return step
            logger.warning("No saved onboarding step found for soft close")
            return FIRST_STEP

        logger.info("Starting fresh onboarding (hard close)")
        self.clear()
        return FIRST_STEP

    def mark_launch(self) -> None:
        self.store.set(APP_LAUNCH_TIMESTAMP_KEY, repr(self.clock()))
        self.store.set(CLEAN_TERMINATION_KEY, format_bool(False))

    def mark_background(self) -> None:
        self.store.set(CLEAN_TERMINATION_KEY, format_bool(True))
        logger.info("App entering background - marked as clean termination")

    def clear(self) -> None:
        for key in (CURRENT_STEP_KEY, LAST_SAVE_TIMESTAMP_KEY, SESSION_START_KEY, *TRANSIENT_KEYS):
            self.store.remove(key)
        logger.info("Cleared onboarding progress")

    def reset_all(self) -> None:
        self.clear()
        self.store.remove(APP_LAUNCH_TIMESTAMP_KEY)
        self.store.remove(CLEAN_TERMINATION_KEY)
