"""
Onboarding step catalog.

Member order is the canonical forward order. Member values are the stable ids
used as persistence keys, so screens can be reordered without touching stored
answers.
"""

from enum import Enum


class Step(Enum):
    """Onboarding steps, in canonical order."""

    WELCOME = "welcome"
    PERSONALIZATION_INTRO = "personalizationIntro"
    BEFORE_AFTER_TRANSFORMATION = "beforeAfterTransformation"
    MASCOT_INTRODUCTION = "mascotIntroduction"
    MASCOT_NAMING = "mascotNaming"
    GENDER_SELECTION = "genderSelection"
    AGE_SELECTION = "ageSelection"
    HEIGHT_STATS = "heightStats"
    WEIGHT_STATS = "weightStats"
    STRESS_STATS = "stressStats"
    ANXIETY_STATS = "anxietyStats"
    DIET_STATS = "dietStats"
    SMOKE_STATS = "smokeStats"
    ALCOHOLIC_STATS = "alcoholicStats"
    SOCIAL_CONNECTION_STATS = "socialConnectionStats"
    BLOOD_PRESSURE_STATS = "bloodPressureStats"
    MAIN_REASON_STATS = "mainReasonStats"
    GOALS_STATS = "goalsStats"
    SYNC_DEVICE_STATS = "syncDeviceStats"
    TERMS = "terms"
    PAYWALL = "paywall"
    DASHBOARD = "dashboard"

    @property
    def key(self) -> str:
        """Persistence key for this step's answer."""
        return self.value

    @property
    def index(self) -> int:
        return STEP_ORDER.index(self)

    @classmethod
    def from_id(cls, step_id: str | None) -> "Step | None":
        """Parse a stable id. Unknown or legacy ids return None."""
        if not step_id:
            return None
        try:
            return cls(step_id)
        except ValueError:
            return None


STEP_ORDER: list[Step] = list(Step)
FIRST_STEP = STEP_ORDER[0]
LAST_STEP = STEP_ORDER[-1]


def progress_fraction(step: Step) -> float:
    """Share of the flow reached at `step`; the first step is 1/N, the last is 1.0."""
    return (step.index + 1) / len(STEP_ORDER)


def completed_steps(step: Step) -> list[str]:
    """Stable ids of every step ahead of `step` in canonical order."""
    return [s.value for s in STEP_ORDER[: step.index]]
