"""
Question descriptors - one table entry per onboarding step.

Screens differ in layout, not in logic. At the logic level every step is one
of a handful of question kinds configured by data:

- InfoQuestion:        no answer (intro screens, dashboard)
- ChoiceQuestion:      single choice from fixed options
- TextQuestion:        short free text (mascot name)
- DateQuestion:        a calendar date (date of birth)
- MeasurementQuestion: integer value + unit (height, weight)
- DialQuestion:        quantized value from a circular dial (daily goal)
- AcknowledgeQuestion: explicit acceptance (terms)

Each descriptor knows how to encode an answer into settings strings, decode
them back, and fall back to its default when a stored value is malformed.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import InvalidAnswerError, MalformedPersistedValueError
from .selector import CircularValueSelector, snap_value, validate_dial
from .steps import Step
from .store import (
    SettingsStore,
    format_bool,
    format_date,
    format_int,
    parse_bool,
    parse_date,
    parse_int,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Base Descriptor
# =============================================================================


class Question(BaseModel):
    """Base descriptor. Subclasses define kind, encode/decode and defaults."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[str] = "info"

    step: Step
    # Older profile key the answer is mirrored to (e.g. "user_gender")
    legacy_key: str | None = None

    @property
    def key(self) -> str:
        return self.step.key

    @property
    def keys(self) -> list[str]:
        """Every settings key this question writes, primary key first."""
        return [self.key]

    def default(self) -> Any:
        return None

    def check_answer(self, answer: Any) -> Any:
        """Normalize an answer or raise InvalidAnswerError."""
        return answer

    def encode(self, answer: Any) -> dict[str, str]:
        return {}

    def decode(self, raw: dict[str, str | None]) -> Any:
        return None

    def load(self, store: SettingsStore) -> Any:
        """
        Stored answer, or the default when absent or malformed.

        MalformedPersistedValueError never escapes: a bad stored value is
        logged and replaced by the default.
        """
        raw = {k: store.get(k) for k in self.keys}
        if raw.get(self.key) is None:
            return self.default()
        try:
            return self.decode(raw)
        except MalformedPersistedValueError as e:
            logger.warning(f"{e}; using default for {self.key}")
            return self.default()

    def save(self, store: SettingsStore, answer: Any) -> dict[str, str]:
        """Validate and write an answer. Returns the key/value pairs written."""
        values = self.encode(self.check_answer(answer))
        for k, v in values.items():
            store.set(k, v)
        return values

    def describe(self) -> dict:
        """JSON-friendly descriptor for hosts."""
        return {"step": self.step.value, "kind": self.kind, "key": self.key}


class InfoQuestion(Question):
    """A screen with nothing to answer."""

    kind: ClassVar[str] = "info"


# =============================================================================
# Single Choice
# =============================================================================


class Option(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str


class ChoiceQuestion(Question):
    """
    Pick one option. The option id is stored under the step key; the label
    is mirrored to the legacy key, which older readers parse by label.
    """

    kind: ClassVar[str] = "choice"

    options: list[Option]
    default_option: str | None = None

    def _find(self, value: str) -> Option | None:
        needle = value.strip().lower()
        for option in self.options:
            if option.id.lower() == needle or option.label.lower() == needle:
                return option
        return None

    def default(self) -> str | None:
        return self.default_option

    def check_answer(self, answer: Any) -> str:
        if not isinstance(answer, str):
            raise InvalidAnswerError(f"{self.key}: expected an option id, got {answer!r}")
        option = self._find(answer)
        if option is None:
            valid = ", ".join(o.id for o in self.options)
            raise InvalidAnswerError(f"{self.key}: unknown option {answer!r} (valid: {valid})")
        return option.id

    def encode(self, answer: str) -> dict[str, str]:
        values = {self.key: answer}
        if self.legacy_key:
            option = self._find(answer)
            values[self.legacy_key] = option.label if option else answer
        return values

    def decode(self, raw: dict[str, str | None]) -> str:
        value = raw[self.key] or ""
        option = self._find(value)
        if option is None:
            raise MalformedPersistedValueError(self.key, value, "not a known option")
        return option.id

    def label_for(self, option_id: str) -> str | None:
        option = self._find(option_id)
        return option.label if option else None

    def describe(self) -> dict:
        return {
            **super().describe(),
            "options": [o.model_dump() for o in self.options],
            "default": self.default_option,
        }


# =============================================================================
# Free Text
# =============================================================================


class TextQuestion(Question):
    kind: ClassVar[str] = "text"

    max_length: int = 30
    default_text: str = ""

    def default(self) -> str:
        return self.default_text

    def check_answer(self, answer: Any) -> str:
        text = str(answer or "").strip()
        if not text:
            raise InvalidAnswerError(f"{self.key}: a name is required")
        if len(text) > self.max_length:
            raise InvalidAnswerError(f"{self.key}: longer than {self.max_length} characters")
        return text

    def encode(self, answer: str) -> dict[str, str]:
        values = {self.key: answer}
        if self.legacy_key:
            values[self.legacy_key] = answer
        return values

    def decode(self, raw: dict[str, str | None]) -> str:
        value = (raw[self.key] or "").strip()
        if not value or len(value) > self.max_length:
            raise MalformedPersistedValueError(self.key, raw[self.key] or "", "empty or too long")
        return value

    def describe(self) -> dict:
        return {**super().describe(), "max_length": self.max_length}


# =============================================================================
# Date
# =============================================================================


class DateQuestion(Question):
    """Calendar date stored as "yyyy-MM-dd HH:mm:ss zzz" (UTC)."""

    kind: ClassVar[str] = "date"

    min_date: date = date(1900, 1, 1)
    default_years_ago: int = 18

    @staticmethod
    def _today() -> date:
        return datetime.now(timezone.utc).date()

    def default(self) -> date:
        today = self._today()
        try:
            return today.replace(year=today.year - self.default_years_ago)
        except ValueError:
            # Feb 29 -> Feb 28
            return today.replace(year=today.year - self.default_years_ago, day=28)

    def check_answer(self, answer: Any) -> date:
        if isinstance(answer, str):
            # A bare date or a full ISO datetime, nothing else
            try:
                answer = datetime.fromisoformat(answer.strip())
            except ValueError as e:
                raise InvalidAnswerError(f"{self.key}: {e}") from e
        if isinstance(answer, datetime):
            answer = answer.astimezone(timezone.utc).date() if answer.tzinfo else answer.date()
        if not isinstance(answer, date):
            raise InvalidAnswerError(f"{self.key}: expected a date, got {answer!r}")
        if not self.min_date <= answer <= self._today():
            raise InvalidAnswerError(f"{self.key}: {answer} outside {self.min_date}..today")
        return answer

    def encode(self, answer: date) -> dict[str, str]:
        values = {self.key: format_date(answer)}
        if self.legacy_key:
            values[self.legacy_key] = values[self.key]
        return values

    def decode(self, raw: dict[str, str | None]) -> date:
        value = raw[self.key] or ""
        try:
            return parse_date(value).date()
        except ValueError as e:
            raise MalformedPersistedValueError(self.key, value, str(e)) from e

    def describe(self) -> dict:
        return {
            **super().describe(),
            "min": self.min_date.isoformat(),
            "max": self._today().isoformat(),
            "default": self.default().isoformat(),
        }


# =============================================================================
# Measurement
# =============================================================================


class Measurement(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: int
    unit: str


class UnitRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    minimum: int
    maximum: int


class MeasurementQuestion(Question):
    """Integer value with a unit; the unit lives under a '<step>.unit' sub-key."""

    kind: ClassVar[str] = "measurement"

    units: dict[str, UnitRange]
    default_value: int
    default_unit: str
    legacy_unit_key: str | None = None

    @property
    def unit_key(self) -> str:
        return f"{self.key}.unit"

    @property
    def keys(self) -> list[str]:
        return [self.key, self.unit_key]

    def default(self) -> Measurement:
        return Measurement(value=self.default_value, unit=self.default_unit)

    def check_answer(self, answer: Any) -> Measurement:
        if isinstance(answer, dict):
            try:
                answer = Measurement(**answer)
            except ValidationError as e:
                raise InvalidAnswerError(f"{self.key}: {e}") from e
        elif isinstance(answer, int):
            answer = Measurement(value=answer, unit=self.default_unit)
        if not isinstance(answer, Measurement):
            raise InvalidAnswerError(f"{self.key}: expected a measurement, got {answer!r}")
        bounds = self.units.get(answer.unit)
        if bounds is None:
            raise InvalidAnswerError(f"{self.key}: unknown unit {answer.unit!r}")
        if not bounds.minimum <= answer.value <= bounds.maximum:
            raise InvalidAnswerError(
                f"{self.key}: {answer.value} {answer.unit} outside {bounds.minimum}..{bounds.maximum}"
            )
        return answer

    def encode(self, answer: Measurement) -> dict[str, str]:
        values = {self.key: format_int(answer.value), self.unit_key: answer.unit}
        if self.legacy_key:
            values[self.legacy_key] = values[self.key]
        if self.legacy_unit_key:
            values[self.legacy_unit_key] = answer.unit.upper()
        return values

    def decode(self, raw: dict[str, str | None]) -> Measurement:
        value = raw[self.key] or ""
        unit = (raw.get(self.unit_key) or self.default_unit).lower()
        try:
            measurement = Measurement(value=parse_int(value), unit=unit)
            return self.check_answer(measurement)
        except (ValueError, InvalidAnswerError) as e:
            raise MalformedPersistedValueError(self.key, value, str(e)) from e

    def describe(self) -> dict:
        return {
            **super().describe(),
            "units": {u: r.model_dump() for u, r in self.units.items()},
            "default": self.default().model_dump(),
        }


# =============================================================================
# Dial
# =============================================================================


class DialQuestion(Question):
    """Quantized value picked on a circular dial."""

    kind: ClassVar[str] = "dial"

    min_value: int = 0
    max_value: int
    step_size: int
    default_value: int
    hard_stops: bool = False

    def model_post_init(self, __context: Any) -> None:
        validate_dial(self.max_value, self.step_size, self.min_value)

    def default(self) -> int:
        return self.default_value

    def check_answer(self, answer: Any) -> int:
        if isinstance(answer, bool) or not isinstance(answer, int):
            raise InvalidAnswerError(f"{self.key}: expected an integer, got {answer!r}")
        if snap_value(answer, self.max_value, self.step_size, self.min_value) != answer:
            raise InvalidAnswerError(
                f"{self.key}: {answer} is not a {self.step_size}-step value in "
                f"{self.min_value}..{self.max_value}"
            )
        return answer

    def encode(self, answer: int) -> dict[str, str]:
        values = {self.key: format_int(answer)}
        if self.legacy_key:
            values[self.legacy_key] = values[self.key]
        return values

    def decode(self, raw: dict[str, str | None]) -> int:
        value = raw[self.key] or ""
        try:
            return self.check_answer(parse_int(value))
        except (ValueError, InvalidAnswerError) as e:
            raise MalformedPersistedValueError(self.key, value, str(e)) from e

    def make_selector(self, value: int | None = None, **kwargs) -> CircularValueSelector:
        """Fresh selector for this dial, seeded with `value` or the default."""
        return CircularValueSelector(
            max_value=self.max_value,
            step_size=self.step_size,
            min_value=self.min_value,
            value=self.default_value if value is None else value,
            hard_stops=self.hard_stops,
            **kwargs,
        )

    def describe(self) -> dict:
        return {
            **super().describe(),
            "min": self.min_value,
            "max": self.max_value,
            "step": self.step_size,
            "default": self.default_value,
        }


# =============================================================================
# Acknowledge
# =============================================================================


class AcknowledgeQuestion(Question):
    kind: ClassVar[str] = "acknowledge"

    def default(self) -> bool:
        return False

    def check_answer(self, answer: Any) -> bool:
        if answer is not True:
            raise InvalidAnswerError(f"{self.key}: must be accepted to continue")
        return True

    def encode(self, answer: bool) -> dict[str, str]:
        values = {self.key: format_bool(answer)}
        if self.legacy_key:
            values[self.legacy_key] = values[self.key]
        return values

    def decode(self, raw: dict[str, str | None]) -> bool:
        value = raw[self.key] or ""
        try:
            return parse_bool(value)
        except ValueError as e:
            raise MalformedPersistedValueError(self.key, value, str(e)) from e


# =============================================================================
# Question Table
# =============================================================================

PREMIUM_USER_KEY = "isPremiumUser"
TERMS_ACCEPTED_KEY = "termsAccepted"


def _levels(low: str, moderate: str, high: str) -> list[Option]:
    return [
        Option(id="low", label=low),
        Option(id="moderate", label=moderate),
        Option(id="high", label=high),
    ]


def build_question_table(
    goal_max_minutes: int = 60,
    goal_step_minutes: int = 5,
    goal_default_minutes: int = 10,
) -> dict[Step, Question]:
    """Descriptor for every step. Goal dial bounds come from settings."""
    table: list[Question] = [
        InfoQuestion(step=Step.WELCOME),
        InfoQuestion(step=Step.PERSONALIZATION_INTRO),
        InfoQuestion(step=Step.BEFORE_AFTER_TRANSFORMATION),
        ChoiceQuestion(
            step=Step.MASCOT_INTRODUCTION,
            options=[Option(id="meet", label="Meet your buddy"), Option(id="skip", label="Skip")],
            default_option="meet",
        ),
        TextQuestion(step=Step.MASCOT_NAMING, legacy_key="user_name", max_length=30),
        ChoiceQuestion(
            step=Step.GENDER_SELECTION,
            legacy_key="user_gender",
            options=[Option(id="male", label="Male"), Option(id="female", label="Female")],
        ),
        DateQuestion(step=Step.AGE_SELECTION, legacy_key="user_date_of_birth"),
        MeasurementQuestion(
            step=Step.HEIGHT_STATS,
            legacy_key="user_height",
            units={"cm": UnitRange(minimum=120, maximum=220), "in": UnitRange(minimum=48, maximum=84)},
            default_value=170,
            default_unit="cm",
        ),
        MeasurementQuestion(
            step=Step.WEIGHT_STATS,
            legacy_key="user_weight",
            legacy_unit_key="user_weight_unit",
            units={"kg": UnitRange(minimum=30, maximum=250), "lb": UnitRange(minimum=66, maximum=550)},
            default_value=70,
            default_unit="kg",
        ),
        ChoiceQuestion(
            step=Step.STRESS_STATS,
            legacy_key="user_stress_level",
            options=_levels("Low", "Moderate", "High"),
        ),
        ChoiceQuestion(
            step=Step.ANXIETY_STATS,
            legacy_key="user_anxiety_level",
            options=_levels("Mild", "Moderate", "Severe"),
        ),
        ChoiceQuestion(
            step=Step.DIET_STATS,
            legacy_key="user_diet_level",
            options=_levels("Very Healthy", "Mixed", "Very unhealthy"),
        ),
        ChoiceQuestion(
            step=Step.SMOKE_STATS,
            legacy_key="user_smoke_stats",
            options=_levels("Never", "Former smoker", "Daily"),
        ),
        ChoiceQuestion(
            step=Step.ALCOHOLIC_STATS,
            legacy_key="user_alcohol_stats",
            options=_levels("Never", "Occasionally", "Daily or Heavy"),
        ),
        ChoiceQuestion(
            step=Step.SOCIAL_CONNECTION_STATS,
            legacy_key="user_social_stats",
            options=_levels("Very Strong", "Moderate", "Isolated"),
        ),
        ChoiceQuestion(
            step=Step.BLOOD_PRESSURE_STATS,
            legacy_key="user_blood_pressure_stats",
            options=_levels("Below 120/80", "130/80+", "I don't know"),
        ),
        ChoiceQuestion(
            step=Step.MAIN_REASON_STATS,
            legacy_key="user_main_reason_stats",
            options=[
                Option(id="family", label="Watch my family grow"),
                Option(id="dreams", label="Achieve my dreams"),
                Option(id="experience", label="Simply to experience life longer"),
            ],
        ),
        DialQuestion(
            step=Step.GOALS_STATS,
            legacy_key="user_goal_stats",
            max_value=goal_max_minutes,
            step_size=goal_step_minutes,
            default_value=goal_default_minutes,
        ),
        ChoiceQuestion(
            step=Step.SYNC_DEVICE_STATS,
            legacy_key="user_device_sync",
            options=[Option(id="connect", label="Connect"), Option(id="skip", label="Not now")],
            default_option="skip",
        ),
        AcknowledgeQuestion(step=Step.TERMS),
        ChoiceQuestion(
            step=Step.PAYWALL,
            options=[
                Option(id="subscribe", label="Start free trial"),
                Option(id="restore", label="Restore purchases"),
                Option(id="later", label="Maybe later"),
            ],
            default_option="later",
        ),
        InfoQuestion(step=Step.DASHBOARD),
    ]
    return {q.step: q for q in table}


QUESTIONS: dict[Step, Question] = build_question_table()


def get_question(step: Step, table: dict[Step, Question] | None = None) -> Question:
    return (table or QUESTIONS)[step]
