"""Tests for question descriptors and the question table."""

import logging
from datetime import date, timedelta

import pytest

from onboarding.errors import InvalidAnswerError
from onboarding.questions import (
    QUESTIONS,
    AcknowledgeQuestion,
    ChoiceQuestion,
    DateQuestion,
    DialQuestion,
    InfoQuestion,
    Measurement,
    MeasurementQuestion,
    TextQuestion,
    build_question_table,
    get_question,
)
from onboarding.steps import STEP_ORDER, Step
from onboarding.store import InMemorySettingsStore


class TestQuestionTable:
    """One descriptor per step."""

    def test_every_step_has_a_question(self):
        assert set(QUESTIONS) == set(STEP_ORDER)
        for step, question in QUESTIONS.items():
            assert question.step is step

    def test_kinds(self):
        assert isinstance(QUESTIONS[Step.WELCOME], InfoQuestion)
        assert isinstance(QUESTIONS[Step.GENDER_SELECTION], ChoiceQuestion)
        assert isinstance(QUESTIONS[Step.AGE_SELECTION], DateQuestion)
        assert isinstance(QUESTIONS[Step.WEIGHT_STATS], MeasurementQuestion)
        assert isinstance(QUESTIONS[Step.GOALS_STATS], DialQuestion)
        assert isinstance(QUESTIONS[Step.TERMS], AcknowledgeQuestion)
        assert isinstance(QUESTIONS[Step.DASHBOARD], InfoQuestion)

    def test_goal_dial_from_arguments(self):
        table = build_question_table(goal_max_minutes=90, goal_step_minutes=15, goal_default_minutes=30)
        dial = table[Step.GOALS_STATS]
        assert (dial.max_value, dial.step_size, dial.default_value) == (90, 15, 30)

    def test_bad_goal_dial_rejected(self):
        with pytest.raises(ValueError):
            build_question_table(goal_max_minutes=60, goal_step_minutes=7)

    def test_get_question(self):
        assert get_question(Step.TERMS) is QUESTIONS[Step.TERMS]

    def test_describe(self):
        described = QUESTIONS[Step.MAIN_REASON_STATS].describe()
        assert described["kind"] == "choice"
        assert described["key"] == "mainReasonStats"
        assert [o["id"] for o in described["options"]] == ["family", "dreams", "experience"]


class TestChoiceQuestion:
    """Single choice with id storage and legacy label mirror."""

    question = QUESTIONS[Step.GENDER_SELECTION]

    def test_accepts_id_or_label(self):
        assert self.question.check_answer("female") == "female"
        assert self.question.check_answer(" Female ") == "female"

    def test_unknown_option(self):
        with pytest.raises(InvalidAnswerError):
            self.question.check_answer("robot")

    def test_non_string(self):
        with pytest.raises(InvalidAnswerError):
            self.question.check_answer(3)

    def test_encode_mirrors_label(self):
        assert self.question.encode("female") == {"genderSelection": "female", "user_gender": "Female"}

    def test_load_stored_id(self):
        store = InMemorySettingsStore({"genderSelection": "male"})
        assert self.question.load(store) == "male"

    def test_malformed_falls_back_to_default(self, caplog):
        store = InMemorySettingsStore({"genderSelection": "robot"})
        with caplog.at_level(logging.WARNING):
            assert self.question.load(store) is None
        assert "genderSelection" in caplog.text

    def test_level_labels(self):
        blood_pressure = QUESTIONS[Step.BLOOD_PRESSURE_STATS]
        assert blood_pressure.label_for("high") == "I don't know"


class TestTextQuestion:
    question = QUESTIONS[Step.MASCOT_NAMING]

    def test_strips_and_mirrors(self):
        assert self.question.save(InMemorySettingsStore(), "  Sparky ") == {
            "mascotNaming": "Sparky",
            "user_name": "Sparky",
        }

    def test_empty_rejected(self):
        with pytest.raises(InvalidAnswerError):
            self.question.check_answer("   ")

    def test_too_long_rejected(self):
        with pytest.raises(InvalidAnswerError):
            self.question.check_answer("x" * 31)


class TestDateQuestion:
    """Date of birth stored as 'yyyy-MM-dd HH:mm:ss zzz'."""

    question = QUESTIONS[Step.AGE_SELECTION]

    def test_encode(self):
        assert self.question.encode(date(1990, 5, 17)) == {
            "ageSelection": "1990-05-17 00:00:00 GMT",
            "user_date_of_birth": "1990-05-17 00:00:00 GMT",
        }

    def test_load(self):
        store = InMemorySettingsStore({"ageSelection": "1990-05-17 00:00:00 GMT"})
        assert self.question.load(store) == date(1990, 5, 17)

    def test_iso_string_accepted(self):
        assert self.question.check_answer("1985-12-01") == date(1985, 12, 1)

    def test_future_rejected(self):
        with pytest.raises(InvalidAnswerError):
            self.question.check_answer(date.today() + timedelta(days=400))

    def test_before_1900_rejected(self):
        with pytest.raises(InvalidAnswerError):
            self.question.check_answer(date(1899, 12, 31))

    def test_garbage_string_rejected(self):
        with pytest.raises(InvalidAnswerError):
            self.question.check_answer("last tuesday")

    def test_trailing_text_rejected(self):
        with pytest.raises(InvalidAnswerError):
            self.question.check_answer("1990-05-17xyz")

    def test_iso_datetime_accepted(self):
        assert self.question.check_answer("1990-05-17T23:30:00-02:00") == date(1990, 5, 18)
        assert self.question.check_answer(" 1990-05-17T08:00:00 ") == date(1990, 5, 17)

    def test_malformed_stored_value_uses_default(self):
        store = InMemorySettingsStore({"ageSelection": "17/05/1990"})
        assert self.question.load(store) == self.question.default()

    def test_default_is_eighteen_years_ago(self):
        default = self.question.default()
        today = DateQuestion._today()
        assert today.year - default.year == 18


class TestMeasurementQuestion:
    """Value plus unit with per-unit ranges."""

    weight = QUESTIONS[Step.WEIGHT_STATS]
    height = QUESTIONS[Step.HEIGHT_STATS]

    def test_encode_with_legacy_keys(self):
        assert self.weight.encode(Measurement(value=80, unit="lb")) == {
            "weightStats": "80",
            "weightStats.unit": "lb",
            "user_weight": "80",
            "user_weight_unit": "LB",
        }

    def test_dict_answer(self):
        assert self.height.check_answer({"value": 60, "unit": "in"}) == Measurement(value=60, unit="in")

    def test_int_uses_default_unit(self):
        assert self.weight.check_answer(75) == Measurement(value=75, unit="kg")

    def test_out_of_range(self):
        with pytest.raises(InvalidAnswerError):
            self.weight.check_answer({"value": 20, "unit": "kg"})

    def test_unknown_unit(self):
        with pytest.raises(InvalidAnswerError):
            self.weight.check_answer({"value": 12, "unit": "st"})

    def test_bad_dict(self):
        with pytest.raises(InvalidAnswerError):
            self.weight.check_answer({"value": "heavy", "unit": "kg"})

    def test_load_without_unit_uses_default_unit(self):
        store = InMemorySettingsStore({"heightStats": "180"})
        assert self.height.load(store) == Measurement(value=180, unit="cm")

    def test_load_out_of_range_uses_default(self):
        store = InMemorySettingsStore({"heightStats": "500", "heightStats.unit": "cm"})
        assert self.height.load(store) == Measurement(value=170, unit="cm")


class TestDialQuestion:
    """Daily goal dial."""

    question = QUESTIONS[Step.GOALS_STATS]

    def test_step_values_accepted(self):
        assert self.question.check_answer(30) == 30

    @pytest.mark.parametrize("answer", [32, 65, -5, True, "30"])
    def test_invalid_values(self, answer):
        with pytest.raises(InvalidAnswerError):
            self.question.check_answer(answer)

    def test_encode(self):
        assert self.question.encode(45) == {"goalsStats": "45", "user_goal_stats": "45"}

    def test_make_selector_seeds_angle(self):
        selector = self.question.make_selector(value=30)
        assert selector.quantized_value == 30
        assert selector.raw_angle_degrees == pytest.approx(180.0)

    def test_make_selector_default(self):
        assert self.question.make_selector().quantized_value == 10

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            DialQuestion(step=Step.GOALS_STATS, max_value=60, step_size=7, default_value=0)


class TestAcknowledgeQuestion:
    question = QUESTIONS[Step.TERMS]

    def test_accept(self):
        assert self.question.encode(self.question.check_answer(True)) == {"terms": "true"}

    @pytest.mark.parametrize("answer", [False, None, "yes"])
    def test_must_accept(self, answer):
        with pytest.raises(InvalidAnswerError):
            self.question.check_answer(answer)


class TestInfoQuestion:
    def test_nothing_to_store(self):
        question = QUESTIONS[Step.WELCOME]
        assert question.encode(None) == {}
        assert question.load(InMemorySettingsStore()) is None

    def test_text_question_default(self):
        assert TextQuestion(step=Step.MASCOT_NAMING).default() == ""
