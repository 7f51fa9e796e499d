"""
Tests for src/standups/validation.py
"""

import pytest

from src.standups.exceptions import ValidationFailedError
from src.standups.validation import (
    MAX_QUESTIONS,
    QUESTION_TEMPLATES,
    get_question_template,
    validate_config,
    validate_questions,
    validate_schedule,
    validate_time_format,
    validate_timing,
)

GOOD_QUESTIONS = ["What did you do yesterday?", "What will you do today?"]


class TestTimeFormat:

    @pytest.mark.parametrize("value", ["00:00", "09:30", "9:30", "23:59"])
    def test_valid(self, value):
        assert validate_time_format(value) is True

    @pytest.mark.parametrize("value", ["", "24:00", "12:60", "noon", "12-30"])
    def test_invalid(self, value):
        assert validate_time_format(value) is False


class TestSchedule:

    def test_valid_schedule(self):
        validate_schedule([1, 2, 3, 4, 5], "09:00", "America/New_York")

    def test_requires_a_weekday(self):
        with pytest.raises(ValidationFailedError, match="At least one weekday"):
            validate_schedule([], "09:00", "UTC")

    def test_weekday_range(self):
        with pytest.raises(ValidationFailedError, match="between 0-6"):
            validate_schedule([7], "09:00", "UTC")

    def test_duplicate_weekdays(self):
        with pytest.raises(ValidationFailedError, match="Duplicate"):
            validate_schedule([1, 1], "09:00", "UTC")

    def test_bad_time(self):
        with pytest.raises(ValidationFailedError, match="HH:MM"):
            validate_schedule([1], "25:00", "UTC")

    def test_unknown_timezone(self):
        with pytest.raises(ValidationFailedError, match="Invalid timezone"):
            validate_schedule([1], "09:00", "Mars/Olympus_Mons")

    def test_any_iana_zone_accepted(self):
        validate_schedule([1], "09:00", "Pacific/Chatham")


class TestQuestions:

    def test_valid(self):
        validate_questions(GOOD_QUESTIONS)

    def test_at_least_one(self):
        with pytest.raises(ValidationFailedError, match="At least 1"):
            validate_questions([])

    def test_max_questions(self):
        questions = [f"Question number {i} for the team?" for i in range(MAX_QUESTIONS + 1)]
        with pytest.raises(ValidationFailedError, match="Maximum"):
            validate_questions(questions)

    def test_too_short(self):
        with pytest.raises(ValidationFailedError, match="at least 10"):
            validate_questions(["Why?"])

    def test_too_long(self):
        with pytest.raises(ValidationFailedError, match="cannot exceed"):
            validate_questions(["x" * 201])

    def test_blank(self):
        with pytest.raises(ValidationFailedError, match="cannot be empty"):
            validate_questions(["   "])

    def test_case_insensitive_duplicates(self):
        with pytest.raises(ValidationFailedError, match="Duplicate"):
            validate_questions(["What did you do?", "what did you do? "])


class TestTiming:

    @pytest.mark.parametrize("hours", [1, 24])
    def test_timeout_bounds(self, hours):
        validate_timing(hours, 0)

    @pytest.mark.parametrize("hours", [0, 25])
    def test_timeout_out_of_range(self, hours):
        with pytest.raises(ValidationFailedError, match="Response timeout"):
            validate_timing(hours, 0)

    def test_reminder_out_of_range(self):
        with pytest.raises(ValidationFailedError, match="Reminder"):
            validate_timing(2, 61)


class TestConfig:

    def test_full_config(self):
        validate_config(GOOD_QUESTIONS, [1, 3], "09:00", "Europe/London", 2, 10)

    def test_first_error_is_reported(self):
        with pytest.raises(ValidationFailedError, match="At least 1"):
            validate_config([], [], "bad", "nowhere", 0, 99)


class TestTemplates:

    def test_four_templates(self):
        assert [t.name for t in QUESTION_TEMPLATES] == [
            "Classic Scrum",
            "Async Friendly",
            "Goal Oriented",
            "Retrospective Style",
        ]

    def test_templates_are_valid(self):
        for template in QUESTION_TEMPLATES:
            validate_questions(list(template.questions))

    def test_lookup_is_case_insensitive(self):
        assert get_question_template("classic scrum").name == "Classic Scrum"

    def test_unknown_template(self):
        with pytest.raises(ValidationFailedError):
            get_question_template("Daily Haiku")
