"""
Validation for standup configs.

Checked when a config is saved and again, for the parts an instance depends
on, right before a snapshot is taken.
"""

import re
from dataclasses import dataclass
from typing import List, Sequence

from ..utils.datetime_utils import is_valid_timezone
from .exceptions import ValidationFailedError

TIME_LOCAL_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")

MAX_QUESTIONS = 10
MIN_QUESTION_LENGTH = 10
MAX_QUESTION_LENGTH = 200
MIN_TIMEOUT_HOURS = 1
MAX_TIMEOUT_HOURS = 24
MAX_REMINDER_MINUTES = 60


@dataclass(frozen=True)
class QuestionTemplate:
    name: str
    questions: Sequence[str]


QUESTION_TEMPLATES: List[QuestionTemplate] = [
    QuestionTemplate(
        name="Classic Scrum",
        questions=(
            "What did you accomplish yesterday?",
            "What will you work on today?",
            "Are there any blockers or impediments?",
        ),
    ),
    QuestionTemplate(
        name="Async Friendly",
        questions=(
            "What did you complete since the last standup?",
            "What are you focusing on next?",
            "What support do you need from the team?",
            "Any wins or learnings to share?",
        ),
    ),
    QuestionTemplate(
        name="Goal Oriented",
        questions=(
            "What progress did you make toward your goals?",
            "What's your main focus for today?",
            "What obstacles are blocking your progress?",
            "How can the team help you succeed?",
        ),
    ),
    QuestionTemplate(
        name="Retrospective Style",
        questions=(
            "What went well since the last standup?",
            "What could have gone better?",
            "What will you do differently today?",
            "What do you need from teammates?",
        ),
    ),
]


def get_question_template(name: str) -> QuestionTemplate:
    for template in QUESTION_TEMPLATES:
        if template.name.lower() == name.strip().lower():
            return template
    raise ValidationFailedError(f"Unknown question template: {name}")


def validate_time_format(time_local: str) -> bool:
    return bool(time_local) and TIME_LOCAL_PATTERN.match(time_local) is not None


def validate_schedule(weekdays: Sequence[int], time_local: str, timezone: str) -> None:
    """Weekdays 0..6 (Sunday = 0), unique and non-empty; HH:MM time; IANA zone."""
    if not weekdays:
        raise ValidationFailedError("At least one weekday must be selected")

    if len(weekdays) > 7:
        raise ValidationFailedError("Cannot have more than 7 weekdays")

    for day in weekdays:
        if isinstance(day, bool) or not isinstance(day, int) or day < 0 or day > 6:
            raise ValidationFailedError("Weekdays must be integers between 0-6 (Sunday=0)")

    if len(set(weekdays)) != len(weekdays):
        raise ValidationFailedError("Duplicate weekdays are not allowed")

    if not validate_time_format(time_local):
        raise ValidationFailedError("Time must be in HH:MM format (00:00 to 23:59)")

    if not is_valid_timezone(timezone):
        raise ValidationFailedError(f"Invalid timezone: {timezone}")


def validate_questions(questions: Sequence[str]) -> None:
    if not questions:
        raise ValidationFailedError("At least 1 question is required")

    if len(questions) > MAX_QUESTIONS:
        raise ValidationFailedError(f"Maximum {MAX_QUESTIONS} questions allowed")

    for i, question in enumerate(questions, start=1):
        if not isinstance(question, str):
            raise ValidationFailedError(f"Question {i} must be a string")

        trimmed = question.strip()
        if not trimmed:
            raise ValidationFailedError(f"Question {i} cannot be empty")
        if len(trimmed) < MIN_QUESTION_LENGTH:
            raise ValidationFailedError(
                f"Question {i} must be at least {MIN_QUESTION_LENGTH} characters long"
            )
        if len(trimmed) > MAX_QUESTION_LENGTH:
            raise ValidationFailedError(
                f"Question {i} cannot exceed {MAX_QUESTION_LENGTH} characters"
            )

    if len({q.strip().lower() for q in questions}) != len(questions):
        raise ValidationFailedError("Duplicate questions are not allowed")


def validate_timing(response_timeout_hours: int, reminder_minutes_before: int) -> None:
    if not MIN_TIMEOUT_HOURS <= response_timeout_hours <= MAX_TIMEOUT_HOURS:
        raise ValidationFailedError(
            f"Response timeout must be between {MIN_TIMEOUT_HOURS} and {MAX_TIMEOUT_HOURS} hours"
        )
    if not 0 <= reminder_minutes_before <= MAX_REMINDER_MINUTES:
        raise ValidationFailedError(
            f"Reminder must be between 0 and {MAX_REMINDER_MINUTES} minutes before the standup"
        )


def validate_config(
    questions: Sequence[str],
    weekdays: Sequence[int],
    time_local: str,
    timezone: str,
    response_timeout_hours: int,
    reminder_minutes_before: int,
) -> None:
    """Full validation of a config before it is saved."""
    validate_questions(questions)
    validate_schedule(weekdays, time_local, timezone)
    validate_timing(response_timeout_hours, reminder_minutes_before)
