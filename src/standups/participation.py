"""
Participation metrics.

Every figure here is a view over the same answer set and snapshot; nothing is
stored as a separate counter, so "is complete" and the completion rate can
never drift apart.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Protocol, Set

from ..database.models import StandupStateEnum
from ..utils.datetime_utils import ensure_aware_utc
from .schedule import response_deadline
from .snapshot import ConfigSnapshot
from .state_machine import coerce_state


class AnswerLike(Protocol):
    team_member_id: str
    question_index: int
    submitted_at: datetime


@dataclass
class MemberParticipation:
    team_member_id: str
    name: str
    platform_user_id: str
    questions_answered: int
    total_questions: int
    is_complete: bool
    last_answer_at: Optional[datetime] = None


@dataclass
class CompletionStats:
    total_members: int
    responded_members: int
    completed_members: int
    response_rate: int
    completion_rate: int
    average_response_seconds: Optional[float] = None


@dataclass
class ParticipationReport:
    standup_instance_id: str
    state: str
    target_date: Optional[date]
    total_members: int
    responded_members: int
    completed_members: int
    response_rate: int
    completion_rate: int
    is_complete: bool
    timeout_at: Optional[datetime]
    can_still_submit: bool
    member_status: List[MemberParticipation] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "standup_instance_id": self.standup_instance_id,
            "state": self.state,
            "target_date": self.target_date.isoformat() if self.target_date else None,
            "total_members": self.total_members,
            "responded_members": self.responded_members,
            "completed_members": self.completed_members,
            "response_rate": self.response_rate,
            "completion_rate": self.completion_rate,
            "is_complete": self.is_complete,
            "timeout_at": self.timeout_at.isoformat() if self.timeout_at else None,
            "can_still_submit": self.can_still_submit,
            "member_status": [
                {
                    "team_member_id": m.team_member_id,
                    "name": m.name,
                    "platform_user_id": m.platform_user_id,
                    "questions_answered": m.questions_answered,
                    "total_questions": m.total_questions,
                    "is_complete": m.is_complete,
                    "last_answer_at": m.last_answer_at.isoformat() if m.last_answer_at else None,
                }
                for m in self.member_status
            ],
        }


def percentage(part: int, whole: int) -> int:
    """Rounded percentage; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    # half-up, not banker's rounding
    return int(part * 100 / whole + 0.5)


class ParticipationCalculator:
    """Read-side aggregation over one instance's snapshot and answers."""

    def __init__(self, snapshot: ConfigSnapshot, answers: Iterable[AnswerLike]):
        self.snapshot = snapshot
        self._questions: Dict[str, Set[int]] = {}
        self._last_answer: Dict[str, datetime] = {}
        self._first_answer: Dict[str, datetime] = {}

        for answer in answers:
            if not 0 <= answer.question_index < snapshot.question_count:
                continue
            member_id = answer.team_member_id
            self._questions.setdefault(member_id, set()).add(answer.question_index)
            submitted = ensure_aware_utc(answer.submitted_at)
            if submitted is None:
                continue
            if member_id not in self._last_answer or submitted > self._last_answer[member_id]:
                self._last_answer[member_id] = submitted
            if member_id not in self._first_answer or submitted < self._first_answer[member_id]:
                self._first_answer[member_id] = submitted

    @property
    def total_questions(self) -> int:
        return self.snapshot.question_count

    @property
    def total_members(self) -> int:
        return len(self.snapshot.participating_members)

    def questions_answered(self, member_id: str) -> int:
        """Distinct question indices the member has answered."""
        return len(self._questions.get(member_id, ()))

    def is_member_complete(self, member_id: str) -> bool:
        return self.questions_answered(member_id) >= self.total_questions

    def member_status(self) -> List[MemberParticipation]:
        return [
            MemberParticipation(
                team_member_id=member.id,
                name=member.name,
                platform_user_id=member.platform_user_id,
                questions_answered=self.questions_answered(member.id),
                total_questions=self.total_questions,
                is_complete=self.is_member_complete(member.id),
                last_answer_at=self._last_answer.get(member.id),
            )
            for member in self.snapshot.participating_members
        ]

    def responded_members(self) -> int:
        return sum(1 for m in self.snapshot.participating_members if self.questions_answered(m.id) > 0)

    def completed_members(self) -> int:
        return sum(1 for m in self.snapshot.participating_members if self.is_member_complete(m.id))

    def is_instance_complete(self) -> bool:
        """True iff every roster member answered every question."""
        return all(self.is_member_complete(m.id) for m in self.snapshot.participating_members)

    def completion_stats(self, created_at: Optional[datetime] = None) -> CompletionStats:
        responded = self.responded_members()
        completed = self.completed_members()

        average = None
        if created_at is not None:
            start = ensure_aware_utc(created_at)
            delays = [
                (self._first_answer[m.id] - start).total_seconds()
                for m in self.snapshot.participating_members
                if m.id in self._first_answer
            ]
            if delays:
                average = sum(delays) / len(delays)

        return CompletionStats(
            total_members=self.total_members,
            responded_members=responded,
            completed_members=completed,
            response_rate=percentage(responded, self.total_members),
            completion_rate=percentage(completed, self.total_members),
            average_response_seconds=average,
        )

    def report(
        self,
        instance_id: str,
        state,
        created_at: Optional[datetime],
        now: datetime,
        target_date: Optional[date] = None,
    ) -> ParticipationReport:
        """Full participation report for one instance at instant ``now``."""
        state = coerce_state(state)
        timeout_at = None
        if created_at is not None:
            timeout_at = response_deadline(created_at, self.snapshot.response_timeout_hours)

        stats = self.completion_stats()

        return ParticipationReport(
            standup_instance_id=instance_id,
            state=state.value,
            target_date=target_date,
            total_members=stats.total_members,
            responded_members=stats.responded_members,
            completed_members=stats.completed_members,
            response_rate=stats.response_rate,
            completion_rate=stats.completion_rate,
            is_complete=self.is_instance_complete(),
            timeout_at=timeout_at,
            can_still_submit=can_still_submit(state, timeout_at, now),
            member_status=self.member_status(),
        )


def can_still_submit(state, timeout_at: Optional[datetime], now: datetime) -> bool:
    """Collecting, and either no deadline is computable or ``now`` is before it."""
    if coerce_state(state) != StandupStateEnum.COLLECTING:
        return False
    if timeout_at is None:
        return True
    return ensure_aware_utc(now) < ensure_aware_utc(timeout_at)
