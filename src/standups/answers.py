"""
Response collection for standup instances.

Validates and writes a member's answers atomically: every answer in a call is
checked before anything is written, and the write itself is one upsert
transaction.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..database.models import StandupInstanceDB
from ..database.repositories.answers import AnswerRepository, dedupe_answers, get_answer_repository
from ..database.repositories.instances import StandupInstanceRepository, get_instance_repository
from ..database.repositories.teams import TeamRepository, get_team_repository
from ..utils.datetime_utils import ensure_aware_utc, utc_now
from .exceptions import (
    ForbiddenError,
    NotFoundError,
    ResponseWindowClosedError,
    UnauthenticatedError,
    ValidationFailedError,
)
from .participation import CompletionStats, ParticipationCalculator, can_still_submit
from .schedule import response_deadline
from .snapshot import UNKNOWN_MEMBER_NAME, ConfigSnapshot
from .state_machine import coerce_state
from .tokens import MagicTokenService, get_magic_token_service

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    standup_instance_id: str
    team_member_id: str
    answers_written: int
    submitted_at: datetime


def normalize_answers(answers: Iterable[Any]) -> List[Tuple[int, str]]:
    """
    Accept (index, text) pairs, dicts or objects with question_index/text.

    Raises:
        ValidationFailedError: an entry has no usable index or text
    """
    normalized = []
    for answer in answers:
        if isinstance(answer, dict):
            index, text = answer.get("question_index"), answer.get("text")
        elif isinstance(answer, (tuple, list)) and len(answer) == 2:
            index, text = answer
        else:
            index = getattr(answer, "question_index", None)
            text = getattr(answer, "text", None)

        if isinstance(index, bool) or not isinstance(index, int):
            raise ValidationFailedError(f"Invalid question index: {index!r}")
        if not isinstance(text, str):
            raise ValidationFailedError(f"Answer text for question {index} must be a string")
        normalized.append((index, text))
    return normalized


class AnswerCollectionService:
    """Collects, reads and summarizes answers for standup instances."""

    def __init__(
        self,
        instance_repo: Optional[StandupInstanceRepository] = None,
        team_repo: Optional[TeamRepository] = None,
        answer_repo: Optional[AnswerRepository] = None,
        token_service: Optional[MagicTokenService] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.instances = instance_repo or get_instance_repository()
        self.teams = team_repo or get_team_repository()
        self.answers = answer_repo or get_answer_repository()
        self.tokens = token_service or get_magic_token_service()
        self.clock = clock

    # ==================== SUBMISSION ====================

    async def submit_answers(
        self,
        instance_id: str,
        member_id: str,
        answers: Sequence[Any],
        org_id: str,
    ) -> SubmissionResult:
        """
        Upsert a batch of a member's answers for one instance.

        Checks run in order: instance in org, member active in the team,
        member on the instance roster, every index in range, window open.
        A failed check writes nothing.

        Raises:
            NotFoundError: instance outside org, or member not active in the team
            ForbiddenError: member not on the instance's roster
            ValidationFailedError: any question index out of range
            ResponseWindowClosedError: instance not collecting or deadline passed
        """
        instance = await self.instances.get_for_org(instance_id, org_id)
        if not instance:
            raise NotFoundError("Standup instance not found")
        return await self._submit(instance, member_id, answers)

    async def submit_answer(
        self,
        instance_id: str,
        member_id: str,
        question_index: int,
        text: str,
        org_id: str,
    ) -> SubmissionResult:
        return await self.submit_answers(instance_id, member_id, [(question_index, text)], org_id)

    async def submit_answers_with_token(self, token: str, answers: Sequence[Any]) -> SubmissionResult:
        """
        Submit using a magic token instead of an authenticated member.

        Raises:
            UnauthenticatedError: token invalid, expired or no longer bound to an active participant
        """
        payload = await self.tokens.validate_token(token)
        if payload is None:
            raise UnauthenticatedError("Invalid or expired magic token")

        instance = await self.instances.get_for_org(payload.standup_instance_id, payload.org_id)
        if not instance:
            raise NotFoundError("Standup instance not found")
        return await self._submit(instance, payload.team_member_id, answers)

    async def _submit(
        self,
        instance: StandupInstanceDB,
        member_id: str,
        answers: Sequence[Any],
    ) -> SubmissionResult:
        member = await self.teams.get_active_member(instance.team_id, member_id)
        if not member:
            raise NotFoundError("Team member not found or not active")

        snapshot = ConfigSnapshot.from_dict(instance.config_snapshot)
        if member_id not in snapshot.member_ids:
            raise ForbiddenError("Team member is not a participant in this standup")

        normalized = normalize_answers(answers)
        if not normalized:
            raise ValidationFailedError("At least one answer is required")

        invalid = sorted({i for i, _ in normalized if not 0 <= i < snapshot.question_count})
        if invalid:
            raise ValidationFailedError(
                f"Invalid question index {invalid[0]}: standup has {snapshot.question_count} questions"
            )

        now = ensure_aware_utc(self.clock())
        deadline = response_deadline(instance.created_at, snapshot.response_timeout_hours)
        if not can_still_submit(instance.state, deadline, now):
            logger.warning(
                f"Rejected late submission from {member_id} for instance {instance.id} "
                f"(state={coerce_state(instance.state).value}, deadline={deadline.isoformat()})"
            )
            raise ResponseWindowClosedError("Response window for this standup has closed")

        written = await self.answers.upsert_many(
            instance.id, member_id, dedupe_answers(normalized), submitted_at=now
        )

        logger.info(f"Member {member_id} submitted {written} answers for instance {instance.id}")
        return SubmissionResult(
            standup_instance_id=instance.id,
            team_member_id=member_id,
            answers_written=written,
            submitted_at=now,
        )

    # ==================== READS ====================

    async def _load(self, instance_id: str, org_id: Optional[str] = None) -> Tuple[StandupInstanceDB, ConfigSnapshot]:
        if org_id is None:
            instance = await self.instances.get_by_id(instance_id)
        else:
            instance = await self.instances.get_for_org(instance_id, org_id)
        if not instance:
            raise NotFoundError("Standup instance not found")
        return instance, ConfigSnapshot.from_dict(instance.config_snapshot)

    async def get_answers(
        self,
        instance_id: str,
        org_id: str,
        member_id: Optional[str] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """Answers grouped per member, each paired with its question text."""
        _, snapshot = await self._load(instance_id, org_id)
        answers = await self.answers.get_for_instance(instance_id, member_id)

        grouped: Dict[str, Dict[str, Any]] = {}
        for answer in answers:
            entry = grouped.get(answer.team_member_id)
            if entry is None:
                member = snapshot.get_member(answer.team_member_id)
                entry = grouped[answer.team_member_id] = {
                    "team_member_id": answer.team_member_id,
                    "name": member.name if member else UNKNOWN_MEMBER_NAME,
                    "answers": [],
                }
            in_range = 0 <= answer.question_index < snapshot.question_count
            entry["answers"].append({
                "question_index": answer.question_index,
                "question": snapshot.questions[answer.question_index] if in_range else None,
                "text": answer.text,
                "submitted_at": answer.submitted_at,
            })
        return grouped

    async def get_missing_answers(self, instance_id: str, member_id: str, org_id: str) -> List[int]:
        """Question indices the member has not answered yet."""
        _, snapshot = await self._load(instance_id, org_id)
        answered = {a.question_index for a in await self.answers.get_for_instance(instance_id, member_id)}
        return [i for i in range(snapshot.question_count) if i not in answered]

    async def is_response_complete(self, instance_id: str, member_id: str) -> bool:
        _, snapshot = await self._load(instance_id)
        answers = await self.answers.get_for_instance(instance_id, member_id)
        return ParticipationCalculator(snapshot, answers).is_member_complete(member_id)

    async def has_existing_responses(self, instance_id: str, member_id: str) -> bool:
        return await self.answers.count_for_member(instance_id, member_id) > 0

    async def calculate_completion_stats(self, instance_id: str) -> CompletionStats:
        instance, snapshot = await self._load(instance_id)
        answers = await self.answers.get_for_instance(instance_id)
        return ParticipationCalculator(snapshot, answers).completion_stats(created_at=instance.created_at)

    async def get_response_history(
        self,
        team_id: str,
        org_id: str,
        start_date: date,
        end_date: date,
        member_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Per-instance answer summaries for a team's local dates in [start_date, end_date]."""
        if start_date > end_date:
            raise ValidationFailedError("start_date must not be after end_date")

        team = await self.teams.get_team_for_org(team_id, org_id)
        if not team:
            raise NotFoundError("Team not found")

        instances = await self.instances.get_for_team_in_range(team_id, org_id, start_date, end_date)
        answers = await self.answers.get_for_instances([i.id for i in instances])

        by_instance: Dict[str, list] = {}
        for answer in answers:
            if member_id is None or answer.team_member_id == member_id:
                by_instance.setdefault(answer.standup_instance_id, []).append(answer)

        history = []
        for instance in instances:
            snapshot = ConfigSnapshot.from_dict(instance.config_snapshot)
            instance_answers = by_instance.get(instance.id, [])
            stats = ParticipationCalculator(snapshot, instance_answers).completion_stats()
            history.append({
                "standup_instance_id": instance.id,
                "target_date": instance.target_date.isoformat(),
                "state": coerce_state(instance.state).value,
                "total_questions": snapshot.question_count,
                "responded_members": stats.responded_members,
                "answers": [
                    {
                        "team_member_id": a.team_member_id,
                        "question_index": a.question_index,
                        "text": a.text,
                        "submitted_at": a.submitted_at,
                    }
                    for a in sorted(instance_answers, key=lambda a: (a.team_member_id, a.question_index))
                ],
            })
        return history

    async def delete_member_responses(self, instance_id: str, member_id: str, org_id: str) -> int:
        """Remove a member's answers while the instance is still collecting."""
        instance, snapshot = await self._load(instance_id, org_id)
        deadline = response_deadline(instance.created_at, snapshot.response_timeout_hours)
        if not can_still_submit(instance.state, deadline, self.clock()):
            raise ResponseWindowClosedError("Cannot delete responses after the response window has closed")
        return await self.answers.delete_for_member(instance_id, member_id)


# Singleton
_answer_service: Optional[AnswerCollectionService] = None


def get_answer_service() -> AnswerCollectionService:
    """Get the answer collection service singleton."""
    global _answer_service
    if _answer_service is None:
        _answer_service = AnswerCollectionService()
    return _answer_service
