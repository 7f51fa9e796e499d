"""
Repository for standup answers.

Answers are keyed by (instance, member, question index). Writes are upserts:
a resubmission overwrites text and timestamp, it never adds a row.
"""

import logging
from datetime import datetime
from typing import Optional, List, Sequence, Tuple

from sqlalchemy import select, delete, func
from sqlalchemy.dialects.postgresql import insert as pg_insert

from ..connection import get_database
from ..models import AnswerDB

logger = logging.getLogger(__name__)


def dedupe_answers(answers: Sequence[Tuple[int, str]]) -> List[Tuple[int, str]]:
    """Collapse repeated question indices, keeping the last text for each."""
    latest = {}
    for question_index, text in answers:
        latest[question_index] = text
    return sorted(latest.items())


class AnswerRepository:
    """Repository for answer operations."""

    def __init__(self):
        self.db = get_database()

    async def upsert_many(
        self,
        instance_id: str,
        member_id: str,
        answers: Sequence[Tuple[int, str]],
        submitted_at: datetime,
    ) -> int:
        """
        Write a member's answers in one transaction.

        Either every answer is applied or none is. Concurrent writers for the
        same question resolve last-writer-wins.

        Returns:
            Number of distinct questions written
        """
        rows = [
            {
                "standup_instance_id": instance_id,
                "team_member_id": member_id,
                "question_index": question_index,
                "text": text,
                "submitted_at": submitted_at,
            }
            for question_index, text in dedupe_answers(answers)
        ]
        if not rows:
            return 0

        async with self.db.session() as session:
            stmt = pg_insert(AnswerDB).values(rows)
            stmt = stmt.on_conflict_do_update(
                index_elements=[
                    AnswerDB.standup_instance_id,
                    AnswerDB.team_member_id,
                    AnswerDB.question_index,
                ],
                set_={
                    "text": stmt.excluded.text,
                    "submitted_at": stmt.excluded.submitted_at,
                },
            )
            await session.execute(stmt)

        logger.info(f"Upserted {len(rows)} answers for member {member_id} in instance {instance_id}")
        return len(rows)

    async def get_for_instance(
        self,
        instance_id: str,
        member_id: Optional[str] = None,
    ) -> List[AnswerDB]:
        """Answers for an instance ordered by member then question."""
        async with self.db.session() as session:
            query = select(AnswerDB).where(AnswerDB.standup_instance_id == instance_id)
            if member_id:
                query = query.where(AnswerDB.team_member_id == member_id)

            result = await session.execute(
                query.order_by(AnswerDB.team_member_id, AnswerDB.question_index)
            )
            return list(result.scalars().all())

    async def get_for_instances(self, instance_ids: Sequence[str]) -> List[AnswerDB]:
        if not instance_ids:
            return []
        async with self.db.session() as session:
            result = await session.execute(
                select(AnswerDB).where(AnswerDB.standup_instance_id.in_(list(instance_ids)))
            )
            return list(result.scalars().all())

    async def count_for_member(self, instance_id: str, member_id: str) -> int:
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count()).select_from(AnswerDB).where(
                    AnswerDB.standup_instance_id == instance_id,
                    AnswerDB.team_member_id == member_id,
                )
            )
            return result.scalar() or 0

    async def delete_for_member(self, instance_id: str, member_id: str) -> int:
        async with self.db.session() as session:
            result = await session.execute(
                delete(AnswerDB).where(
                    AnswerDB.standup_instance_id == instance_id,
                    AnswerDB.team_member_id == member_id,
                )
            )
            deleted = result.rowcount or 0
            logger.info(f"Deleted {deleted} answers for member {member_id} in instance {instance_id}")
            return deleted


# Singleton
_answer_repo: Optional[AnswerRepository] = None


def get_answer_repository() -> AnswerRepository:
    """Get the answer repository singleton."""
    global _answer_repo
    if _answer_repo is None:
        _answer_repo = AnswerRepository()
    return _answer_repo
