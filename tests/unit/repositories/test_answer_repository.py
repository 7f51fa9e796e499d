"""
Unit tests for AnswerRepository.

The upsert must be a single statement keyed on (instance, member,
question index) so a batch applies entirely or not at all.
"""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock, Mock

import pytz
from sqlalchemy.dialects import postgresql

from src.database.repositories.answers import AnswerRepository, dedupe_answers

SUBMITTED_AT = datetime(2026, 3, 2, 12, 30, tzinfo=pytz.UTC)


@pytest.fixture
def mock_database():
    """Mock database with session context manager."""
    db = Mock()
    session = AsyncMock()

    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    session.execute = AsyncMock()

    db.session = Mock(return_value=session)

    return db, session


@pytest.fixture
def answer_repository(mock_database):
    db, session = mock_database
    repo = AnswerRepository()
    repo.db = db
    return repo, session


class TestDedupeAnswers:

    def test_last_text_wins(self):
        assert dedupe_answers([(1, "a"), (0, "b"), (1, "c")]) == [(0, "b"), (1, "c")]

    def test_empty(self):
        assert dedupe_answers([]) == []


# ============================================================
# UPSERT TESTS
# ============================================================

@pytest.mark.asyncio
async def test_upsert_is_one_statement(answer_repository):
    repo, session = answer_repository

    written = await repo.upsert_many("inst-1", "m1", [(0, "a"), (1, "b"), (2, "c")], SUBMITTED_AT)

    assert written == 3
    session.execute.assert_called_once()
    sql = str(session.execute.call_args[0][0].compile(dialect=postgresql.dialect()))
    assert "ON CONFLICT (standup_instance_id, team_member_id, question_index) DO UPDATE" in sql
    assert "excluded.text" in sql


@pytest.mark.asyncio
async def test_upsert_collapses_duplicates(answer_repository):
    repo, session = answer_repository

    written = await repo.upsert_many("inst-1", "m1", [(0, "first"), (0, "second")], SUBMITTED_AT)

    assert written == 1
    params = session.execute.call_args[0][0].compile(dialect=postgresql.dialect()).params
    assert "second" in params.values()
    assert "first" not in params.values()


@pytest.mark.asyncio
async def test_upsert_nothing(answer_repository):
    repo, session = answer_repository

    assert await repo.upsert_many("inst-1", "m1", [], SUBMITTED_AT) == 0
    session.execute.assert_not_called()


@pytest.mark.asyncio
async def test_upsert_error_propagates(answer_repository):
    repo, session = answer_repository
    session.execute.side_effect = RuntimeError("connection lost")

    with pytest.raises(RuntimeError):
        await repo.upsert_many("inst-1", "m1", [(0, "a")], SUBMITTED_AT)


# ============================================================
# READ TESTS
# ============================================================

@pytest.mark.asyncio
async def test_get_for_instance_filters_member(answer_repository):
    repo, session = answer_repository
    result = Mock()
    result.scalars.return_value.all.return_value = []
    session.execute.return_value = result

    await repo.get_for_instance("inst-1", "m1")

    query = str(session.execute.call_args[0][0])
    assert "standup_answers.team_member_id" in query
    assert "ORDER BY standup_answers.team_member_id, standup_answers.question_index" in query


@pytest.mark.asyncio
async def test_get_for_instances_empty(answer_repository):
    repo, session = answer_repository

    assert await repo.get_for_instances([]) == []
    session.execute.assert_not_called()


@pytest.mark.asyncio
async def test_count_for_member(answer_repository):
    repo, session = answer_repository
    result = Mock()
    result.scalar.return_value = 2
    session.execute.return_value = result

    assert await repo.count_for_member("inst-1", "m1") == 2


@pytest.mark.asyncio
async def test_delete_for_member(answer_repository):
    repo, session = answer_repository
    session.execute.return_value = Mock(rowcount=3)

    assert await repo.delete_for_member("inst-1", "m1") == 3
