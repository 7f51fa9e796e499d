"""
Unit tests for TeamRepository.

Tests org-scoped lookups, config versioning with the active pointer and
the participant roster.
"""

import pytest
from unittest.mock import AsyncMock, Mock

from sqlalchemy.exc import IntegrityError

from src.database.exceptions import DatabaseConstraintError, DatabaseOperationError
from src.database.models import (
    DeliveryTypeEnum,
    StandupConfigDB,
    StandupConfigMemberDB,
    TeamDB,
    TeamMemberDB,
)
from src.database.repositories.teams import TeamRepository, get_team_repository


@pytest.fixture
def mock_database():
    """Mock database with session context manager."""
    db = Mock()
    session = AsyncMock()

    # Mock session context manager
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)

    # Mock session methods
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.add = Mock()

    db.session = Mock(return_value=session)

    return db, session


@pytest.fixture
def team_repository(mock_database):
    """Create TeamRepository with mocked database."""
    db, session = mock_database
    repo = TeamRepository()
    repo.db = db
    return repo, session


def scalar_result(value):
    result = Mock()
    result.scalar_one_or_none.return_value = value
    return result


def scalars_result(values):
    result = Mock()
    result.scalars.return_value.all.return_value = values
    return result


# ============================================================
# TEAM TESTS
# ============================================================

@pytest.mark.asyncio
async def test_create_team(team_repository):
    repo, session = team_repository

    team = await repo.create_team("org-1", "Platform", "Europe/Paris")

    assert team.org_id == "org-1"
    assert team.timezone == "Europe/Paris"
    session.add.assert_called_once()
    session.flush.assert_called_once()


@pytest.mark.asyncio
async def test_get_team_for_org(team_repository):
    repo, session = team_repository
    team = TeamDB(id="team-1", org_id="org-1", name="Platform", timezone="UTC")
    session.execute.return_value = scalar_result(team)

    assert await repo.get_team_for_org("team-1", "org-1") is team
    query = str(session.execute.call_args[0][0])
    assert "org_id" in query


@pytest.mark.asyncio
async def test_get_team_for_other_org(team_repository):
    repo, session = team_repository
    session.execute.return_value = scalar_result(None)

    assert await repo.get_team_for_org("team-1", "org-2") is None


@pytest.mark.asyncio
async def test_get_teams_with_active_config(team_repository):
    repo, session = team_repository
    teams = [TeamDB(id="a", active_config_id="c1"), TeamDB(id="b", active_config_id="c2")]
    session.execute.return_value = scalars_result(teams)

    assert await repo.get_teams_with_active_config() == teams
    assert "teams.org_id" not in str(session.execute.call_args[0][0])


@pytest.mark.asyncio
async def test_get_teams_with_active_config_for_org(team_repository):
    repo, session = team_repository
    session.execute.return_value = scalars_result([])

    await repo.get_teams_with_active_config("org-1")

    query = str(session.execute.call_args[0][0])
    assert "teams.active_config_id IS NOT NULL" in query
    assert "teams.org_id = " in query


# ============================================================
# CONFIG TESTS
# ============================================================

@pytest.mark.asyncio
async def test_create_config_activates(team_repository):
    repo, session = team_repository
    team = TeamDB(id="team-1", org_id="org-1", name="Platform", timezone="UTC")
    session.execute.return_value = scalar_result(team)

    async def assign_ids():
        for call in session.add.call_args_list:
            obj = call.args[0]
            if isinstance(obj, StandupConfigDB) and obj.id is None:
                obj.id = "config-1"

    session.flush.side_effect = assign_ids

    config = await repo.create_config(
        team_id="team-1",
        questions=["What did you do yesterday?"],
        weekdays=[5, 1, 3],
        time_local="09:00",
        member_ids=["m1", "m2"],
        target_channel_id="C1",
    )

    assert config.weekdays == [1, 3, 5]
    assert team.active_config_id == "config-1"
    added = [c.args[0] for c in session.add.call_args_list]
    assert isinstance(added[0], StandupConfigDB)
    roster = [m for m in added if isinstance(m, StandupConfigMemberDB)]
    assert [(m.config_id, m.team_member_id) for m in roster] == [("config-1", "m1"), ("config-1", "m2")]


@pytest.mark.asyncio
async def test_create_config_without_activation(team_repository):
    repo, session = team_repository

    config = await repo.create_config(
        team_id="team-1",
        questions=["What did you do yesterday?"],
        weekdays=[1],
        time_local="09:00",
        member_ids=["m1"],
        delivery_type=DeliveryTypeEnum.DIRECT_MESSAGE,
        activate=False,
    )

    assert config.delivery_type == DeliveryTypeEnum.DIRECT_MESSAGE
    session.execute.assert_not_called()


@pytest.mark.asyncio
async def test_create_config_unknown_team(team_repository):
    repo, session = team_repository
    session.execute.return_value = scalar_result(None)

    with pytest.raises(DatabaseOperationError):
        await repo.create_config("missing", ["Question one here?"], [1], "09:00", ["m1"])


@pytest.mark.asyncio
async def test_create_config_constraint_violation(team_repository):
    repo, session = team_repository
    session.flush.side_effect = IntegrityError("INSERT", {}, Exception("fk violation"))

    with pytest.raises(DatabaseConstraintError):
        await repo.create_config("team-1", ["Question one here?"], [1], "09:00", ["m1"])


@pytest.mark.asyncio
async def test_update_config_ignores_unknown_fields(team_repository):
    repo, session = team_repository
    config = StandupConfigDB(id="c1", team_id="team-1", time_local="09:00")
    session.execute.return_value = scalar_result(config)

    assert await repo.update_config("c1", {"time_local": "10:30", "team_id": "team-2"}) is True
    assert config.time_local == "10:30"
    assert config.team_id == "team-1"


@pytest.mark.asyncio
async def test_update_missing_config(team_repository):
    repo, session = team_repository
    session.execute.return_value = scalar_result(None)

    assert await repo.update_config("missing", {"time_local": "10:30"}) is False


@pytest.mark.asyncio
async def test_set_active_config(team_repository):
    repo, session = team_repository
    team = TeamDB(id="team-1", active_config_id="c1")
    session.execute.return_value = scalar_result(team)

    assert await repo.set_active_config("team-1", None) is True
    assert team.active_config_id is None


# ============================================================
# MEMBER TESTS
# ============================================================

@pytest.mark.asyncio
async def test_add_member(team_repository):
    repo, session = team_repository

    member = await repo.add_member("team-1", integration_name="alice.slack", platform_user_id="U1")

    assert member.active is True
    assert member.name is None
    session.add.assert_called_once()


@pytest.mark.asyncio
async def test_deactivate_member(team_repository):
    repo, session = team_repository
    member = TeamMemberDB(id="m1", team_id="team-1", active=True)
    session.execute.return_value = scalar_result(member)

    assert await repo.deactivate_member("m1") is True
    assert member.active is False


@pytest.mark.asyncio
async def test_get_participating_members(team_repository):
    repo, session = team_repository
    members = [TeamMemberDB(id="m1", active=True)]
    session.execute.return_value = scalars_result(members)

    assert await repo.get_participating_members("c1") == members
    query = str(session.execute.call_args[0][0])
    assert "standup_config_members" in query


def test_singleton():
    assert get_team_repository() is get_team_repository()
