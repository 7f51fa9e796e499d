"""
Pytest configuration and shared fixtures.
"""

import pytest
from src.standups.answers import AnswerCollectionService
from src.standups.instances import StandupInstanceService
from src.standups.tokens import MagicTokenCodec, MagicTokenService
from tests.fakes import (
    QUESTIONS,
    T0,
    TOKEN_SECRET,
    FakeAnswerRepository,
    FakeClock,
    FakeInstanceRepository,
    FakeTeamRepository,
)

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


@pytest.fixture
def clock():
    """Clock frozen at T0."""
    return FakeClock(T0)


@pytest.fixture
def team_repo():
    return FakeTeamRepository()


@pytest.fixture
def instance_repo(team_repo):
    return FakeInstanceRepository(team_repo)


@pytest.fixture
def answer_repo():
    return FakeAnswerRepository()


@pytest.fixture
def token_service(instance_repo, team_repo, clock):
    return MagicTokenService(
        instance_repo=instance_repo,
        team_repo=team_repo,
        codec=MagicTokenCodec(secret=TOKEN_SECRET, algorithm="HS256", clock=clock),
        clock=clock,
        base_url="https://standup.example.com",
    )


@pytest.fixture
def instance_service(team_repo, instance_repo, answer_repo, clock):
    return StandupInstanceService(
        team_repo=team_repo,
        instance_repo=instance_repo,
        answer_repo=answer_repo,
        clock=clock,
        batch_concurrency=4,
    )


@pytest.fixture
def answer_service(instance_repo, team_repo, answer_repo, token_service, clock):
    return AnswerCollectionService(
        instance_repo=instance_repo,
        team_repo=team_repo,
        answer_repo=answer_repo,
        token_service=token_service,
        clock=clock,
    )


@pytest.fixture
def seeded_team(team_repo):
    """UTC team, Monday-Friday at 09:00, three questions, two active members and one inactive."""
    team = team_repo.add_team(org_id="org-1", timezone="UTC", name="Platform")
    alice = team_repo.add_member_sync(team, name="Alice", platform_user_id="U_ALICE")
    bob = team_repo.add_member_sync(team, integration_name="bob.slack", fallback_user_id="bob@example.com")
    carol = team_repo.add_member_sync(team, name="Carol", platform_user_id="U_CAROL", active=False)
    config = team_repo.add_config(team, QUESTIONS, [1, 2, 3, 4, 5], [alice, bob, carol])
    return {"team": team, "alice": alice, "bob": bob, "carol": carol, "config": config}
