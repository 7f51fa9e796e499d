"""
Standup config management.

Configs are validated before they are saved. Saving a new config moves the
team's active pointer; existing instances are unaffected because they read
only their own snapshot.
"""

import logging
from typing import Any, Dict, Optional, Sequence

from ..database.models import DeliveryTypeEnum, StandupConfigDB
from ..database.repositories.teams import TeamRepository, get_team_repository
from .exceptions import NotFoundError, ValidationFailedError
from .validation import get_question_template, validate_config

logger = logging.getLogger(__name__)


class StandupConfigService:
    """Creates and edits team configs."""

    def __init__(self, team_repo: Optional[TeamRepository] = None):
        self.teams = team_repo or get_team_repository()

    async def create_config(
        self,
        team_id: str,
        org_id: str,
        questions: Sequence[str],
        weekdays: Sequence[int],
        time_local: str,
        member_ids: Sequence[str],
        response_timeout_hours: int = 2,
        reminder_minutes_before: int = 10,
        name: str = "Daily Standup",
        delivery_type: DeliveryTypeEnum = DeliveryTypeEnum.CHANNEL,
        target_channel_id: Optional[str] = None,
    ) -> StandupConfigDB:
        """
        Validate and save a config, making it the team's active one.

        Raises:
            NotFoundError: team missing or outside ``org_id``
            ValidationFailedError: invalid config, or a member not active in the team
        """
        team = await self.teams.get_team_for_org(team_id, org_id)
        if not team:
            raise NotFoundError("Team not found")

        validate_config(
            questions=questions,
            weekdays=weekdays,
            time_local=time_local,
            timezone=team.timezone,
            response_timeout_hours=response_timeout_hours,
            reminder_minutes_before=reminder_minutes_before,
        )
        if delivery_type == DeliveryTypeEnum.CHANNEL and not target_channel_id:
            raise ValidationFailedError("Channel delivery requires a target channel")

        await self._check_members(team_id, member_ids)

        config = await self.teams.create_config(
            team_id=team_id,
            questions=[q.strip() for q in questions],
            weekdays=weekdays,
            time_local=time_local,
            member_ids=member_ids,
            response_timeout_hours=response_timeout_hours,
            reminder_minutes_before=reminder_minutes_before,
            name=name,
            delivery_type=delivery_type,
            target_channel_id=target_channel_id,
            activate=True,
        )
        logger.info(f"Team {team_id} now uses config {config.id}")
        return config

    async def create_config_from_template(
        self,
        team_id: str,
        org_id: str,
        template_name: str,
        weekdays: Sequence[int],
        time_local: str,
        member_ids: Sequence[str],
        **kwargs,
    ) -> StandupConfigDB:
        template = get_question_template(template_name)
        return await self.create_config(
            team_id, org_id, list(template.questions), weekdays, time_local, member_ids,
            name=kwargs.pop("name", template.name),
            **kwargs,
        )

    async def update_config(self, team_id: str, org_id: str, updates: Dict[str, Any]) -> bool:
        """Edit the team's active config in place after validating the merged result."""
        team = await self.teams.get_team_for_org(team_id, org_id)
        if not team:
            raise NotFoundError("Team not found")

        config = await self.teams.get_active_config(team_id)
        if not config:
            raise ValidationFailedError("No active standup configuration found for team")

        merged = {
            "questions": config.questions,
            "weekdays": config.weekdays,
            "time_local": config.time_local,
            "response_timeout_hours": config.response_timeout_hours,
            "reminder_minutes_before": config.reminder_minutes_before,
        }
        merged.update({k: v for k, v in updates.items() if k in merged})
        validate_config(timezone=team.timezone, **merged)

        return await self.teams.update_config(config.id, updates)

    async def _check_members(self, team_id: str, member_ids: Sequence[str]) -> None:
        if not member_ids:
            raise ValidationFailedError("At least one participating member is required")

        active = {m.id for m in await self.teams.get_active_members(team_id)}
        unknown = [m for m in member_ids if m not in active]
        if unknown:
            raise ValidationFailedError(f"Members not active in team: {', '.join(unknown)}")
