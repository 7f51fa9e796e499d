"""
Config snapshot for standup instances.

A snapshot freezes the team's active config (questions, schedule, roster,
delivery target) at instance-creation time. Instances only ever read their
own snapshot, so later edits to the live config never leak into them.
"""

import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, Optional, Tuple

from ..database.models import DeliveryTypeEnum, StandupConfigDB, TeamDB, TeamMemberDB

logger = logging.getLogger(__name__)

UNKNOWN_MEMBER_NAME = "Unknown"


@dataclass(frozen=True)
class ParticipantSnapshot:
    id: str
    name: str
    platform_user_id: str


@dataclass(frozen=True)
class DeliveryTarget:
    type: DeliveryTypeEnum = DeliveryTypeEnum.CHANNEL
    target_channel_id: Optional[str] = None


@dataclass(frozen=True)
class ConfigSnapshot:
    """Immutable copy of a team's config. Write-once, owned by one instance."""

    questions: Tuple[str, ...]
    weekdays: Tuple[int, ...]
    time_local: str
    timezone: str
    response_timeout_hours: int
    reminder_minutes_before: int
    participating_members: Tuple[ParticipantSnapshot, ...]
    delivery: DeliveryTarget = field(default_factory=DeliveryTarget)
    config_id: Optional[str] = None

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def member_ids(self) -> Tuple[str, ...]:
        return tuple(m.id for m in self.participating_members)

    def get_member(self, member_id: str) -> Optional[ParticipantSnapshot]:
        for member in self.participating_members:
            if member.id == member_id:
                return member
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the instance's JSON column."""
        data = asdict(self)
        data["questions"] = list(self.questions)
        data["weekdays"] = list(self.weekdays)
        data["participating_members"] = [asdict(m) for m in self.participating_members]
        data["delivery"] = {
            "type": self.delivery.type.value,
            "target_channel_id": self.delivery.target_channel_id,
        }
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConfigSnapshot":
        delivery = data.get("delivery") or {}
        return cls(
            questions=tuple(data.get("questions", [])),
            weekdays=tuple(data.get("weekdays", [])),
            time_local=data.get("time_local", "09:00"),
            timezone=data.get("timezone", "UTC"),
            response_timeout_hours=int(data.get("response_timeout_hours", 0)),
            reminder_minutes_before=int(data.get("reminder_minutes_before", 0)),
            participating_members=tuple(
                ParticipantSnapshot(
                    id=m["id"],
                    name=m.get("name") or UNKNOWN_MEMBER_NAME,
                    platform_user_id=m.get("platform_user_id") or "",
                )
                for m in data.get("participating_members", [])
            ),
            delivery=DeliveryTarget(
                type=DeliveryTypeEnum(delivery.get("type", DeliveryTypeEnum.CHANNEL.value)),
                target_channel_id=delivery.get("target_channel_id"),
            ),
            config_id=data.get("config_id"),
        )


def resolve_member_name(member: TeamMemberDB) -> str:
    """Explicit name, else the integration-provided name, else "Unknown"."""
    return member.name or member.integration_name or UNKNOWN_MEMBER_NAME


def resolve_member_handle(member: TeamMemberDB) -> str:
    """Integration handle, else the fallback identifier, else empty string."""
    return member.platform_user_id or member.fallback_user_id or ""


def build_config_snapshot(
    team: TeamDB,
    config: StandupConfigDB,
    members: Iterable[TeamMemberDB],
) -> ConfigSnapshot:
    """
    Freeze a team's active config into a ConfigSnapshot.

    Pure transformation: no I/O. Display names and external handles are
    resolved here once and never again.

    Preconditions (validated by the caller, not here):
        - config has at least one question
        - members contains at least one active participant

    Args:
        team: Team owning the config (supplies the timezone)
        config: The team's active config
        members: Resolved roster, active members only

    Returns:
        ConfigSnapshot independent of the live config objects
    """
    participants = tuple(
        ParticipantSnapshot(
            id=member.id,
            name=resolve_member_name(member),
            platform_user_id=resolve_member_handle(member),
        )
        for member in members
    )

    delivery_type = config.delivery_type or DeliveryTypeEnum.CHANNEL

    snapshot = ConfigSnapshot(
        questions=tuple(config.questions or ()),
        weekdays=tuple(sorted(config.weekdays or ())),
        time_local=config.time_local,
        timezone=team.timezone,
        response_timeout_hours=config.response_timeout_hours,
        reminder_minutes_before=config.reminder_minutes_before,
        participating_members=participants,
        delivery=DeliveryTarget(
            type=DeliveryTypeEnum(delivery_type),
            target_channel_id=config.target_channel_id,
        ),
        config_id=config.id,
    )

    logger.debug(
        f"Built snapshot for team {team.id}: {snapshot.question_count} questions, "
        f"{len(participants)} participants"
    )
    return snapshot
