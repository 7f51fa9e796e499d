"""
SQLAlchemy models for PostgreSQL database.

Schema includes:
- Teams (org scoped, IANA timezone, explicit active config pointer)
- Team members with integration identities
- Standup configs (historical, one active per team) and their member roster
- Standup instances with an embedded, write-once config snapshot
- Answers keyed by (instance, member, question index)
"""

from datetime import datetime, date
from typing import Optional, List
import enum
import uuid

from sqlalchemy import (
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    Date,
    ForeignKey,
    Enum as SQLEnum,
    JSON,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


# ==================== ENUMS ====================

class StandupStateEnum(str, enum.Enum):
    PENDING = "pending"
    COLLECTING = "collecting"
    POSTED = "posted"
    CLOSED = "posted"  # alias: posted is the closed/terminal state


class DeliveryTypeEnum(str, enum.Enum):
    CHANNEL = "channel"
    DIRECT_MESSAGE = "direct_message"


# ==================== TEAMS ====================

class TeamDB(Base):
    """A group of participants inside an organization."""
    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    org_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")

    # Exactly one active config per team, referenced explicitly
    active_config_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("standup_configs.id", use_alter=True, ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    members: Mapped[List["TeamMemberDB"]] = relationship(
        "TeamMemberDB", back_populates="team", cascade="all, delete-orphan"
    )
    configs: Mapped[List["StandupConfigDB"]] = relationship(
        "StandupConfigDB",
        back_populates="team",
        foreign_keys="StandupConfigDB.team_id",
        cascade="all, delete-orphan",
    )
    active_config: Mapped[Optional["StandupConfigDB"]] = relationship(
        "StandupConfigDB", foreign_keys=[active_config_id], post_update=True
    )

    __table_args__ = (
        Index("idx_teams_org", "org_id"),
    )


class TeamMemberDB(Base):
    """A member of a team, optionally linked to a chat-platform identity."""
    __tablename__ = "team_members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    team_id: Mapped[str] = mapped_column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    integration_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    platform_user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    fallback_user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    team: Mapped["TeamDB"] = relationship("TeamDB", back_populates="members")

    __table_args__ = (
        Index("idx_team_members_team_active", "team_id", "active"),
    )


# ==================== CONFIGS ====================

class StandupConfigDB(Base):
    """Live, editable standup configuration. Historical rows are kept."""
    __tablename__ = "standup_configs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    team_id: Mapped[str] = mapped_column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="Daily Standup")

    questions: Mapped[List[str]] = mapped_column(JSON, default=list)
    weekdays: Mapped[List[int]] = mapped_column(JSON, default=list)  # 0 = Sunday
    time_local: Mapped[str] = mapped_column(String(5), nullable=False, default="09:00")
    response_timeout_hours: Mapped[int] = mapped_column(Integer, default=2)
    reminder_minutes_before: Mapped[int] = mapped_column(Integer, default=10)

    delivery_type: Mapped[DeliveryTypeEnum] = mapped_column(
        SQLEnum(DeliveryTypeEnum, values_callable=lambda e: [m.value for m in e]),
        default=DeliveryTypeEnum.CHANNEL,
    )
    target_channel_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    team: Mapped["TeamDB"] = relationship("TeamDB", back_populates="configs", foreign_keys=[team_id])
    config_members: Mapped[List["StandupConfigMemberDB"]] = relationship(
        "StandupConfigMemberDB", back_populates="config", cascade="all, delete-orphan"
    )


class StandupConfigMemberDB(Base):
    """Roster entry: whether a team member takes part in a config."""
    __tablename__ = "standup_config_members"

    config_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("standup_configs.id", ondelete="CASCADE"), primary_key=True
    )
    team_member_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("team_members.id", ondelete="CASCADE"), primary_key=True
    )
    include: Mapped[bool] = mapped_column(Boolean, default=True)

    config: Mapped["StandupConfigDB"] = relationship("StandupConfigDB", back_populates="config_members")
    team_member: Mapped["TeamMemberDB"] = relationship("TeamMemberDB")


# ==================== INSTANCES ====================

class StandupInstanceDB(Base):
    """One standup cycle for a team on a calendar date."""
    __tablename__ = "standup_instances"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    team_id: Mapped[str] = mapped_column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    target_date: Mapped[date] = mapped_column(Date, nullable=False)
    state: Mapped[StandupStateEnum] = mapped_column(
        SQLEnum(StandupStateEnum, values_callable=lambda e: [m.value for m in e]),
        default=StandupStateEnum.PENDING,
    )
    config_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    team: Mapped["TeamDB"] = relationship("TeamDB")
    answers: Mapped[List["AnswerDB"]] = relationship(
        "AnswerDB", back_populates="instance", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("team_id", "target_date", name="uq_standup_instances_team_date"),
        Index("idx_standup_instances_state", "state"),
    )


class AnswerDB(Base):
    """Answer to one question by one member. Resubmission overwrites the row."""
    __tablename__ = "standup_answers"

    standup_instance_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("standup_instances.id", ondelete="CASCADE"), primary_key=True
    )
    team_member_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("team_members.id", ondelete="CASCADE"), primary_key=True
    )
    question_index: Mapped[int] = mapped_column(Integer, primary_key=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    instance: Mapped["StandupInstanceDB"] = relationship("StandupInstanceDB", back_populates="answers")
