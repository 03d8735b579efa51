"""Team and roster models."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from teamhub.models.base import Base, new_id, utcnow


class Team(Base):
    """Competitive unit registered to a tournament."""

    __tablename__ = "teams"
    __table_args__ = (
        UniqueConstraint("tournament_id", "name", name="uq_teams_tournament_name"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tournament_id: Mapped[str] = mapped_column(ForeignKey("tournaments.id"), nullable=False, index=True)
    captain_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="registered")  # registered, confirmed, disqualified, withdrawn
    skill_level: Mapped[str] = mapped_column(String(16), nullable=False, default="amateur")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    tournament: Mapped["Tournament"] = relationship("Tournament", back_populates="teams")
    members: Mapped[list["TeamMember"]] = relationship(
        "TeamMember",
        back_populates="team",
        cascade="all, delete-orphan",
        order_by=lambda: (TeamMember.role, TeamMember.joined_at),
    )

    @property
    def member_count(self) -> int:
        """Roster size. Only valid once members are loaded."""
        return len(self.members)


class TeamMember(Base):
    """Membership of a profile in a team. At most one row per (team, user)."""

    __tablename__ = "team_members"

    team_id: Mapped[str] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), primary_key=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="player")  # captain, player
    position: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    team: Mapped["Team"] = relationship("Team", back_populates="members")
    profile: Mapped["Profile"] = relationship("Profile", back_populates="memberships")
