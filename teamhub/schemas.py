"""Pydantic schemas shared by the gateways, the team service and the API."""
from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value))


class TeamStatus(str, Enum):
    REGISTERED = "registered"
    CONFIRMED = "confirmed"
    DISQUALIFIED = "disqualified"
    WITHDRAWN = "withdrawn"


class SkillLevel(str, Enum):
    DEBUTANT = "debutant"
    AMATEUR = "amateur"
    CONFIRME = "confirme"
    EXPERT = "expert"
    PROFESSIONNEL = "professionnel"


class MemberRole(str, Enum):
    CAPTAIN = "captain"
    PLAYER = "player"


# --- Records returned by gateways ---


class ProfileSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class TournamentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    status: Optional[str] = None
    start_date: Optional[datetime] = None


class TeamSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    tournament_id: str


class TeamMemberRead(BaseModel):
    """Roster row as embedded in a team."""

    model_config = ConfigDict(from_attributes=True)

    team_id: str
    user_id: str
    role: str
    position: Optional[str] = None
    status: str = "active"
    joined_at: datetime
    profile: Optional[ProfileSummary] = None


class TeamMemberDetail(TeamMemberRead):
    """Roster row returned by add-member calls, with the owning team."""

    team: Optional[TeamSummary] = None


class TeamRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    tournament_id: str
    captain_id: str
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    status: str
    skill_level: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    members: list[TeamMemberRead] = []
    member_count: int = 0
    tournament: Optional[TournamentSummary] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class TeamPage(BaseModel):
    teams: list[TeamRead]
    pagination: Pagination


# --- Inputs ---


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


class _TeamFields(BaseModel):
    """Field rules shared by create and update."""

    model_config = ConfigDict(extra="ignore")

    description: Optional[str] = None
    contact_email: Optional[str] = Field(default=None, max_length=255)
    contact_phone: Optional[str] = Field(default=None, max_length=20)
    notes: Optional[str] = None

    @field_validator("contact_email", "contact_phone", mode="before")
    @classmethod
    def blank_contact(cls, v):
        return _blank_to_none(v)

    @field_validator("contact_email")
    @classmethod
    def check_email(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not is_valid_email(v):
            raise ValueError("contact email is not a valid email address")
        return v


class TeamCreate(_TeamFields):
    name: str = Field(min_length=2, max_length=255)
    tournament_id: str = Field(min_length=1)
    skill_level: SkillLevel = SkillLevel.AMATEUR
    captain_position: Optional[str] = Field(default=None, max_length=50)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("skill_level", mode="before")
    @classmethod
    def default_skill_level(cls, v):
        return v or SkillLevel.AMATEUR


class TeamCreateRequest(TeamCreate):
    """POST /api/teams body: team fields plus the captain."""

    captain_id: str = Field(min_length=1)


class TeamUpdate(_TeamFields):
    """Partial update. Only fields present in the payload are written (see model_fields_set)."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    status: Optional[TeamStatus] = None
    skill_level: Optional[SkillLevel] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("name", "status", "skill_level")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("cannot be null")
        return v

    def changes(self) -> dict:
        """Explicitly supplied fields, enums flattened to their values."""
        return self.model_dump(exclude_unset=True, mode="json")


class MemberCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    player_id: str = Field(min_length=1, validation_alias=AliasChoices("player_id", "user_id"))
    role: MemberRole = MemberRole.PLAYER
    position: Optional[str] = Field(default=None, max_length=50)


class MembersBulkCreate(BaseModel):
    players: list[MemberCreate] = Field(min_length=1)


class CaptainUpdate(BaseModel):
    user_id: str = Field(min_length=1, validation_alias=AliasChoices("user_id", "player_id", "captain_id"))
