"""Persistence gateway contract used by the team service.

Implementations: ``SqlAlchemyGateway`` (production) and ``InMemoryGateway``
(tests). Both return pydantic records from ``teamhub.schemas`` and raise the
classes in ``teamhub.store.errors``.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from teamhub.schemas import ProfileSummary, TeamMemberDetail, TeamMemberRead, TeamRead, TournamentSummary

T = TypeVar("T")


@dataclass(frozen=True)
class TeamFilter:
    """AND-combined team filter. ``name_contains`` is case-insensitive, ``name`` is exact."""

    tournament_id: Optional[str] = None
    status: Optional[str] = None
    skill_level: Optional[str] = None
    name_contains: Optional[str] = None
    name: Optional[str] = None


class TeamGateway(ABC):
    """Entity-scoped store operations on teams, memberships and the records they reference."""

    # --- teams ---

    @abstractmethod
    async def create_team(self, fields: dict, captain: Optional[dict] = None) -> TeamRead:
        """Insert a team and, in the same write, its captain membership."""

    @abstractmethod
    async def get_team(self, team_id: str) -> Optional[TeamRead]:
        ...

    @abstractmethod
    async def find_teams(
        self,
        team_filter: TeamFilter,
        skip: int = 0,
        take: Optional[int] = None,
        newest_first: bool = False,
    ) -> list[TeamRead]:
        """Teams matching the filter ordered by created_at (ascending unless newest_first)."""

    @abstractmethod
    async def count_teams(self, team_filter: TeamFilter) -> int:
        ...

    @abstractmethod
    async def update_team(self, team_id: str, fields: dict) -> TeamRead:
        """Write the given columns. Raises RecordNotFound."""

    @abstractmethod
    async def delete_team(self, team_id: str) -> None:
        """Delete a team and its memberships. Raises RecordNotFound."""

    @abstractmethod
    async def delete_teams(self, team_filter: TeamFilter) -> int:
        """Delete every matching team row. Returns the number of rows removed."""

    # --- memberships ---

    @abstractmethod
    async def create_member(self, fields: dict) -> TeamMemberDetail:
        ...

    @abstractmethod
    async def create_members(self, rows: list[dict]) -> list[TeamMemberRead]:
        """Insert all rows or none."""

    @abstractmethod
    async def find_members(self, team_id: str) -> list[TeamMemberRead]:
        """Roster ordered by role (captain first) then joined_at."""

    @abstractmethod
    async def delete_member(self, team_id: str, user_id: str) -> None:
        """Raises RecordNotFound when the (team, user) pair has no row."""

    @abstractmethod
    async def delete_members(self, team_ids: list[str]) -> int:
        ...

    # --- referenced records ---

    @abstractmethod
    async def get_tournament(self, tournament_id: str) -> Optional[TournamentSummary]:
        ...

    @abstractmethod
    async def find_profile_by_email(self, email: str) -> Optional[ProfileSummary]:
        ...

    @abstractmethod
    async def create_profile(self, fields: dict) -> ProfileSummary:
        ...

    # --- units of work ---

    @abstractmethod
    async def run_transaction(self, work: Callable[["TeamGateway"], Awaitable[T]]) -> T:
        """Run ``work`` against a gateway bound to one transaction. Everything or nothing."""
