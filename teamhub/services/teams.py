"""Team and roster operations.

Every write keeps the team aggregate consistent: a team is created together
with its captain membership, memberships are unique per (team, user), deleting
a team removes its roster, and bulk deletion of a tournament's teams runs as a
single unit of work.
"""
from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from typing import Iterable, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

import config
from teamhub.models.base import utcnow
from teamhub.schemas import (
    MemberCreate,
    MemberRole,
    Pagination,
    TeamCreate,
    TeamMemberDetail,
    TeamMemberRead,
    TeamPage,
    TeamRead,
    TeamStatus,
    TeamUpdate,
    TournamentSummary,
)
from teamhub.services.errors import (
    DuplicateMembership,
    DuplicateName,
    InvalidReference,
    MemberNotFound,
    NoTeamsFound,
    PersistenceError,
    TeamNotFound,
    TournamentNotFound,
    ValidationFailed,
)
from teamhub.store.errors import ForeignKeyViolation, RecordNotFound, StoreError, UniqueViolation
from teamhub.store.gateway import TeamFilter, TeamGateway

logger = logging.getLogger("teamhub.teams")

M = TypeVar("M", bound=BaseModel)


def _parse(model: Type[M], data: Union[M, dict]) -> M:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed.from_pydantic(e) from e


def _to_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@contextmanager
def _store_errors(action: str, unique=None, missing=None, reference=InvalidReference):
    """Translate gateway failures raised inside the block into domain errors."""
    try:
        yield
    except UniqueViolation as e:
        if unique is None:
            raise PersistenceError(f"Error while {action}") from e
        raise unique() from e
    except ForeignKeyViolation as e:
        raise reference() from e
    except RecordNotFound as e:
        if missing is None:
            raise PersistenceError(f"Error while {action}") from e
        raise missing() from e
    except StoreError as e:
        logger.error("Store failure while %s: %s", action, e)
        raise PersistenceError(f"Error while {action}") from e


class TeamService:
    """Domain operations on the team aggregate, over any TeamGateway."""

    def __init__(self, gateway: TeamGateway):
        self.gateway = gateway

    # --- teams ---

    async def create_team(self, captain_id: Optional[str], team_data: Union[TeamCreate, dict]) -> TeamRead:
        """Create a team with ``captain_id`` as its first member (role captain)."""
        if not captain_id:
            raise ValidationFailed(
                "Captain id is required",
                [{"field": "captain_id", "message": "Captain id is required"}],
            )
        data = _parse(TeamCreate, team_data)
        fields = {
            "name": data.name,
            "description": data.description,
            "tournament_id": data.tournament_id,
            "captain_id": captain_id,
            "contact_email": data.contact_email,
            "contact_phone": data.contact_phone,
            "status": TeamStatus.REGISTERED.value,
            "skill_level": data.skill_level.value,
            "notes": data.notes,
        }
        captain = {
            "user_id": captain_id,
            "role": MemberRole.CAPTAIN.value,
            "position": data.captain_position,
            "status": "active",
        }
        with _store_errors(
            "creating the team",
            unique=DuplicateName,
            reference=lambda: InvalidReference("Invalid reference (captain or tournament not found)"),
        ):
            team = await self.gateway.create_team(fields, captain)
        logger.info("Team created: %s (%s) in tournament %s", team.name, team.id, team.tournament_id)
        return team

    async def get_team(self, team_id: str) -> TeamRead:
        """Team with ordered roster and tournament summary."""
        with _store_errors("loading the team"):
            team = await self.gateway.get_team(team_id)
        if not team:
            logger.debug("Team %s not found", team_id)
            raise TeamNotFound()
        return team

    async def update_team(self, team_id: str, partial: Union[TeamUpdate, dict]) -> TeamRead:
        """Write only the supplied fields. updated_at is refreshed even when nothing else changes."""
        data = _parse(TeamUpdate, partial)
        fields = data.changes()
        fields["updated_at"] = utcnow()
        with _store_errors("updating the team", unique=DuplicateName, missing=TeamNotFound):
            team = await self.gateway.update_team(team_id, fields)
        logger.info("Team %s updated (%s)", team_id, ", ".join(sorted(data.model_fields_set)) or "no fields")
        return team

    async def delete_team(self, team_id: str) -> bool:
        with _store_errors("deleting the team", missing=TeamNotFound):
            await self.gateway.delete_team(team_id)
        logger.info("Team %s deleted", team_id)
        return True

    async def list_teams(self, filters: Optional[dict] = None, page=1, limit=None) -> TeamPage:
        """Filtered page of teams, newest first. page >= 1, limit clamped to [1, LIST_MAX_LIMIT]."""
        filters = filters or {}
        page = max(1, _to_int(page, 1))
        if limit is None:
            limit = config.LIST_DEFAULT_LIMIT
        limit = min(config.LIST_MAX_LIMIT, max(1, _to_int(limit, config.LIST_DEFAULT_LIMIT)))
        team_filter = TeamFilter(
            tournament_id=filters.get("tournament_id") or None,
            status=filters.get("status") or None,
            skill_level=filters.get("skill_level") or None,
            name_contains=filters.get("name") or None,
        )
        with _store_errors("listing teams"):
            teams = await self.gateway.find_teams(
                team_filter, skip=(page - 1) * limit, take=limit, newest_first=True
            )
            total = await self.gateway.count_teams(team_filter)
        return TeamPage(
            teams=teams,
            pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
        )

    async def get_teams_by_tournament(self, tournament_id: str) -> list[TeamRead]:
        """All teams of a tournament in registration order."""
        with _store_errors("loading tournament teams"):
            teams = await self.gateway.find_teams(TeamFilter(tournament_id=tournament_id))
        logger.debug("%d team(s) for tournament %s", len(teams), tournament_id)
        return teams

    async def get_tournament(self, tournament_id: str) -> TournamentSummary:
        with _store_errors("loading the tournament"):
            tournament = await self.gateway.get_tournament(tournament_id)
        if not tournament:
            raise TournamentNotFound()
        return tournament

    async def find_team_by_name(self, tournament_id: str, name: str) -> Optional[TeamRead]:
        with _store_errors("looking up the team"):
            teams = await self.gateway.find_teams(TeamFilter(tournament_id=tournament_id, name=name), take=1)
        return teams[0] if teams else None

    async def set_team_captain(self, team_id: str, user_id: str) -> TeamRead:
        """Point the team's captain reference at ``user_id``. The roster is left as is."""
        if not user_id:
            raise ValidationFailed(
                "User id is required",
                [{"field": "user_id", "message": "User id is required"}],
            )
        with _store_errors(
            "changing the captain",
            missing=TeamNotFound,
            reference=lambda: InvalidReference("Captain not found"),
        ):
            team = await self.gateway.update_team(team_id, {"captain_id": user_id, "updated_at": utcnow()})
        logger.info("Team %s captain set to %s", team_id, user_id)
        return team

    async def delete_teams_by_tournament(self, tournament_id: str) -> bool:
        """Delete every team of a tournament and their rosters in one transaction."""

        async def work(gateway: TeamGateway):
            if not await gateway.get_tournament(tournament_id):
                raise TournamentNotFound()
            teams = await gateway.find_teams(TeamFilter(tournament_id=tournament_id))
            if not teams:
                raise NoTeamsFound()
            members_deleted = await gateway.delete_members([t.id for t in teams])
            teams_deleted = await gateway.delete_teams(TeamFilter(tournament_id=tournament_id))
            return teams_deleted, members_deleted

        with _store_errors("deleting tournament teams"):
            teams_deleted, members_deleted = await self.gateway.run_transaction(work)
        logger.info(
            "Tournament %s: deleted %d team(s) and %d membership(s)",
            tournament_id, teams_deleted, members_deleted,
        )
        return True

    # --- roster ---

    async def add_member(
        self, team_id: str, user_id: str, role: str = "player", position: Optional[str] = None
    ) -> TeamMemberDetail:
        member = _parse(MemberCreate, {"player_id": user_id, "role": role or "player", "position": position})
        with _store_errors(
            "adding the member",
            unique=DuplicateMembership,
            reference=lambda: InvalidReference("Team or player not found"),
        ):
            created = await self.gateway.create_member(self._member_row(team_id, member))
        logger.info("Member %s added to team %s as %s", created.user_id, team_id, created.role)
        return created

    async def add_members(self, team_id: str, players: Iterable[Union[MemberCreate, dict]]) -> list[TeamMemberRead]:
        """Batch insert. A duplicate anywhere in the batch rejects the whole batch."""
        members = [_parse(MemberCreate, p) for p in players]
        if not members:
            raise ValidationFailed("At least one player is required")
        seen = set()
        for m in members:
            if m.player_id in seen:
                raise DuplicateMembership(f"Player {m.player_id} appears more than once in the batch")
            seen.add(m.player_id)
        with _store_errors(
            "adding members",
            unique=DuplicateMembership,
            reference=lambda: InvalidReference("Team or player not found"),
        ):
            created = await self.gateway.create_members([self._member_row(team_id, m) for m in members])
        logger.info("%d member(s) added to team %s", len(created), team_id)
        return created

    async def remove_member(self, team_id: str, user_id: str) -> bool:
        with _store_errors("removing the member", missing=MemberNotFound):
            await self.gateway.delete_member(team_id, user_id)
        logger.info("Member %s removed from team %s", user_id, team_id)
        return True

    async def get_team_members(self, team_id: str) -> list[TeamMemberRead]:
        """Roster, captain first then by join time."""
        with _store_errors("loading members"):
            return await self.gateway.find_members(team_id)

    @staticmethod
    def _member_row(team_id: str, member: MemberCreate) -> dict:
        return {
            "team_id": team_id,
            "user_id": member.player_id,
            "role": member.role.value,
            "position": member.position or None,
            "status": "active",
        }
