"""API routes for teams and rosters."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from teamhub.schemas import CaptainUpdate, MemberCreate, MembersBulkCreate, TeamCreateRequest, TeamUpdate
from teamhub.services.teams import TeamService
from web.api.utils import get_team_service, ok

router = APIRouter(prefix="/api", tags=["teams"])


# --- Teams ---


@router.post("/teams", status_code=201)
async def create_team(body: TeamCreateRequest, service: TeamService = Depends(get_team_service)):
    """Create a team. The captain becomes its first member."""
    team = await service.create_team(body.captain_id, body)
    return ok(team, "Team created")


@router.get("/teams")
async def list_teams(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    name: Optional[str] = None,
    status: Optional[str] = None,
    tournament_id: Optional[str] = None,
    skill_level: Optional[str] = None,
    service: TeamService = Depends(get_team_service),
):
    """List teams, newest first. Out-of-range page/limit values are clamped, not rejected."""
    filters = {"name": name, "status": status, "tournament_id": tournament_id, "skill_level": skill_level}
    result = await service.list_teams(filters, page=page or 1, limit=limit)
    return ok(result.teams, pagination=result.pagination)


@router.get("/teams/tournament/{tournament_id}")
async def get_teams_by_tournament(tournament_id: str, service: TeamService = Depends(get_team_service)):
    """All teams of a tournament in registration order."""
    return ok(await service.get_teams_by_tournament(tournament_id))


@router.delete("/teams/tournament/{tournament_id}")
async def delete_teams_by_tournament(tournament_id: str, service: TeamService = Depends(get_team_service)):
    """Delete every team of a tournament and their rosters (single transaction)."""
    await service.delete_teams_by_tournament(tournament_id)
    return ok(message="Tournament teams deleted")


@router.get("/teams/{team_id}")
async def get_team(team_id: str, service: TeamService = Depends(get_team_service)):
    return ok(await service.get_team(team_id))


@router.patch("/teams/{team_id}")
async def update_team(team_id: str, body: TeamUpdate, service: TeamService = Depends(get_team_service)):
    """Partial update: only fields present in the body change."""
    team = await service.update_team(team_id, body)
    return ok(team, "Team updated")


@router.delete("/teams/{team_id}")
async def delete_team(team_id: str, service: TeamService = Depends(get_team_service)):
    await service.delete_team(team_id)
    return ok(message="Team deleted")


@router.patch("/teams/{team_id}/captain")
async def set_team_captain(team_id: str, body: CaptainUpdate, service: TeamService = Depends(get_team_service)):
    """Change the captain reference. Membership rows are not touched."""
    team = await service.set_team_captain(team_id, body.user_id)
    return ok(team, "Captain updated")


# --- Members ---


@router.get("/teams/{team_id}/members")
async def get_team_members(team_id: str, service: TeamService = Depends(get_team_service)):
    return ok(await service.get_team_members(team_id))


@router.post("/teams/{team_id}/members", status_code=201)
async def add_member(team_id: str, body: MemberCreate, service: TeamService = Depends(get_team_service)):
    member = await service.add_member(team_id, body.player_id, body.role.value, body.position)
    return ok(member, "Member added")


@router.post("/teams/{team_id}/members/bulk", status_code=201)
async def add_members(team_id: str, body: MembersBulkCreate, service: TeamService = Depends(get_team_service)):
    """Add several members at once. Nothing is added if any row is rejected."""
    members = await service.add_members(team_id, body.players)
    return ok(members, f"{len(members)} member(s) added")


@router.delete("/teams/{team_id}/members/{player_id}")
async def remove_member(team_id: str, player_id: str, service: TeamService = Depends(get_team_service)):
    await service.remove_member(team_id, player_id)
    return ok(message="Member removed")
