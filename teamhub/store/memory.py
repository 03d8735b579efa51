"""In-memory persistence gateway.

Behaves like the SQL store for every constraint the team service relies on
(unique team name per tournament, unique membership, foreign keys, cascade on
team delete) so domain tests can run without a database. State lives on the
instance; build a fresh one per test.
"""
from __future__ import annotations

import copy
from datetime import datetime
from typing import Awaitable, Callable, Optional, TypeVar

from teamhub.models.base import new_id, utcnow
from teamhub.schemas import (
    ProfileSummary,
    TeamMemberDetail,
    TeamMemberRead,
    TeamRead,
    TeamSummary,
    TournamentSummary,
)
from teamhub.store.errors import ForeignKeyViolation, RecordNotFound, UniqueViolation
from teamhub.store.gateway import TeamFilter, TeamGateway

T = TypeVar("T")

_TEAM_DEFAULTS = {
    "description": None,
    "contact_email": None,
    "contact_phone": None,
    "status": "registered",
    "skill_level": "amateur",
    "notes": None,
}


def _matches(team: dict, team_filter: TeamFilter) -> bool:
    if team_filter.tournament_id and team["tournament_id"] != team_filter.tournament_id:
        return False
    if team_filter.status and team["status"] != team_filter.status:
        return False
    if team_filter.skill_level and team["skill_level"] != team_filter.skill_level:
        return False
    if team_filter.name_contains and team_filter.name_contains.lower() not in team["name"].lower():
        return False
    if team_filter.name and team["name"] != team_filter.name:
        return False
    return True


class InMemoryGateway(TeamGateway):
    def __init__(self):
        self.tournaments: dict[str, dict] = {}
        self.profiles: dict[str, dict] = {}
        self.teams: dict[str, dict] = {}
        self.members: list[dict] = []

    # --- seeding (tests) ---

    def add_tournament(self, name: str, id: Optional[str] = None, status: str = "upcoming",
                       start_date: Optional[datetime] = None) -> TournamentSummary:
        row = {"id": id or new_id(), "name": name, "status": status, "start_date": start_date}
        self.tournaments[row["id"]] = row
        return TournamentSummary(**row)

    def add_profile(self, email: str, id: Optional[str] = None, display_name: Optional[str] = None,
                    first_name: Optional[str] = None, last_name: Optional[str] = None) -> ProfileSummary:
        row = {
            "id": id or new_id(),
            "email": email,
            "display_name": display_name,
            "first_name": first_name,
            "last_name": last_name,
        }
        self.profiles[row["id"]] = row
        return ProfileSummary(**row)

    # --- row builders ---

    def _member_record(self, row: dict, cls=TeamMemberRead):
        profile = self.profiles.get(row["user_id"])
        data = dict(row, profile=ProfileSummary(**profile) if profile else None)
        if cls is TeamMemberDetail:
            team = self.teams[row["team_id"]]
            data["team"] = TeamSummary(id=team["id"], name=team["name"], tournament_id=team["tournament_id"])
        return cls(**data)

    def _roster(self, team_id: str) -> list[dict]:
        rows = [m for m in self.members if m["team_id"] == team_id]
        # stable sort keeps insertion order for equal timestamps
        return sorted(rows, key=lambda m: (m["role"], m["joined_at"]))

    def _team_record(self, team: dict) -> TeamRead:
        roster = [self._member_record(m) for m in self._roster(team["id"])]
        tournament = self.tournaments.get(team["tournament_id"])
        return TeamRead(
            **team,
            members=roster,
            member_count=len(roster),
            tournament=TournamentSummary(**tournament) if tournament else None,
        )

    def _check_member(self, row: dict, pending: list[dict]) -> None:
        if row["team_id"] not in self.teams or row["user_id"] not in self.profiles:
            raise ForeignKeyViolation("team_members references a missing team or profile")
        key = (row["team_id"], row["user_id"])
        if any((m["team_id"], m["user_id"]) == key for m in self.members + pending):
            raise UniqueViolation(f"team_members {key}")

    def _new_member(self, fields: dict) -> dict:
        return {
            "team_id": fields["team_id"],
            "user_id": fields["user_id"],
            "role": fields.get("role", "player"),
            "position": fields.get("position"),
            "status": fields.get("status", "active"),
            "joined_at": utcnow(),
        }

    # --- teams ---

    async def create_team(self, fields: dict, captain: Optional[dict] = None) -> TeamRead:
        if fields["tournament_id"] not in self.tournaments or fields["captain_id"] not in self.profiles:
            raise ForeignKeyViolation("teams references a missing tournament or captain")
        if any(t["tournament_id"] == fields["tournament_id"] and t["name"] == fields["name"]
               for t in self.teams.values()):
            raise UniqueViolation("uq_teams_tournament_name")
        now = utcnow()
        team = {**_TEAM_DEFAULTS, **fields, "id": new_id(), "created_at": now, "updated_at": now}
        member = None
        if captain is not None:
            member = self._new_member({**captain, "team_id": team["id"]})
            if member["user_id"] not in self.profiles:
                raise ForeignKeyViolation("team_members references a missing profile")
        self.teams[team["id"]] = team
        if member is not None:
            self.members.append(member)
        return self._team_record(team)

    async def get_team(self, team_id: str) -> Optional[TeamRead]:
        team = self.teams.get(team_id)
        return self._team_record(team) if team else None

    async def find_teams(
        self,
        team_filter: TeamFilter,
        skip: int = 0,
        take: Optional[int] = None,
        newest_first: bool = False,
    ) -> list[TeamRead]:
        rows = [t for t in self.teams.values() if _matches(t, team_filter)]
        rows.sort(key=lambda t: t["created_at"], reverse=newest_first)
        end = None if take is None else skip + take
        return [self._team_record(t) for t in rows[skip:end]]

    async def count_teams(self, team_filter: TeamFilter) -> int:
        return sum(1 for t in self.teams.values() if _matches(t, team_filter))

    async def update_team(self, team_id: str, fields: dict) -> TeamRead:
        team = self.teams.get(team_id)
        if not team:
            raise RecordNotFound(f"team {team_id}")
        new_name = fields.get("name")
        if new_name is not None and any(
            t["id"] != team_id and t["tournament_id"] == team["tournament_id"] and t["name"] == new_name
            for t in self.teams.values()
        ):
            raise UniqueViolation("uq_teams_tournament_name")
        if "captain_id" in fields and fields["captain_id"] not in self.profiles:
            raise ForeignKeyViolation("teams references a missing captain")
        team.update(fields)
        return self._team_record(team)

    async def delete_team(self, team_id: str) -> None:
        if team_id not in self.teams:
            raise RecordNotFound(f"team {team_id}")
        del self.teams[team_id]
        self.members = [m for m in self.members if m["team_id"] != team_id]

    async def delete_teams(self, team_filter: TeamFilter) -> int:
        doomed = {tid for tid, t in self.teams.items() if _matches(t, team_filter)}
        if any(m["team_id"] in doomed for m in self.members):
            raise ForeignKeyViolation("team_members still references teams being deleted")
        for tid in doomed:
            del self.teams[tid]
        return len(doomed)

    # --- memberships ---

    async def create_member(self, fields: dict) -> TeamMemberDetail:
        row = self._new_member(fields)
        self._check_member(row, [])
        self.members.append(row)
        return self._member_record(row, TeamMemberDetail)

    async def create_members(self, rows: list[dict]) -> list[TeamMemberRead]:
        pending: list[dict] = []
        for fields in rows:
            row = self._new_member(fields)
            self._check_member(row, pending)
            pending.append(row)
        self.members.extend(pending)
        return [self._member_record(r) for r in pending]

    async def find_members(self, team_id: str) -> list[TeamMemberRead]:
        return [self._member_record(m) for m in self._roster(team_id)]

    async def delete_member(self, team_id: str, user_id: str) -> None:
        for i, m in enumerate(self.members):
            if m["team_id"] == team_id and m["user_id"] == user_id:
                del self.members[i]
                return
        raise RecordNotFound(f"member {user_id} of team {team_id}")

    async def delete_members(self, team_ids: list[str]) -> int:
        before = len(self.members)
        self.members = [m for m in self.members if m["team_id"] not in team_ids]
        return before - len(self.members)

    # --- referenced records ---

    async def get_tournament(self, tournament_id: str) -> Optional[TournamentSummary]:
        row = self.tournaments.get(tournament_id)
        return TournamentSummary(**row) if row else None

    async def find_profile_by_email(self, email: str) -> Optional[ProfileSummary]:
        for row in self.profiles.values():
            if row["email"] == email:
                return ProfileSummary(**row)
        return None

    async def create_profile(self, fields: dict) -> ProfileSummary:
        if any(p["email"] == fields["email"] for p in self.profiles.values()):
            raise UniqueViolation("profiles.email")
        row = {
            "id": fields.get("id") or new_id(),
            "email": fields["email"],
            "display_name": fields.get("display_name"),
            "first_name": fields.get("first_name"),
            "last_name": fields.get("last_name"),
        }
        self.profiles[row["id"]] = row
        return ProfileSummary(**row)

    # --- units of work ---

    async def run_transaction(self, work: Callable[[TeamGateway], Awaitable[T]]) -> T:
        snapshot = copy.deepcopy((self.tournaments, self.profiles, self.teams, self.members))
        try:
            return await work(self)
        except BaseException:
            self.tournaments, self.profiles, self.teams, self.members = snapshot
            raise
