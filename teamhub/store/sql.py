"""SQLAlchemy implementation of the persistence gateway."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from teamhub.models import Profile, Team, TeamMember, Tournament
from teamhub.models.base import async_session_factory
from teamhub.schemas import ProfileSummary, TeamMemberDetail, TeamMemberRead, TeamRead, TournamentSummary
from teamhub.store.errors import RecordNotFound, StoreError, translate_integrity_error
from teamhub.store.gateway import TeamFilter, TeamGateway

logger = logging.getLogger("teamhub.store")

T = TypeVar("T")


def _team_query():
    return select(Team).options(
        selectinload(Team.members).selectinload(TeamMember.profile),
        selectinload(Team.tournament),
    )


def _member_query():
    return select(TeamMember).options(selectinload(TeamMember.profile))


def _apply_filter(stmt, team_filter: TeamFilter):
    if team_filter.tournament_id:
        stmt = stmt.where(Team.tournament_id == team_filter.tournament_id)
    if team_filter.status:
        stmt = stmt.where(Team.status == team_filter.status)
    if team_filter.skill_level:
        stmt = stmt.where(Team.skill_level == team_filter.skill_level)
    if team_filter.name_contains:
        stmt = stmt.where(Team.name.icontains(team_filter.name_contains, autoescape=True))
    if team_filter.name:
        stmt = stmt.where(Team.name == team_filter.name)
    return stmt


class SqlAlchemyGateway(TeamGateway):
    """Gateway over an async session factory.

    Unbound instances open and commit one session per call. Instances handed to
    a unit of work by ``run_transaction`` share that transaction's session and
    only flush.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
        session: Optional[AsyncSession] = None,
    ):
        self._session_factory = session_factory
        self._bound = session

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        if self._bound is not None:
            try:
                yield self._bound
                await self._bound.flush()
            except IntegrityError as e:
                raise translate_integrity_error(e) from e
            except SQLAlchemyError as e:
                raise StoreError(str(e)) from e
            return
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise translate_integrity_error(e) from e
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Store failure: %s", e)
                raise StoreError(str(e)) from e

    async def _load_team(self, session: AsyncSession, team_id: str) -> Optional[Team]:
        result = await session.execute(
            _team_query().where(Team.id == team_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    # --- teams ---

    async def create_team(self, fields: dict, captain: Optional[dict] = None) -> TeamRead:
        async with self._session() as session:
            team = Team(**fields)
            if captain is not None:
                team.members = [TeamMember(**captain)]
            session.add(team)
            await session.flush()
            team = await self._load_team(session, team.id)
            return TeamRead.model_validate(team)

    async def get_team(self, team_id: str) -> Optional[TeamRead]:
        async with self._session() as session:
            team = await self._load_team(session, team_id)
            return TeamRead.model_validate(team) if team else None

    async def find_teams(
        self,
        team_filter: TeamFilter,
        skip: int = 0,
        take: Optional[int] = None,
        newest_first: bool = False,
    ) -> list[TeamRead]:
        stmt = _apply_filter(_team_query(), team_filter)
        stmt = stmt.order_by(Team.created_at.desc() if newest_first else Team.created_at.asc())
        if skip:
            stmt = stmt.offset(skip)
        if take is not None:
            stmt = stmt.limit(take)
        async with self._session() as session:
            result = await session.execute(stmt)
            return [TeamRead.model_validate(t) for t in result.scalars().all()]

    async def count_teams(self, team_filter: TeamFilter) -> int:
        stmt = _apply_filter(select(func.count()).select_from(Team), team_filter)
        async with self._session() as session:
            return (await session.execute(stmt)).scalar_one()

    async def update_team(self, team_id: str, fields: dict) -> TeamRead:
        async with self._session() as session:
            team = await session.get(Team, team_id)
            if not team:
                raise RecordNotFound(f"team {team_id}")
            for key, value in fields.items():
                setattr(team, key, value)
            await session.flush()
            team = await self._load_team(session, team_id)
            return TeamRead.model_validate(team)

    async def delete_team(self, team_id: str) -> None:
        async with self._session() as session:
            team = await session.get(Team, team_id, options=[selectinload(Team.members)])
            if not team:
                raise RecordNotFound(f"team {team_id}")
            await session.delete(team)

    async def delete_teams(self, team_filter: TeamFilter) -> int:
        async with self._session() as session:
            result = await session.execute(_apply_filter(delete(Team), team_filter))
            return result.rowcount

    # --- memberships ---

    async def create_member(self, fields: dict) -> TeamMemberDetail:
        async with self._session() as session:
            member = TeamMember(**fields)
            session.add(member)
            await session.flush()
            result = await session.execute(
                _member_query()
                .options(selectinload(TeamMember.team))
                .where(TeamMember.team_id == member.team_id, TeamMember.user_id == member.user_id)
                .execution_options(populate_existing=True)
            )
            return TeamMemberDetail.model_validate(result.scalar_one())

    async def create_members(self, rows: list[dict]) -> list[TeamMemberRead]:
        async with self._session() as session:
            members = [TeamMember(**row) for row in rows]
            session.add_all(members)
            await session.flush()
            keys = [(m.team_id, m.user_id) for m in members]
            result = await session.execute(
                _member_query()
                .where(TeamMember.team_id.in_({k[0] for k in keys}))
                .execution_options(populate_existing=True)
            )
            by_key = {(m.team_id, m.user_id): m for m in result.scalars().all()}
            return [TeamMemberRead.model_validate(by_key[k]) for k in keys]

    async def find_members(self, team_id: str) -> list[TeamMemberRead]:
        async with self._session() as session:
            result = await session.execute(
                _member_query()
                .where(TeamMember.team_id == team_id)
                .order_by(TeamMember.role, TeamMember.joined_at)
            )
            return [TeamMemberRead.model_validate(m) for m in result.scalars().all()]

    async def delete_member(self, team_id: str, user_id: str) -> None:
        async with self._session() as session:
            result = await session.execute(
                delete(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
            )
            if result.rowcount == 0:
                raise RecordNotFound(f"member {user_id} of team {team_id}")

    async def delete_members(self, team_ids: list[str]) -> int:
        if not team_ids:
            return 0
        async with self._session() as session:
            result = await session.execute(delete(TeamMember).where(TeamMember.team_id.in_(team_ids)))
            return result.rowcount

    # --- referenced records ---

    async def get_tournament(self, tournament_id: str) -> Optional[TournamentSummary]:
        async with self._session() as session:
            t = await session.get(Tournament, tournament_id)
            return TournamentSummary.model_validate(t) if t else None

    async def find_profile_by_email(self, email: str) -> Optional[ProfileSummary]:
        async with self._session() as session:
            result = await session.execute(select(Profile).where(Profile.email == email))
            profile = result.scalar_one_or_none()
            return ProfileSummary.model_validate(profile) if profile else None

    async def create_profile(self, fields: dict) -> ProfileSummary:
        async with self._session() as session:
            profile = Profile(**fields)
            session.add(profile)
            await session.flush()
            return ProfileSummary.model_validate(profile)

    # --- units of work ---

    async def run_transaction(self, work: Callable[[TeamGateway], Awaitable[T]]) -> T:
        if self._bound is not None:
            return await work(self)
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    return await work(SqlAlchemyGateway(self._session_factory, session=session))
            except IntegrityError as e:
                raise translate_integrity_error(e) from e
            except SQLAlchemyError as e:
                logger.error("Store failure in transaction: %s", e)
                raise StoreError(str(e)) from e
