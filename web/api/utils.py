"""Shared API utilities."""
from __future__ import annotations

from typing import Any, Optional

from fastapi import Depends

from teamhub.models.base import async_session_factory
from teamhub.services.excel_import import ExcelImportService
from teamhub.services.teams import TeamService
from teamhub.store.sql import SqlAlchemyGateway


def get_team_service() -> TeamService:
    """Dependency: team service over the configured database."""
    return TeamService(SqlAlchemyGateway(async_session_factory))


def get_import_service(teams: TeamService = Depends(get_team_service)) -> ExcelImportService:
    return ExcelImportService(teams)


def ok(data: Any = None, message: Optional[str] = None, **extra: Any) -> dict:
    """Success envelope: {"success": true, "message"?, "data"?, ...extra}."""
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body
