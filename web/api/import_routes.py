"""Roster import API: upload an Excel workbook of teams and players."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from teamhub.services.excel_import import ExcelImportService
from web.api.utils import get_import_service

router = APIRouter(prefix="/api/teams", tags=["import"])


@router.post("/tournament/{tournament_id}/import")
async def import_roster(
    tournament_id: str,
    file: Optional[UploadFile] = File(None),
    service: ExcelImportService = Depends(get_import_service),
):
    """Import teams from the first sheet (columns Equipe, Joueur, Email, Role).

    Nothing is written when the file or any row is invalid. Once writing starts,
    the import stops at the first team that cannot be created and reports
    success=false; teams written before it are kept.
    """
    content = await file.read() if file else None
    content_type = file.content_type if file else None
    result = await service.import_roster(tournament_id, content_type, content)
    return result.to_report()
