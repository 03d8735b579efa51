"""Roster import from Excel workbooks.

The pipeline is linear: validate the upload, parse the first sheet, validate
columns and every row (all errors collected, nothing written if any), normalize,
group rows by team and finally create teams, profiles and memberships.

Expected sheet layout (header labels are fixed)::

    Equipe | Joueur        | Email             | Role
    Lions  | Alice Martin  | alice@example.com | captain
    Lions  | Bob Durand    | bob@example.com   | player
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Optional

import pandas as pd
from pydantic import ValidationError

import config
from teamhub.schemas import MemberRole, ProfileSummary, TeamCreate, TeamMemberRead, TeamRead, is_valid_email
from teamhub.services.errors import (
    DomainError,
    InvalidFile,
    ParseError,
    PersistenceError,
    StructuralValidationFailed,
    ValidationFailed,
)
from teamhub.services.teams import TeamService
from teamhub.store.errors import StoreError, UniqueViolation

logger = logging.getLogger("teamhub.import")

SUPPORTED_CONTENT_TYPES = (
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
)
REQUIRED_COLUMNS = ("Equipe", "Joueur", "Email", "Role")
VALID_ROLES = ("captain", "player")
CAPTAIN_ALIASES = ("captain", "capitaine")


@dataclass
class ImportRow:
    team_name: str
    player_name: str
    email: str
    role: str
    row_number: int


@dataclass
class ValidationReport:
    is_valid: bool
    errors: list[str]


@dataclass
class ImportResult:
    total_rows: int
    teams_processed: int = 0
    players_processed: int = 0
    teams_created: list[TeamRead] = field(default_factory=list)
    members_created: list[TeamMemberRead] = field(default_factory=list)
    profiles_created: list[ProfileSummary] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    completed: bool = True

    def to_report(self) -> dict:
        return {
            "success": self.completed,
            "summary": {
                "total_rows": self.total_rows,
                "teams_processed": self.teams_processed,
                "players_processed": self.players_processed,
                "teams_created": len(self.teams_created),
                "players_created": len(self.members_created),
                "profiles_created": len(self.profiles_created),
                "errors": self.errors,
            },
            "details": {
                "teams": [{"id": t.id, "name": t.name, "status": t.status} for t in self.teams_created],
                "players": [
                    {"user_id": m.user_id, "team_id": m.team_id, "role": m.role} for m in self.members_created
                ],
            },
        }


def cell_text(value) -> str:
    """Cell value as trimmed text. Whole floats lose their '.0'."""
    if value is None:
        return ""
    if isinstance(value, float):
        if value != value:  # NaN
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def map_role(role: str) -> str:
    return MemberRole.CAPTAIN.value if role.lower() in CAPTAIN_ALIASES else MemberRole.PLAYER.value


def split_name(full_name: str) -> tuple[str, str]:
    parts = full_name.split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


class ExcelImportService:
    """Turns a workbook into teams and memberships through a TeamService."""

    def __init__(self, teams: TeamService, max_file_size: Optional[int] = None):
        self.teams = teams
        self.max_file_size = max_file_size or config.IMPORT_MAX_FILE_SIZE

    # --- 1. upload checks ---

    def validate_file(self, content_type: Optional[str], content: Optional[bytes]) -> None:
        if content is None:
            raise InvalidFile("No file provided")
        if content_type not in SUPPORTED_CONTENT_TYPES:
            raise InvalidFile("Unsupported file format. Only Excel files are accepted.")
        if len(content) > self.max_file_size:
            raise InvalidFile(f"File too large. Maximum size: {self.max_file_size // (1024 * 1024)}MB")

    # --- 2. parsing ---

    def parse(self, content: bytes) -> list[dict]:
        """Rows of the first sheet keyed by header label.

        Empty cells become '' and blank rows are dropped. Text such as "NA" or "None" is kept as is.
        """
        logger.debug("Parsing workbook (%d bytes)", len(content))
        try:
            with pd.ExcelFile(io.BytesIO(content)) as workbook:
                if not workbook.sheet_names:
                    raise ParseError("No sheet found in the workbook")
                frame = workbook.parse(workbook.sheet_names[0], header=None, dtype=object,
                                       keep_default_na=False, na_values=[])
        except ParseError:
            raise
        except Exception as e:  # pandas, openpyxl and xlrd each raise their own types
            logger.error("Failed to read workbook: %s", e)
            raise ParseError(f"Error reading the spreadsheet: {e}") from e

        raw_rows = frame.fillna("").values.tolist()
        if len(raw_rows) < 2:
            raise ParseError("The spreadsheet must contain a header row and at least one data row")

        headers = [cell_text(h) for h in raw_rows[0]]
        rows = []
        for raw in raw_rows[1:]:
            row = {}
            for index, header in enumerate(headers):
                if header:
                    value = raw[index] if index < len(raw) else ""
                    row[header] = "" if value is None else value
            if any(cell_text(v) != "" for v in row.values()):
                rows.append(row)

        logger.info("Workbook parsed: %d data row(s), headers %s", len(rows), [h for h in headers if h])
        return rows

    # --- 3. structure and row validation ---

    def validate_structure(self, rows: list[dict]) -> ValidationReport:
        errors: list[str] = []
        if not rows:
            errors.append("The spreadsheet is empty or contains no data")
            return ValidationReport(False, errors)

        available = list(rows[0].keys())
        missing = [c for c in REQUIRED_COLUMNS if c not in available]
        if missing:
            errors.append(f"Missing columns: {', '.join(missing)}")
            errors.append(f"Available columns: {', '.join(available)}")

        for index, row in enumerate(rows):
            row_num = index + 2  # header is row 1
            team = cell_text(row.get("Equipe"))
            player = cell_text(row.get("Joueur"))
            email = cell_text(row.get("Email"))
            role = cell_text(row.get("Role"))

            if not team:
                errors.append(f"Row {row_num}: team name is required")
            if not player:
                errors.append(f"Row {row_num}: player name is required")
            if not email:
                errors.append(f"Row {row_num}: email is required")
            if not role:
                errors.append(f"Row {row_num}: role is required")
            if email and not is_valid_email(email):
                errors.append(f"Row {row_num}: invalid email format ({email})")
            if role and role not in VALID_ROLES:
                errors.append(f'Row {row_num}: invalid role, must be "captain" or "player" (got: {role})')

        return ValidationReport(not errors, errors)

    # --- 4-5. normalization and grouping ---

    def normalize(self, rows: list[dict]) -> list[ImportRow]:
        return [
            ImportRow(
                team_name=cell_text(row["Equipe"]),
                player_name=cell_text(row["Joueur"]),
                email=cell_text(row["Email"]).lower(),
                role=cell_text(row["Role"]),
                row_number=index + 2,
            )
            for index, row in enumerate(rows)
        ]

    def group_by_team(self, rows: list[ImportRow]) -> dict[str, list[ImportRow]]:
        groups: dict[str, list[ImportRow]] = {}
        for row in rows:
            groups.setdefault(row.team_name, []).append(row)
        return groups

    # --- 6. materialization ---

    async def _resolve_profile(self, row: ImportRow, result: ImportResult) -> ProfileSummary:
        gateway = self.teams.gateway
        try:
            profile = await gateway.find_profile_by_email(row.email)
            if profile:
                return profile
            first_name, last_name = split_name(row.player_name)
            try:
                profile = await gateway.create_profile({
                    "email": row.email,
                    "display_name": row.player_name,
                    "first_name": first_name,
                    "last_name": last_name,
                })
            except UniqueViolation:
                # created concurrently by another request
                profile = await gateway.find_profile_by_email(row.email)
                if profile is None:
                    raise
                return profile
        except StoreError as e:
            logger.error("Store failure while resolving profile %s: %s", row.email, e)
            raise PersistenceError("Error while creating the player") from e
        result.profiles_created.append(profile)
        return profile

    async def _materialize_team(self, tournament_id: str, team_name: str, group: list[ImportRow],
                                result: ImportResult) -> None:
        team = await self.teams.find_team_by_name(tournament_id, team_name)
        captain_row = None
        if team is None:
            # team fields are checked before any profile is written for it
            try:
                team_data = TeamCreate(name=team_name, tournament_id=tournament_id)
            except ValidationError as e:
                raise ValidationFailed.from_pydantic(e) from e
            captain_row = next((r for r in group if map_role(r.role) == MemberRole.CAPTAIN.value), group[0])
            captain = await self._resolve_profile(captain_row, result)
            team = await self.teams.create_team(captain.id, team_data)
            result.teams_created.append(team)
            result.members_created.extend(team.members)
        result.teams_processed += 1

        for row in group:
            result.players_processed += 1
            if row is captain_row:
                continue
            try:
                profile = await self._resolve_profile(row, result)
                member = await self.teams.add_member(team.id, profile.id, map_role(row.role))
            except PersistenceError:
                raise
            except DomainError as e:
                result.errors.append(f"Row {row.row_number}: {e.message}")
                continue
            result.members_created.append(member)

    async def materialize(self, tournament_id: str, groups: dict[str, list[ImportRow]],
                          total_rows: int) -> ImportResult:
        """Create teams in first-seen order. Stops at the first team that cannot be written;
        teams already written stay in place."""
        result = ImportResult(total_rows=total_rows)
        for team_name, group in groups.items():
            try:
                await self._materialize_team(tournament_id, team_name, group, result)
            except DomainError as e:
                logger.warning("Import stopped at team %r: %s", team_name, e.message)
                result.errors.append(f"Team {team_name} (row {group[0].row_number}): {e.message}")
                result.completed = False
                break
        return result

    # --- full pipeline ---

    async def import_roster(self, tournament_id: str, content_type: Optional[str],
                            content: Optional[bytes]) -> ImportResult:
        self.validate_file(content_type, content)
        await self.teams.get_tournament(tournament_id)
        rows = self.parse(content)
        report = self.validate_structure(rows)
        if not report.is_valid:
            logger.info("Import rejected: %d validation error(s)", len(report.errors))
            raise StructuralValidationFailed(errors=report.errors)
        groups = self.group_by_team(self.normalize(rows))
        result = await self.materialize(tournament_id, groups, total_rows=len(rows))
        logger.info(
            "Import into tournament %s: %d row(s), %d team(s) created, %d member(s) created, %d error(s)",
            tournament_id, result.total_rows, len(result.teams_created),
            len(result.members_created), len(result.errors),
        )
        return result
