"""Excel roster import: upload checks, parsing, validation and materialization."""
import pytest

from teamhub.services.errors import InvalidFile, ParseError, StructuralValidationFailed, TournamentNotFound
from teamhub.services.excel_import import (
    ExcelImportService,
    cell_text,
    map_role,
    split_name,
)

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
HEADER = ("Equipe", "Joueur", "Email", "Role")


def test_cell_text():
    assert cell_text(None) == ""
    assert cell_text(float("nan")) == ""
    assert cell_text(12.0) == "12"
    assert cell_text(1.5) == "1.5"
    assert cell_text("  Lions ") == "Lions"


def test_map_role():
    assert map_role("captain") == "captain"
    assert map_role("Capitaine") == "captain"
    assert map_role("player") == "player"
    assert map_role("coach") == "player"


def test_split_name():
    assert split_name("Alice Martin") == ("Alice", "Martin")
    assert split_name("Chloé de la Tour") == ("Chloé", "de la Tour")
    assert split_name("Cher") == ("Cher", "")
    assert split_name("   ") == ("", "")


# --- upload checks ---


def test_validate_file_missing(importer):
    with pytest.raises(InvalidFile, match="No file"):
        importer.validate_file(None, None)


def test_validate_file_wrong_type(importer):
    with pytest.raises(InvalidFile, match="Only Excel"):
        importer.validate_file("text/csv", b"a,b")


def test_validate_file_too_large(service):
    importer = ExcelImportService(service, max_file_size=10)
    with pytest.raises(InvalidFile, match="too large"):
        importer.validate_file(XLSX, b"x" * 11)


def test_validate_file_accepts_legacy_excel(importer):
    importer.validate_file("application/vnd.ms-excel", b"x")


# --- parsing ---


def test_parse_rows_keyed_by_header(importer, make_workbook):
    content = make_workbook([
        HEADER,
        ("Lions", "Alice Martin", "alice@example.com", "captain"),
        (None, None, None, None),
        ("Lions", "Bob", "bob@example.com", None),
    ])
    rows = importer.parse(content)
    assert len(rows) == 2
    assert rows[0] == {"Equipe": "Lions", "Joueur": "Alice Martin", "Email": "alice@example.com", "Role": "captain"}
    assert rows[1]["Role"] == ""


def test_parse_keeps_na_like_text(importer, make_workbook):
    """Cells reading NA, None or null are real values, not missing ones."""
    content = make_workbook([
        HEADER,
        ("NA", "Nan Li", "nan@example.com", "captain"),
        ("Lions", "None", "none@example.com", "captain"),
        ("null", "N/A", "null@example.com", "player"),
    ])
    rows = importer.parse(content)
    assert [(r["Equipe"], r["Joueur"]) for r in rows] == [("NA", "Nan Li"), ("Lions", "None"), ("null", "N/A")]

    report = importer.validate_structure(rows)
    assert report.is_valid
    assert report.errors == []


def test_parse_reads_first_sheet_only(importer, make_workbook):
    from io import BytesIO

    from openpyxl import load_workbook

    content = make_workbook([HEADER, ("Lions", "Alice", "alice@example.com", "captain")])
    wb = load_workbook(BytesIO(content))
    other = wb.create_sheet("Other")
    other.append(["Something", "else"])
    other.append(["x", "y"])
    buf = BytesIO()
    wb.save(buf)

    rows = importer.parse(buf.getvalue())
    assert [r["Equipe"] for r in rows] == ["Lions"]


def test_parse_header_only(importer, make_workbook):
    with pytest.raises(ParseError):
        importer.parse(make_workbook([HEADER]))


def test_parse_garbage(importer):
    with pytest.raises(ParseError):
        importer.parse(b"this is not a workbook")


# --- structure validation ---


def test_validate_structure_missing_column(importer, make_workbook):
    rows = importer.parse(make_workbook([
        ("Equipe", "Joueur", "Role"),
        ("Lions", "Alice", "captain"),
    ]))
    report = importer.validate_structure(rows)
    assert not report.is_valid
    assert "Missing columns: Email" in report.errors
    assert "Available columns: Equipe, Joueur, Role" in report.errors
    assert "Row 2: email is required" in report.errors


def test_validate_structure_collects_every_row_error(importer):
    rows = [
        {"Equipe": "", "Joueur": "Alice", "Email": "alice@example.com", "Role": "captain"},
        {"Equipe": "Lions", "Joueur": "", "Email": "bad-email", "Role": "Captain"},
    ]
    report = importer.validate_structure(rows)
    assert report.errors == [
        "Row 2: team name is required",
        "Row 3: player name is required",
        "Row 3: invalid email format (bad-email)",
        'Row 3: invalid role, must be "captain" or "player" (got: Captain)',
    ]


def test_validate_structure_empty(importer):
    report = importer.validate_structure([])
    assert not report.is_valid
    assert report.errors == ["The spreadsheet is empty or contains no data"]


def test_validate_structure_ok(importer):
    rows = [{"Equipe": "Lions", "Joueur": "Alice", "Email": " alice@example.com ", "Role": "player"}]
    report = importer.validate_structure(rows)
    assert report.is_valid
    assert report.errors == []


# --- normalize / group ---


def test_normalize_and_group(importer):
    rows = [
        {"Equipe": " Tigers ", "Joueur": " Bob ", "Email": " BOB@Example.com", "Role": "captain"},
        {"Equipe": "Lions", "Joueur": "Alice", "Email": "alice@example.com", "Role": "player"},
        {"Equipe": "Tigers", "Joueur": "Carl", "Email": "carl@example.com", "Role": "player"},
    ]
    normalized = importer.normalize(rows)
    assert normalized[0].team_name == "Tigers"
    assert normalized[0].player_name == "Bob"
    assert normalized[0].email == "bob@example.com"
    assert [r.row_number for r in normalized] == [2, 3, 4]

    groups = importer.group_by_team(normalized)
    assert list(groups) == ["Tigers", "Lions"]
    assert [r.player_name for r in groups["Tigers"]] == ["Bob", "Carl"]


# --- full import ---


@pytest.mark.asyncio
async def test_import_creates_teams_profiles_and_members(importer, gateway, make_workbook):
    content = make_workbook([
        HEADER,
        ("Lions", "Alice Martin", "alice@example.com", "player"),
        ("Lions", "User One", "U1@Example.com", "captain"),
        ("Tigers", "Bob Durand", "bob@example.com", "captain"),
        ("Tigers", "Chloé de la Tour", "chloe@example.com", "player"),
        ("Lions", "Cher", "cher@example.com", "player"),
    ])

    result = await importer.import_roster("T1", XLSX, content)

    assert result.completed
    assert result.errors == []
    assert [t.name for t in result.teams_created] == ["Lions", "Tigers"]
    assert result.teams_processed == 2
    assert result.players_processed == 5
    assert len(result.members_created) == 5
    assert [p.email for p in result.profiles_created] == [
        "alice@example.com", "cher@example.com", "bob@example.com", "chloe@example.com",
    ]

    lions = next(t for t in gateway.teams.values() if t["name"] == "Lions")
    assert lions["captain_id"] == "U1"
    chloe = next(p for p in gateway.profiles.values() if p["email"] == "chloe@example.com")
    assert (chloe["first_name"], chloe["last_name"], chloe["display_name"]) == ("Chloé", "de la Tour", "Chloé de la Tour")

    report = result.to_report()
    assert report["success"] is True
    assert report["summary"]["total_rows"] == 5
    assert report["summary"]["teams_created"] == 2
    assert report["summary"]["players_created"] == 5
    assert report["summary"]["profiles_created"] == 4
    assert {p["role"] for p in report["details"]["players"]} == {"captain", "player"}


@pytest.mark.asyncio
async def test_import_invalid_row_creates_nothing(importer, gateway, make_workbook):
    rows = [HEADER]
    for i in range(10):
        email = "broken-email" if i == 6 else f"p{i}@example.com"
        rows.append(("Lions", f"Player {i}", email, "captain" if i == 0 else "player"))

    with pytest.raises(StructuralValidationFailed) as exc:
        await importer.import_roster("T1", XLSX, make_workbook(rows))

    assert exc.value.errors == ["Row 8: invalid email format (broken-email)"]
    assert gateway.teams == {}
    assert gateway.members == []
    assert len(gateway.profiles) == 3


@pytest.mark.asyncio
async def test_import_missing_email_column(importer, gateway, make_workbook):
    content = make_workbook([("Equipe", "Joueur", "Role"), ("Lions", "Alice", "captain")])
    with pytest.raises(StructuralValidationFailed) as exc:
        await importer.import_roster("T1", XLSX, content)
    assert "Missing columns: Email" in exc.value.errors
    assert gateway.teams == {}


@pytest.mark.asyncio
async def test_import_unknown_tournament(importer, make_workbook):
    content = make_workbook([HEADER, ("Lions", "Alice", "alice@example.com", "captain")])
    with pytest.raises(TournamentNotFound):
        await importer.import_roster("nope", XLSX, content)


@pytest.mark.asyncio
async def test_import_into_existing_team_records_row_errors(importer, service, gateway, make_workbook):
    team = await service.create_team("U1", {"name": "Lions", "tournament_id": "T1"})
    content = make_workbook([
        HEADER,
        ("Lions", "User One", "u1@example.com", "player"),
        ("Lions", "Alice", "alice@example.com", "player"),
    ])

    result = await importer.import_roster("T1", XLSX, content)

    assert result.completed
    assert result.teams_created == []
    assert result.teams_processed == 1
    assert [m.user_id for m in result.members_created] == [result.profiles_created[0].id]
    assert result.errors == ["Row 2: This player is already a member of this team"]
    assert len(gateway.teams) == 1
    assert len([m for m in gateway.members if m["team_id"] == team.id]) == 2


@pytest.mark.asyncio
async def test_import_stops_at_first_team_failure(importer, gateway, make_workbook):
    content = make_workbook([
        HEADER,
        ("Lions", "Alice", "alice@example.com", "captain"),
        ("X", "Bob", "bob@example.com", "captain"),
        ("Tigers", "Carl", "carl@example.com", "captain"),
    ])

    result = await importer.import_roster("T1", XLSX, content)

    assert not result.completed
    assert [t.name for t in result.teams_created] == ["Lions"]
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Team X (row 3): ")
    assert [t["name"] for t in gateway.teams.values()] == ["Lions"]
    assert result.to_report()["success"] is False


@pytest.mark.asyncio
async def test_import_rejected_team_leaves_no_profile(importer, gateway, make_workbook):
    content = make_workbook([
        HEADER,
        ("Lions", "Alice", "alice@example.com", "captain"),
        ("X", "Bob", "bob@example.com", "captain"),
    ])

    result = await importer.import_roster("T1", XLSX, content)

    assert not result.completed
    assert [p.email for p in result.profiles_created] == ["alice@example.com"]
    assert all(p["email"] != "bob@example.com" for p in gateway.profiles.values())
    assert result.to_report()["summary"]["profiles_created"] == 1
