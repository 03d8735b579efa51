"""Pytest configuration and fixtures."""
import io
import os

# Set test env BEFORE any imports that use config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "DEBUG"

import pytest
from httpx import ASGITransport, AsyncClient
from openpyxl import Workbook

from teamhub.models import Profile, Tournament
from teamhub.models.base import async_session_factory, engine, reset_db
from teamhub.services.excel_import import ExcelImportService
from teamhub.services.teams import TeamService
from teamhub.store.memory import InMemoryGateway
from web.api.main import app


@pytest.fixture
async def db():
    """Fresh schema per test (ASGI lifespan doesn't run with httpx). The in-memory database goes away on dispose."""
    await reset_db()
    yield
    await engine.dispose()


@pytest.fixture
async def client(db):
    """Async HTTP client for testing the API."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
async def seed(db):
    """Insert tournaments and profiles straight into the database. Returns their ids."""
    async with async_session_factory() as session:
        session.add_all([
            Tournament(id="T1", name="Spring Cup"),
            Tournament(id="T2", name="Summer Cup"),
            Profile(id="U1", email="u1@example.com", display_name="User One", first_name="User", last_name="One"),
            Profile(id="U2", email="u2@example.com", display_name="User Two", first_name="User", last_name="Two"),
            Profile(id="U3", email="u3@example.com", display_name="User Three", first_name="User", last_name="Three"),
        ])
        await session.commit()
    return {"tournaments": ["T1", "T2"], "profiles": ["U1", "U2", "U3"]}


@pytest.fixture
def gateway():
    """In-memory store with two tournaments and three profiles."""
    gw = InMemoryGateway()
    gw.add_tournament("Spring Cup", id="T1")
    gw.add_tournament("Summer Cup", id="T2")
    for uid in ("U1", "U2", "U3"):
        gw.add_profile(f"{uid.lower()}@example.com", id=uid, display_name=f"User {uid}")
    return gw


@pytest.fixture
def service(gateway):
    return TeamService(gateway)


@pytest.fixture
def importer(service):
    return ExcelImportService(service)


@pytest.fixture
def make_workbook():
    """Build .xlsx bytes from a list of rows (first row = headers)."""

    def _make(rows, sheet_title="Equipes"):
        wb = Workbook()
        ws = wb.active
        ws.title = sheet_title
        for row in rows:
            ws.append(list(row))
        buf = io.BytesIO()
        wb.save(buf)
        return buf.getvalue()

    return _make
