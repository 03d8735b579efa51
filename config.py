"""Configuration for the team service."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'teamhub.db'}",
)
SQL_ECHO = os.getenv("SQL_ECHO", "").lower() in ("1", "true", "yes")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# HTTP server
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "3003"))
API_RELOAD = os.getenv("API_RELOAD", "").lower() in ("1", "true", "yes")


def _parse_origins(value: str) -> list[str]:
    if not value:
        return []
    return [x.strip() for x in value.split(",") if x.strip()]


# Comma-separated list of allowed browser origins
CORS_ORIGINS = _parse_origins(os.getenv("CORS_ORIGINS", "http://localhost:8080"))

# Team listing pagination
LIST_DEFAULT_LIMIT = int(os.getenv("LIST_DEFAULT_LIMIT", "10"))
LIST_MAX_LIMIT = int(os.getenv("LIST_MAX_LIMIT", "50"))

# Spreadsheet import
IMPORT_MAX_FILE_SIZE = int(os.getenv("IMPORT_MAX_FILE_SIZE", str(5 * 1024 * 1024)))  # bytes
