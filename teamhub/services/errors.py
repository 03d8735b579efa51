"""Domain failures returned to API callers.

Each class is one failure kind. ``status_code`` is the HTTP status the API
renders it with; ``errors`` carries field-level descriptors when there are any.
"""
from __future__ import annotations

from typing import Optional

from pydantic import ValidationError


class DomainError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[list] = None):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationFailed(DomainError):
    status_code = 400
    default_message = "Invalid data"

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "ValidationFailed":
        return cls(errors=field_errors(exc.errors()))


class NotFound(DomainError):
    status_code = 404
    default_message = "Not found"


class TeamNotFound(NotFound):
    default_message = "Team not found"


class MemberNotFound(NotFound):
    default_message = "Member not found in this team"


class DuplicateName(DomainError):
    status_code = 409
    default_message = "A team with this name already exists in this tournament"


class DuplicateMembership(DomainError):
    status_code = 409
    default_message = "This player is already a member of this team"


class InvalidReference(DomainError):
    status_code = 400
    default_message = "Invalid reference (team, user or tournament not found)"


class TournamentNotFound(DomainError):
    status_code = 404
    default_message = "Tournament not found"


class NoTeamsFound(DomainError):
    status_code = 404
    default_message = "No teams found for this tournament"


class InvalidFile(DomainError):
    status_code = 400
    default_message = "Invalid file"


class ParseError(DomainError):
    status_code = 400
    default_message = "Could not read the spreadsheet"


class StructuralValidationFailed(DomainError):
    status_code = 400
    default_message = "The spreadsheet contains invalid data"


class PersistenceError(DomainError):
    status_code = 500
    default_message = "Internal server error"


def field_errors(details) -> list[dict]:
    """Flatten pydantic error details into [{field, message}]."""
    errors = []
    for detail in details:
        loc = [str(part) for part in detail.get("loc", ()) if part not in ("body", "query", "path")]
        message = detail.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": ".".join(loc), "message": message})
    return errors
