"""Database models."""
from teamhub.models.base import Base, init_db
from teamhub.models.profile import Profile
from teamhub.models.tournament import Tournament
from teamhub.models.team import Team, TeamMember

__all__ = [
    "Base",
    "Profile",
    "Tournament",
    "Team",
    "TeamMember",
    "init_db",
]
