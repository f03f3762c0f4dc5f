"""
Persistence layer for league data.
Read/write interfaces only; scheduling and standings live in services.
"""
from .db import get_connection, init_db
from .repositories import (
    UserRepository,
    SeasonRepository,
    DivisionRepository,
    CategoryRepository,
    FieldRepository,
    TeamRepository,
    MatchRepository,
    PaymentRepository,
    PlayerRepository,
)

__all__ = [
    "get_connection",
    "init_db",
    "UserRepository",
    "SeasonRepository",
    "DivisionRepository",
    "CategoryRepository",
    "FieldRepository",
    "TeamRepository",
    "MatchRepository",
    "PaymentRepository",
    "PlayerRepository",
]
