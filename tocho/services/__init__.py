"""
Service layer: domain logic and match state machine.
scheduling and standings are pure; league_service orchestrates persistence.
"""
from .league_service import (
    LeagueService,
    CalendarError,
    MatchTransitionError,
    NotFoundError,
    RefereeAssignmentError,
    RosterError,
    RosterPermissionError,
)
from .scheduling import ScheduleError, generate_fixtures, round_robin_rounds, schedule_matches
from .standings import Standing, compute_standings

__all__ = [
    "LeagueService",
    "CalendarError",
    "MatchTransitionError",
    "NotFoundError",
    "RefereeAssignmentError",
    "RosterError",
    "RosterPermissionError",
    "ScheduleError",
    "generate_fixtures",
    "round_robin_rounds",
    "schedule_matches",
    "Standing",
    "compute_standings",
]
