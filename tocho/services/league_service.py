"""
League service: calendar generation, match state machine, results, standings, rosters, payments.
Generate calendar: round-robin fixtures → weekly schedule → one batch write.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import date
from typing import Any, Sequence

from tocho.models import (
    Category,
    Match,
    MatchStatus,
    MatchWinner,
    PaymentRecordStatus,
    Player,
    PlayerPosition,
    Team,
    User,
)
from tocho.persistence.repositories import (
    CategoryRepository,
    FieldRepository,
    MatchRepository,
    PaymentRepository,
    PlayerRepository,
    TeamRepository,
    UserRepository,
)
from tocho.roles import Capability, Role, has_capability, parse_role
from tocho.services.scheduling import (
    DEFAULT_TIME_SLOTS,
    ScheduleError,
    Scope,
    round_robin_rounds,
    schedule_matches,
    validate_team_count,
)
from tocho.services.standings import Standing, compute_standings, get_points_rule

logger = logging.getLogger(__name__)

# ---------- Exceptions ----------


class NotFoundError(LookupError):
    """Referenced category, team, match or user does not exist."""


class CalendarError(ValueError):
    """Calendar cannot be generated for this category (team count, fields, existing calendar)."""


class MatchTransitionError(ValueError):
    """Invalid match status transition (e.g. completed -> scheduled)."""


class RefereeAssignmentError(ValueError):
    """Referee cannot be assigned to this match."""


class RosterError(ValueError):
    """Roster change rejected (jersey number taken or out of range, user not a captain)."""


class RosterPermissionError(Exception):
    """Acting user may not change this team's roster."""


# ---------- Valid transitions ----------

_S = MatchStatus

_VALID_TRANSITIONS: dict[str, set[str]] = {
    _S.SCHEDULED.value: {_S.IN_PROGRESS.value, _S.COMPLETED.value, _S.CANCELLED.value, _S.POSTPONED.value},
    _S.POSTPONED.value: {_S.SCHEDULED.value, _S.CANCELLED.value},
    _S.IN_PROGRESS.value: {_S.COMPLETED.value, _S.CANCELLED.value},
    _S.COMPLETED.value: set(),
    _S.CANCELLED.value: set(),
}

# Statuses that block regenerating a category's calendar
_PLAYED_STATUSES = {MatchStatus.IN_PROGRESS.value, MatchStatus.COMPLETED.value}

# Match status -> referee panel group
_REFEREE_GROUPS: dict[str, str] = {
    _S.SCHEDULED.value: "upcoming",
    _S.POSTPONED.value: "upcoming",
    _S.IN_PROGRESS.value: "in_progress",
    _S.COMPLETED.value: "completed",
    _S.CANCELLED.value: "cancelled",
}


def winner_for(home_score: int, away_score: int) -> str:
    if home_score > away_score:
        return MatchWinner.HOME.value
    if away_score > home_score:
        return MatchWinner.AWAY.value
    return MatchWinner.DRAW.value


# ---------- LeagueService ----------


class LeagueService:
    """
    Domain logic for categories and matches: calendar, transitions, results.
    Persistence is delegated to repositories.
    """

    def __init__(self) -> None:
        self._category_repo = CategoryRepository()
        self._field_repo = FieldRepository()
        self._team_repo = TeamRepository()
        self._match_repo = MatchRepository()
        self._payment_repo = PaymentRepository()
        self._user_repo = UserRepository()
        self._player_repo = PlayerRepository()

    def _get_category(self, conn: sqlite3.Connection, category_id: str) -> Category:
        category = self._category_repo.get(conn, category_id)
        if category is None:
            raise NotFoundError(f"Category not found: {category_id}")
        return category

    def _get_team(self, conn: sqlite3.Connection, team_id: str) -> Team:
        team = self._team_repo.get(conn, team_id)
        if team is None:
            raise NotFoundError(f"Team not found: {team_id}")
        return team

    def _get_match(self, conn: sqlite3.Connection, match_id: str) -> Match:
        match = self._match_repo.get(conn, match_id)
        if match is None:
            raise NotFoundError(f"Match not found: {match_id}")
        return match

    # ---------- Calendar ----------

    def generate_calendar(
        self,
        conn: sqlite3.Connection,
        category_id: str,
        *,
        start_date: date,
        double_round: bool = False,
        time_slots: Sequence[str] | None = None,
        replace: bool = False,
    ) -> list[Match]:
        """
        Build and persist the round-robin calendar of a category.
        Uses eligible teams (active/approved) in registration order and available
        fields in priority order. The whole calendar is written in one transaction.
        """
        category = self._get_category(conn, category_id)
        teams = self._team_repo.list_by_category(conn, category_id, eligible_only=True)
        try:
            validate_team_count(len(teams))
        except ScheduleError as e:
            raise CalendarError(str(e)) from e
        fields = self._field_repo.list_available(conn)
        if not fields:
            raise CalendarError("No fields available; configure fields before generating a calendar")
        existing = self._match_repo.list_by_category(conn, category_id)
        if existing:
            if not replace:
                raise CalendarError(
                    f"Category {category.name} already has {len(existing)} matches; pass replace to regenerate"
                )
            if any(m.status in _PLAYED_STATUSES for m in existing):
                raise CalendarError("Cannot regenerate a calendar once matches have been played")
        rounds = round_robin_rounds([t.id for t in teams], double_round=double_round)
        scope = Scope(season_id=category.season_id, division_id=category.division_id, category_id=category.id)
        try:
            scheduled = schedule_matches(
                rounds,
                start_date,
                [f.id for f in fields],
                scope,
                time_slots=DEFAULT_TIME_SLOTS if time_slots is None else time_slots,
            )
        except ScheduleError as e:
            raise CalendarError(str(e)) from e
        created = self._match_repo.create_batch(
            conn, scheduled, replace_category_id=category_id if existing else None
        )
        logger.info(
            "Generated calendar for category %s: %d teams, %d rounds, %d matches",
            category_id, len(teams), len(rounds), len(created),
        )
        return created

    # ---------- Match lifecycle ----------

    def transition_match_status(self, conn: sqlite3.Connection, match_id: str, new_status: str) -> Match:
        """
        Move a match to new_status if the transition is allowed.
        Completing goes through record_result, which carries the score.
        """
        match = self._get_match(conn, match_id)
        current = match.status
        allowed = _VALID_TRANSITIONS.get(current, set())
        if new_status not in allowed:
            raise MatchTransitionError(
                f"Invalid transition: {current} -> {new_status}. Allowed from {current}: {sorted(allowed)}"
            )
        if new_status == MatchStatus.COMPLETED.value:
            raise MatchTransitionError("Use record_result to complete a match")
        self._match_repo.update_status(conn, match_id, new_status)
        logger.info("Match %s: %s -> %s", match_id, current, new_status)
        return self._get_match(conn, match_id)

    def record_result(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        home_score: int,
        away_score: int,
        safeties_home: int = 0,
        safeties_away: int = 0,
        notes: str | None = None,
        recorded_by: User | None = None,
    ) -> Match:
        """
        Store the final score, derive the winner and complete the match.
        A referee may only record matches they are assigned to.
        """
        if min(home_score, away_score, safeties_home, safeties_away) < 0:
            raise ValueError("Scores and safeties must be non-negative")
        match = self._get_match(conn, match_id)
        if recorded_by is not None and parse_role(recorded_by.role) is Role.REFEREE:
            if match.referee_id != recorded_by.id:
                raise RefereeAssignmentError(f"Referee {recorded_by.username} is not assigned to match {match_id}")
        if MatchStatus.COMPLETED.value not in _VALID_TRANSITIONS.get(match.status, set()):
            raise MatchTransitionError(f"Cannot record a result for a match in status {match.status}")
        self._match_repo.update_result(
            conn, match_id, home_score, away_score,
            winner=winner_for(home_score, away_score),
            safeties_home=safeties_home,
            safeties_away=safeties_away,
            notes=notes,
        )
        return self._get_match(conn, match_id)

    def assign_referee(self, conn: sqlite3.Connection, match_id: str, referee_id: str) -> Match:
        match = self._get_match(conn, match_id)
        if match.status in (MatchStatus.COMPLETED.value, MatchStatus.CANCELLED.value):
            raise RefereeAssignmentError(f"Cannot assign a referee to a {match.status} match")
        user = self._user_repo.get(conn, referee_id)
        if user is None:
            raise NotFoundError(f"User not found: {referee_id}")
        if parse_role(user.role) is not Role.REFEREE:
            raise RefereeAssignmentError(f"User {user.username} is not a referee")
        self._match_repo.update_referee(conn, match_id, referee_id)
        return self._get_match(conn, match_id)

    def referee_matches(self, conn: sqlite3.Connection, referee_id: str) -> dict[str, list[Match]]:
        """
        Matches assigned to a referee, grouped for the referee panel.
        upcoming holds scheduled and postponed matches; each group is in date order.
        """
        groups: dict[str, list[Match]] = {key: [] for key in _REFEREE_GROUPS.values()}
        for m in self._match_repo.list_by_referee(conn, referee_id):
            groups[_REFEREE_GROUPS[m.status]].append(m)
        return groups

    # ---------- Standings ----------

    def standings_for_category(self, conn: sqlite3.Connection, category_id: str) -> list[Standing]:
        """Ranked table of a category's eligible teams using the category's points rule."""
        category = self._get_category(conn, category_id)
        teams = self._team_repo.list_by_category(conn, category_id, eligible_only=True)
        matches = self._match_repo.list_by_category(conn, category_id, status=MatchStatus.COMPLETED.value)
        return compute_standings([t.id for t in teams], matches, get_points_rule(category.points_rule))

    # ---------- Rosters ----------

    @staticmethod
    def can_manage_roster(user: User, team: Team) -> bool:
        """Captains manage their own team only; other roster managers manage any team."""
        if not has_capability(user.role, Capability.MANAGE_ROSTER):
            return False
        if parse_role(user.role) is Role.CAPTAIN:
            return team.captain_id == user.id
        return True

    def add_player(
        self,
        conn: sqlite3.Connection,
        team_id: str,
        *,
        name: str,
        number: int,
        last_name: str = "",
        position: str = PlayerPosition.UTILITY.value,
        added_by: User | None = None,
    ) -> Player:
        team = self._get_team(conn, team_id)
        if added_by is not None and not self.can_manage_roster(added_by, team):
            raise RosterPermissionError(f"{added_by.username} cannot change the roster of {team.name}")
        if not 0 <= number <= 99:
            raise RosterError(f"Jersey number must be between 0 and 99 (got {number})")
        try:
            player = self._player_repo.create(
                conn, team.id, name, number, last_name=last_name, position=position
            )
        except sqlite3.IntegrityError as e:
            raise RosterError(f"Number {number} is already taken in {team.name}") from e
        logger.info("Team %s: added #%d %s", team.id, number, name)
        return player

    def team_roster(self, conn: sqlite3.Connection, team_id: str) -> list[Player]:
        self._get_team(conn, team_id)
        return self._player_repo.list_by_team(conn, team_id)

    def set_team_captain(self, conn: sqlite3.Connection, team_id: str, user_id: str) -> Team:
        """Point the team at its captain account. The account must hold the captain role."""
        team = self._get_team(conn, team_id)
        user = self._user_repo.get(conn, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        if parse_role(user.role) is not Role.CAPTAIN:
            raise RosterError(f"User {user.username} is not a captain")
        self._team_repo.update_captain(conn, team.id, user.id)
        return self._get_team(conn, team.id)

    # ---------- Payments ----------

    def payment_summary(self, conn: sqlite3.Connection, team_id: str) -> dict[str, Any]:
        """Totals of a team's payments: overall and per paid/pending/overdue."""
        payments = self._payment_repo.list_by_team(conn, team_id)
        summary = {"total": 0.0, "paid": 0.0, "pending": 0.0, "overdue": 0.0}
        for p in payments:
            summary["total"] += p.amount
            if p.status == PaymentRecordStatus.PAID.value:
                summary["paid"] += p.amount
            elif p.status == PaymentRecordStatus.PENDING.value:
                summary["pending"] += p.amount
            elif p.status == PaymentRecordStatus.OVERDUE.value:
                summary["overdue"] += p.amount
        return summary
