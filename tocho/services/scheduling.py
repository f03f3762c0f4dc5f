"""
Deterministic round-robin calendar generation for a category.

Round-robin is used so every team plays every other team exactly once per leg;
a leg is N-1 matchdays (N even) or N matchdays (N odd). Each team plays at most
one match per matchday.

BYE handling: when the number of teams is odd, we add a virtual BYE. Pairings
against BYE are dropped, so exactly one team rests each matchday.

Uses the circle method: fix first slot, rotate the others each round. Same team
list ordering yields the same calendar.

Scheduling places round k on the k-th Saturday from the start date, hands out
time slots per round and rotates fields across the whole calendar.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Sequence

from tocho.models import Match, MatchStatus

# Sentinel for bye when number of teams is odd
BYE = "BYE"

MIN_TEAMS = 2
MAX_TEAMS = 8

DEFAULT_TIME_SLOTS: tuple[str, ...] = ("09:00", "11:00", "13:00", "15:00")

_SATURDAY = 5  # date.weekday()
_TIME_SLOT_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class ScheduleError(ValueError):
    """Precondition violation while generating or scheduling a calendar."""


@dataclass(frozen=True)
class Fixture:
    home: str
    away: str

    def mirrored(self) -> Fixture:
        return Fixture(home=self.away, away=self.home)


@dataclass(frozen=True)
class Scope:
    """Season / division / category ids copied onto every scheduled match."""
    season_id: str
    division_id: str
    category_id: str


def validate_team_count(n: int) -> None:
    if n < MIN_TEAMS or n > MAX_TEAMS:
        raise ScheduleError(
            f"Between {MIN_TEAMS} and {MAX_TEAMS} teams are required to generate a calendar (got {n})"
        )


def round_robin_rounds(team_ids: Sequence[str], double_round: bool = False) -> list[list[Fixture]]:
    """
    Generate fixtures grouped by round. Position i plays position N-1-i, i is home.
    With double_round, the second leg mirrors the first round by round.
    """
    ids = list(team_ids)
    validate_team_count(len(ids))
    if len(set(ids)) != len(ids):
        raise ScheduleError("Team ids must be unique")
    if BYE in ids:
        raise ScheduleError(f"{BYE!r} is reserved and cannot be used as a team id")
    if len(ids) % 2 == 1:
        ids.append(BYE)
    n = len(ids)
    rounds: list[list[Fixture]] = []
    for _ in range(n - 1):
        fixtures = []
        for i in range(n // 2):
            home, away = ids[i], ids[n - 1 - i]
            if home == BYE or away == BYE:
                continue
            fixtures.append(Fixture(home=home, away=away))
        rounds.append(fixtures)
        # Rotate: keep 0, then last, then 1..n-2
        ids = [ids[0], ids[n - 1]] + ids[1 : n - 1]
    if double_round:
        rounds += [[f.mirrored() for f in rnd] for rnd in rounds]
    return rounds


def generate_fixtures(team_ids: Sequence[str], double_round: bool = False) -> list[dict[str, Any]]:
    """
    Return list of fixtures: { "round": int, "home_team_id": str, "away_team_id": str }.
    Rounds are 1-based; byes produce no entry.
    """
    return [
        {"round": r, "home_team_id": f.home, "away_team_id": f.away}
        for r, fixtures in enumerate(round_robin_rounds(team_ids, double_round), start=1)
        for f in fixtures
    ]


def next_saturday(d: date) -> date:
    """d itself when it is a Saturday, otherwise the following Saturday."""
    return d + timedelta(days=(_SATURDAY - d.weekday()) % 7)


def _validate_time_slots(time_slots: Sequence[str]) -> None:
    if not time_slots:
        raise ScheduleError("At least one time slot is required")
    bad = [t for t in time_slots if not _TIME_SLOT_RE.match(t)]
    if bad:
        raise ScheduleError(f"Time slots must be HH:MM: {bad}")


def schedule_matches(
    rounds: Sequence[Sequence[Fixture]],
    start_date: date,
    field_ids: Sequence[str],
    scope: Scope,
    time_slots: Sequence[str] = DEFAULT_TIME_SLOTS,
) -> list[Match]:
    """
    Turn grouped fixtures into scheduled matches.
    Matchdays are weekly from the first Saturday on/after start_date. Time slots
    restart every round; fields rotate over the global fixture order.
    """
    if not field_ids:
        raise ScheduleError("No fields available; configure fields before generating a calendar")
    _validate_time_slots(time_slots)
    first_matchday = next_saturday(start_date)
    matches: list[Match] = []
    field_index = 0
    for round_index, fixtures in enumerate(rounds):
        matchday = first_matchday + timedelta(weeks=round_index)
        for slot_index, fixture in enumerate(fixtures):
            matches.append(Match(
                season_id=scope.season_id,
                division_id=scope.division_id,
                category_id=scope.category_id,
                home_team_id=fixture.home,
                away_team_id=fixture.away,
                field_id=field_ids[field_index % len(field_ids)],
                match_date=matchday,
                match_time=time_slots[slot_index % len(time_slots)],
                round=round_index + 1,
                status=MatchStatus.SCHEDULED.value,
                home_score=0,
                away_score=0,
                winner=None,
            ))
            field_index += 1
    return matches
