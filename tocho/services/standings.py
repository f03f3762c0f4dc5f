"""
Standings table for a category.

Pure reduction of (teams, completed matches) into a ranked table. No I/O.
Ranking: points desc, goal difference desc, goals for desc; anything still
tied keeps the order of the input team list (Python's sort is stable).

Points come from a pluggable rule. Two sports' rules coexist in the league:
the generic 3-1-0 table and the flag-football table where a team earns one
point per win plus its safeties. Each category names the rule it uses.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Iterable, Sequence

from tocho.models import Match, MatchStatus

logger = logging.getLogger(__name__)

FORM_LENGTH = 5


class MatchResult(str, Enum):
    WIN = "W"
    DRAW = "D"
    LOSS = "L"


@dataclass(frozen=True)
class TeamMatchLine:
    """One completed match seen from one team's side. Input to a points rule."""
    result: MatchResult
    points_for: int
    points_against: int
    safeties: int = 0


PointsRule = Callable[[TeamMatchLine], int]


def three_one_zero(line: TeamMatchLine) -> int:
    if line.result is MatchResult.WIN:
        return 3
    if line.result is MatchResult.DRAW:
        return 1
    return 0


def win_plus_safeties(line: TeamMatchLine) -> int:
    """Flag-football table: one point per win, plus every safety scored."""
    return (1 if line.result is MatchResult.WIN else 0) + line.safeties


POINTS_RULES: dict[str, PointsRule] = {
    "three_one_zero": three_one_zero,
    "win_plus_safeties": win_plus_safeties,
}
DEFAULT_POINTS_RULE = "three_one_zero"


def get_points_rule(name: str) -> PointsRule:
    try:
        return POINTS_RULES[name]
    except KeyError:
        raise ValueError(f"Unknown points rule: {name!r}. Valid: {', '.join(POINTS_RULES)}") from None


@dataclass
class Standing:
    team_id: str
    played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0
    form: list[str] = field(default_factory=list)
    streak: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    def to_dict(self) -> dict[str, Any]:
        return {
            "team_id": self.team_id,
            "played": self.played,
            "wins": self.wins,
            "draws": self.draws,
            "losses": self.losses,
            "goals_for": self.goals_for,
            "goals_against": self.goals_against,
            "goal_difference": self.goal_difference,
            "points": self.points,
            "form": list(self.form),
            "streak": self.streak,
        }


def _score(match: Match, side: str) -> int:
    value = match.home_score if side == "home" else match.away_score
    if value is None:
        logger.warning("Completed match %s has no %s score; counting it as 0", match.id, side)
        return 0
    return int(value)


def _chronological(matches: Iterable[Match]) -> list[Match]:
    return sorted(matches, key=lambda m: (m.match_date or date.min, m.match_time or "", m.round))


def compute_streak(results: Sequence[MatchResult]) -> int:
    """+n for n straight wins at the tail, -n for losses, 0 after a draw or with no history."""
    if not results:
        return 0
    tail = results[-1]
    if tail is MatchResult.DRAW:
        return 0
    run = 0
    for r in reversed(results):
        if r is not tail:
            break
        run += 1
    return run if tail is MatchResult.WIN else -run


def _team_line(match: Match, team_id: str) -> TeamMatchLine:
    home_score = _score(match, "home")
    away_score = _score(match, "away")
    if match.home_team_id == team_id:
        scored, conceded, safeties = home_score, away_score, match.safeties_home or 0
    else:
        scored, conceded, safeties = away_score, home_score, match.safeties_away or 0
    if scored > conceded:
        result = MatchResult.WIN
    elif scored < conceded:
        result = MatchResult.LOSS
    else:
        result = MatchResult.DRAW
    return TeamMatchLine(result=result, points_for=scored, points_against=conceded, safeties=safeties)


def compute_standings(
    team_ids: Sequence[str],
    matches: Iterable[Match],
    points_rule: PointsRule = three_one_zero,
) -> list[Standing]:
    """
    Build the ranked table for team_ids from completed matches.
    Matches in any other status are ignored, as are teams outside team_ids.
    """
    completed = _chronological(m for m in matches if m.status == MatchStatus.COMPLETED.value)
    table: list[Standing] = []
    for team_id in team_ids:
        row = Standing(team_id=team_id)
        results: list[MatchResult] = []
        for m in completed:
            if team_id not in (m.home_team_id, m.away_team_id):
                continue
            line = _team_line(m, team_id)
            row.played += 1
            row.goals_for += line.points_for
            row.goals_against += line.points_against
            if line.result is MatchResult.WIN:
                row.wins += 1
            elif line.result is MatchResult.LOSS:
                row.losses += 1
            else:
                row.draws += 1
            row.points += points_rule(line)
            results.append(line.result)
        row.form = [r.value for r in results[-FORM_LENGTH:]]
        row.streak = compute_streak(results)
        table.append(row)
    return sorted(table, key=lambda s: (-s.points, -s.goal_difference, -s.goals_for))
