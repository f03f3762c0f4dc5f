"""
Tests for the standings table: points, tie-breaks, form and streak.
"""
from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from tocho.models import Match, MatchStatus
from tocho.services.standings import (
    FORM_LENGTH,
    MatchResult,
    TeamMatchLine,
    compute_standings,
    compute_streak,
    get_points_rule,
    three_one_zero,
    win_plus_safeties,
)

_START = date(2025, 3, 1)


def _match(
    home: str,
    away: str,
    home_score: int | None,
    away_score: int | None,
    round_no: int = 1,
    status: str = MatchStatus.COMPLETED.value,
    safeties_home: int = 0,
    safeties_away: int = 0,
) -> Match:
    return Match(
        season_id="s",
        division_id="d",
        category_id="c",
        home_team_id=home,
        away_team_id=away,
        field_id="F1",
        match_date=_START + timedelta(weeks=round_no - 1),
        match_time="09:00",
        round=round_no,
        status=status,
        home_score=home_score,
        away_score=away_score,
        safeties_home=safeties_home,
        safeties_away=safeties_away,
        id=f"{home}-{away}-{round_no}",
    )


def _by_team(table):
    return {row.team_id: row for row in table}


def test_win_and_loss_three_one_zero():
    """A beats B 3-1: A has 3 pts, +2; B has 0 pts, -2."""
    table = compute_standings(["A", "B"], [_match("A", "B", 3, 1)])
    assert [row.team_id for row in table] == ["A", "B"]
    a, b = table
    assert (a.played, a.wins, a.draws, a.losses, a.points) == (1, 1, 0, 0, 3)
    assert (a.goals_for, a.goals_against, a.goal_difference) == (3, 1, 2)
    assert (b.played, b.wins, b.losses, b.points, b.goal_difference) == (1, 0, 1, 0, -2)
    assert a.form == ["W"] and a.streak == 1
    assert b.form == ["L"] and b.streak == -1


def test_one_win_one_loss_over_two_rounds():
    """X beats Y 3-1 at home, then loses 0-2 away at Z."""
    matches = [_match("X", "Y", 3, 1, round_no=1), _match("Z", "X", 2, 0, round_no=2)]
    x = _by_team(compute_standings(["X", "Y", "Z"], matches))["X"]
    assert (x.played, x.wins, x.draws, x.losses) == (2, 1, 0, 1)
    assert (x.goals_for, x.goals_against, x.goal_difference) == (3, 3, 0)
    assert x.points == 3
    assert x.form == ["W", "L"] and x.streak == -1


def test_draw_gives_one_point_each():
    table = _by_team(compute_standings(["A", "B"], [_match("A", "B", 2, 2)]))
    assert table["A"].points == 1 and table["B"].points == 1
    assert table["A"].draws == 1 and table["B"].draws == 1
    assert table["A"].streak == 0


def test_team_without_matches_is_listed_with_zeros():
    table = compute_standings(["A", "B", "C"], [_match("A", "B", 1, 0)])
    c = _by_team(table)["C"]
    assert c.played == 0 and c.points == 0 and c.form == [] and c.streak == 0
    assert table[-1].team_id == "C"


def test_ordering_points_then_goal_difference_then_goals_for():
    matches = [
        _match("A", "X", 1, 0, round_no=1),  # A: 3 pts, +1, gf 1
        _match("B", "Y", 5, 4, round_no=1),  # B: 3 pts, +1, gf 5
        _match("C", "Z", 4, 0, round_no=1),  # C: 3 pts, +4
    ]
    table = compute_standings(["A", "B", "C", "X", "Y", "Z"], matches)
    assert [row.team_id for row in table[:3]] == ["C", "B", "A"]


def test_full_tie_keeps_input_order():
    matches = [_match("A", "B", 1, 1), _match("C", "D", 1, 1)]
    table = compute_standings(["D", "C", "B", "A"], matches)
    assert [row.team_id for row in table] == ["D", "C", "B", "A"]


def test_only_completed_matches_count():
    matches = [
        _match("A", "B", 2, 0, round_no=1),
        _match("A", "B", 9, 0, round_no=2, status=MatchStatus.SCHEDULED.value),
        _match("A", "B", 9, 0, round_no=3, status=MatchStatus.IN_PROGRESS.value),
        _match("B", "A", 9, 0, round_no=4, status=MatchStatus.CANCELLED.value),
    ]
    a = _by_team(compute_standings(["A", "B"], matches))["A"]
    assert a.played == 1 and a.goals_for == 2


def test_missing_score_counts_as_zero():
    table = _by_team(compute_standings(["A", "B"], [_match("A", "B", 2, None)]))
    assert table["A"].wins == 1 and table["A"].goals_against == 0
    assert table["B"].goals_for == 0 and table["B"].losses == 1


def test_form_keeps_last_five_oldest_first():
    # A wins rounds 1-3, loses 4-5, draws 6, wins 7: form is the last five results.
    scores = [(1, 0), (1, 0), (1, 0), (0, 1), (0, 1), (2, 2), (3, 0)]
    matches = [_match("A", "B", h, a, round_no=i + 1) for i, (h, a) in enumerate(scores)]
    a = _by_team(compute_standings(["A", "B"], matches))["A"]
    assert len(a.form) == FORM_LENGTH
    assert a.form == ["W", "L", "L", "D", "W"]
    assert a.streak == 1


def test_form_follows_match_dates_not_input_order():
    matches = [_match("A", "B", 0, 1, round_no=2), _match("A", "B", 1, 0, round_no=1)]
    a = _by_team(compute_standings(["A", "B"], matches))["A"]
    assert a.form == ["W", "L"]
    assert a.streak == -1


@pytest.mark.parametrize(
    "results,expected",
    [
        ([], 0),
        (["W"], 1),
        (["W", "W", "W"], 3),
        (["W", "L", "L"], -2),
        (["L", "W", "D"], 0),
        (["D", "W", "W"], 2),
    ],
)
def test_compute_streak(results, expected):
    assert compute_streak([MatchResult(r) for r in results]) == expected


def test_win_plus_safeties_rule():
    matches = [_match("A", "B", 14, 7, safeties_home=2, safeties_away=1)]
    table = _by_team(compute_standings(["A", "B"], matches, points_rule=win_plus_safeties))
    assert table["A"].points == 3  # 1 win + 2 safeties
    assert table["B"].points == 1  # safeties only


def test_points_rule_functions():
    win = TeamMatchLine(MatchResult.WIN, 7, 0, safeties=1)
    draw = TeamMatchLine(MatchResult.DRAW, 7, 7)
    loss = TeamMatchLine(MatchResult.LOSS, 0, 7, safeties=2)
    assert [three_one_zero(x) for x in (win, draw, loss)] == [3, 1, 0]
    assert [win_plus_safeties(x) for x in (win, draw, loss)] == [2, 0, 2]


def test_get_points_rule():
    assert get_points_rule("three_one_zero") is three_one_zero
    assert get_points_rule("win_plus_safeties") is win_plus_safeties
    with pytest.raises(ValueError):
        get_points_rule("two_for_a_win")


def test_standing_to_dict_includes_goal_difference():
    row = compute_standings(["A", "B"], [_match("A", "B", 3, 1)])[0]
    d = row.to_dict()
    assert d["team_id"] == "A"
    assert d["goal_difference"] == 2
    assert d["form"] == ["W"]
