#!/usr/bin/env python3
"""
Vertical slice: Season → Category → Teams → Calendar → Result → Standings.
Run from project root: python3 scripts/vertical_slice.py
"""
from __future__ import annotations

import random
import sys
from datetime import date
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from tocho.models import TeamStatus
from tocho.persistence import (
    init_db,
    get_connection,
    CategoryRepository,
    DivisionRepository,
    FieldRepository,
    SeasonRepository,
    TeamRepository,
)
from tocho.persistence.db import set_db_path
from tocho.services.league_service import LeagueService

TEAM_NAMES = ["Halcones", "Lobos", "Toros", "Pumas", "Coyotes"]


def main() -> None:
    # Use data/vertical_slice.db for demo (distinct from tocho.db)
    db_path = PROJECT_ROOT / "data" / "vertical_slice.db"
    if db_path.exists():
        db_path.unlink()
    set_db_path(db_path)
    init_db(db_path=db_path)

    conn = get_connection()
    try:
        service = LeagueService()

        # 1. League structure and fields
        season = SeasonRepository().create(conn, "Primavera", date(2025, 3, 1), date(2025, 6, 30), status="active")
        division = DivisionRepository().create(conn, season.id, "Varonil")
        category = CategoryRepository().create(conn, season.id, division.id, "Primera")
        field_repo = FieldRepository()
        field_repo.create(conn, "C1", "Cancha 1", priority=1)
        field_repo.create(conn, "C2", "Cancha 2", priority=2)
        print(f"Created season {season.name}, category {category.name}")

        # 2. Teams (odd count, so one team rests each matchday)
        team_repo = TeamRepository()
        teams = [team_repo.create(conn, category, name, status=TeamStatus.ACTIVE.value) for name in TEAM_NAMES]
        names = {t.id: t.name for t in teams}
        print(f"Registered {len(teams)} teams")

        # 3. Calendar
        matches = service.generate_calendar(conn, category.id, start_date=season.start_date, double_round=True)
        print(f"Generated {len(matches)} matches over {max(m.round for m in matches)} matchdays")
        for m in matches[:4]:
            print(f"  R{m.round} {m.match_date} {m.match_time}  {names[m.home_team_id]} vs {names[m.away_team_id]}")

        # 4. Results for the first two matchdays
        rng = random.Random(7)
        for m in matches:
            if m.round > 2:
                break
            service.record_result(conn, m.id, rng.randint(0, 5) * 7, rng.randint(0, 5) * 7)

        # 5. Standings
        print("\nStandings")
        for pos, row in enumerate(service.standings_for_category(conn, category.id), start=1):
            print(
                f"  {pos}. {names[row.team_id]:<10} P{row.played} Pts {row.points} "
                f"DG {row.goal_difference:+d} Form {''.join(row.form)}"
            )

        print("\nVertical slice complete.")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
