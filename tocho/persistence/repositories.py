"""
Repository interfaces for league data.
No business logic, only read/write operations.
"""
from __future__ import annotations

import logging
import sqlite3
import uuid
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Iterator, Sequence, TypeVar

from tocho.models import (
    Category,
    Division,
    ELIGIBLE_TEAM_STATUSES,
    Field,
    FieldStatus,
    Match,
    Payment,
    Player,
    PlayerPosition,
    PlayerStatus,
    Season,
    Team,
    TeamPaymentStatus,
    TeamStatus,
    User,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Upper bound on ids per IN (...) lookup
DEFAULT_LOOKUP_CHUNK = 10


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _parse_date(s: str | None) -> date | None:
    return date.fromisoformat(s) if s else None


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of at most size items."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    for i in range(0, len(items), size):
        yield list(items[i : i + size])


# ---------- UserRepository ----------


class UserRepository:
    """CRUD for users. Passwords arrive already hashed."""

    _COLS = "id, username, password_hash, name, role, is_active, created_at"

    def create_with_password(
        self,
        conn: sqlite3.Connection,
        username: str,
        password_hash: str,
        role: str,
        name: str | None = None,
        id: str | None = None,
    ) -> User:
        uid = id or str(uuid.uuid4())
        now = _now_iso()
        display_name = name or username
        conn.execute(
            f"INSERT INTO users ({self._COLS}) VALUES (?, ?, ?, ?, ?, 1, ?)",
            (uid, username, password_hash, display_name, role, now),
        )
        conn.commit()
        return User(
            id=uid, username=username, name=display_name, role=role,
            created_at=_parse_datetime(now), password_hash=password_hash,
        )

    def _row(self, r: sqlite3.Row) -> User:
        return User(
            id=r["id"],
            username=r["username"],
            name=r["name"],
            role=r["role"],
            created_at=_parse_datetime(r["created_at"]),
            password_hash=r["password_hash"],
            is_active=bool(r["is_active"]),
        )

    def get(self, conn: sqlite3.Connection, user_id: str) -> User | None:
        row = conn.execute(f"SELECT {self._COLS} FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row(row) if row else None

    def get_by_username(self, conn: sqlite3.Connection, username: str) -> User | None:
        row = conn.execute(f"SELECT {self._COLS} FROM users WHERE username = ?", (username,)).fetchone()
        return self._row(row) if row else None

    def update_role(self, conn: sqlite3.Connection, user_id: str, role: str) -> None:
        conn.execute("UPDATE users SET role = ? WHERE id = ?", (role, user_id))
        conn.commit()


# ---------- SeasonRepository ----------


class SeasonRepository:
    """CRUD for seasons. No business logic."""

    _COLS = "id, name, start_date, end_date, status, description, base_price, created_at"

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        start_date: date,
        end_date: date,
        status: str = "upcoming",
        description: str = "",
        base_price: float = 0.0,
        id: str | None = None,
    ) -> Season:
        sid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            f"INSERT INTO seasons ({self._COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (sid, name, start_date.isoformat(), end_date.isoformat(), status, description, base_price, now),
        )
        conn.commit()
        return Season(
            id=sid, name=name, start_date=start_date, end_date=end_date, status=status,
            created_at=_parse_datetime(now), description=description, base_price=base_price,
        )

    def _row(self, r: sqlite3.Row) -> Season:
        return Season(
            id=r["id"],
            name=r["name"],
            start_date=date.fromisoformat(r["start_date"]),
            end_date=date.fromisoformat(r["end_date"]),
            status=r["status"],
            created_at=_parse_datetime(r["created_at"]),
            description=r["description"],
            base_price=r["base_price"],
        )

    def get(self, conn: sqlite3.Connection, season_id: str) -> Season | None:
        row = conn.execute(f"SELECT {self._COLS} FROM seasons WHERE id = ?", (season_id,)).fetchone()
        return self._row(row) if row else None

    def list_all(self, conn: sqlite3.Connection) -> list[Season]:
        rows = conn.execute(f"SELECT {self._COLS} FROM seasons ORDER BY start_date DESC").fetchall()
        return [self._row(r) for r in rows]


# ---------- DivisionRepository ----------


class DivisionRepository:
    """CRUD for divisions. No business logic."""

    _COLS = "id, season_id, name, sort_order, team_limit, created_at"

    def create(
        self,
        conn: sqlite3.Connection,
        season_id: str,
        name: str,
        order: int = 0,
        team_limit: int | None = None,
        id: str | None = None,
    ) -> Division:
        did = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            f"INSERT INTO divisions ({self._COLS}) VALUES (?, ?, ?, ?, ?, ?)",
            (did, season_id, name, order, team_limit, now),
        )
        conn.commit()
        return Division(
            id=did, season_id=season_id, name=name, order=order,
            created_at=_parse_datetime(now), team_limit=team_limit,
        )

    def _row(self, r: sqlite3.Row) -> Division:
        return Division(
            id=r["id"],
            season_id=r["season_id"],
            name=r["name"],
            order=r["sort_order"],
            created_at=_parse_datetime(r["created_at"]),
            team_limit=r["team_limit"],
        )

    def get(self, conn: sqlite3.Connection, division_id: str) -> Division | None:
        row = conn.execute(f"SELECT {self._COLS} FROM divisions WHERE id = ?", (division_id,)).fetchone()
        return self._row(row) if row else None

    def list_by_season(self, conn: sqlite3.Connection, season_id: str) -> list[Division]:
        rows = conn.execute(
            f"SELECT {self._COLS} FROM divisions WHERE season_id = ? ORDER BY sort_order, name",
            (season_id,),
        ).fetchall()
        return [self._row(r) for r in rows]


# ---------- CategoryRepository ----------


class CategoryRepository:
    """CRUD for categories. No business logic."""

    _COLS = "id, season_id, division_id, name, level, team_limit, points_rule, price, created_at"

    def create(
        self,
        conn: sqlite3.Connection,
        season_id: str,
        division_id: str,
        name: str,
        level: int = 1,
        team_limit: int = 8,
        points_rule: str = "three_one_zero",
        price: float = 0.0,
        id: str | None = None,
    ) -> Category:
        cid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            f"INSERT INTO categories ({self._COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (cid, season_id, division_id, name, level, team_limit, points_rule, price, now),
        )
        conn.commit()
        return Category(
            id=cid, season_id=season_id, division_id=division_id, name=name, level=level,
            team_limit=team_limit, points_rule=points_rule, created_at=_parse_datetime(now), price=price,
        )

    def _row(self, r: sqlite3.Row) -> Category:
        return Category(
            id=r["id"],
            season_id=r["season_id"],
            division_id=r["division_id"],
            name=r["name"],
            level=r["level"],
            team_limit=r["team_limit"],
            points_rule=r["points_rule"],
            created_at=_parse_datetime(r["created_at"]),
            price=r["price"],
        )

    def get(self, conn: sqlite3.Connection, category_id: str) -> Category | None:
        row = conn.execute(f"SELECT {self._COLS} FROM categories WHERE id = ?", (category_id,)).fetchone()
        return self._row(row) if row else None

    def list_by_division(self, conn: sqlite3.Connection, division_id: str) -> list[Category]:
        rows = conn.execute(
            f"SELECT {self._COLS} FROM categories WHERE division_id = ? ORDER BY level, name",
            (division_id,),
        ).fetchall()
        return [self._row(r) for r in rows]


# ---------- FieldRepository ----------


class FieldRepository:
    """CRUD for fields. No business logic."""

    _COLS = "id, code, name, status, priority, created_at"

    def create(
        self,
        conn: sqlite3.Connection,
        code: str,
        name: str,
        status: str = FieldStatus.AVAILABLE.value,
        priority: int = 5,
        id: str | None = None,
    ) -> Field:
        fid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            f"INSERT INTO fields ({self._COLS}) VALUES (?, ?, ?, ?, ?, ?)",
            (fid, code, name, status, priority, now),
        )
        conn.commit()
        return Field(id=fid, code=code, name=name, status=status, priority=priority, created_at=_parse_datetime(now))

    def _row(self, r: sqlite3.Row) -> Field:
        return Field(
            id=r["id"],
            code=r["code"],
            name=r["name"],
            status=r["status"],
            priority=r["priority"],
            created_at=_parse_datetime(r["created_at"]),
        )

    def get(self, conn: sqlite3.Connection, field_id: str) -> Field | None:
        row = conn.execute(f"SELECT {self._COLS} FROM fields WHERE id = ?", (field_id,)).fetchone()
        return self._row(row) if row else None

    def list_all(self, conn: sqlite3.Connection) -> list[Field]:
        rows = conn.execute(f"SELECT {self._COLS} FROM fields ORDER BY priority, code").fetchall()
        return [self._row(r) for r in rows]

    def list_available(self, conn: sqlite3.Connection) -> list[Field]:
        """Fields the scheduler may use, in pool order (priority, then code)."""
        rows = conn.execute(
            f"SELECT {self._COLS} FROM fields WHERE status = ? ORDER BY priority, code",
            (FieldStatus.AVAILABLE.value,),
        ).fetchall()
        return [self._row(r) for r in rows]

    def update_status(self, conn: sqlite3.Connection, field_id: str, status: str) -> None:
        conn.execute("UPDATE fields SET status = ? WHERE id = ?", (status, field_id))
        conn.commit()


# ---------- TeamRepository ----------


class TeamRepository:
    """CRUD for teams. No business logic."""

    _COLS = "id, season_id, division_id, category_id, name, status, payment_status, primary_color, captain_id, created_at"

    def create(
        self,
        conn: sqlite3.Connection,
        category: Category,
        name: str,
        status: str = TeamStatus.PENDING.value,
        primary_color: str = "#cccccc",
        captain_id: str | None = None,
        id: str | None = None,
    ) -> Team:
        tid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            f"INSERT INTO teams ({self._COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (tid, category.season_id, category.division_id, category.id, name, status, TeamPaymentStatus.PENDING.value,
             primary_color, captain_id, now),
        )
        conn.commit()
        return Team(
            id=tid, season_id=category.season_id, division_id=category.division_id,
            category_id=category.id, name=name, status=status, payment_status=TeamPaymentStatus.PENDING.value,
            created_at=_parse_datetime(now), primary_color=primary_color, captain_id=captain_id,
        )

    def _row(self, r: sqlite3.Row) -> Team:
        return Team(
            id=r["id"],
            season_id=r["season_id"],
            division_id=r["division_id"],
            category_id=r["category_id"],
            name=r["name"],
            status=r["status"],
            payment_status=r["payment_status"],
            created_at=_parse_datetime(r["created_at"]),
            primary_color=r["primary_color"],
            captain_id=r["captain_id"],
        )

    def get(self, conn: sqlite3.Connection, team_id: str) -> Team | None:
        row = conn.execute(f"SELECT {self._COLS} FROM teams WHERE id = ?", (team_id,)).fetchone()
        return self._row(row) if row else None

    def get_many(
        self, conn: sqlite3.Connection, team_ids: Sequence[str], chunk_size: int = DEFAULT_LOOKUP_CHUNK
    ) -> list[Team]:
        """
        Look up many teams with IN (...) queries of at most chunk_size ids.
        Result follows team_ids order; unknown ids are skipped.
        """
        unique_ids = list(dict.fromkeys(team_ids))
        found: dict[str, Team] = {}
        for chunk in chunked(unique_ids, chunk_size):
            placeholders = ", ".join("?" for _ in chunk)
            rows = conn.execute(
                f"SELECT {self._COLS} FROM teams WHERE id IN ({placeholders})", tuple(chunk)
            ).fetchall()
            for r in rows:
                found[r["id"]] = self._row(r)
        return [found[tid] for tid in unique_ids if tid in found]

    def list_by_category(
        self, conn: sqlite3.Connection, category_id: str, eligible_only: bool = False
    ) -> list[Team]:
        """Teams in registration order. eligible_only keeps active/approved teams."""
        sql = f"SELECT {self._COLS} FROM teams WHERE category_id = ?"
        args: tuple = (category_id,)
        if eligible_only:
            sql += f" AND status IN ({', '.join('?' for _ in ELIGIBLE_TEAM_STATUSES)})"
            args += tuple(ELIGIBLE_TEAM_STATUSES)
        sql += " ORDER BY created_at, rowid"
        return [self._row(r) for r in conn.execute(sql, args).fetchall()]

    def update_status(self, conn: sqlite3.Connection, team_id: str, status: str) -> None:
        conn.execute("UPDATE teams SET status = ? WHERE id = ?", (status, team_id))
        conn.commit()

    def update_captain(self, conn: sqlite3.Connection, team_id: str, captain_id: str) -> None:
        conn.execute("UPDATE teams SET captain_id = ? WHERE id = ?", (captain_id, team_id))
        conn.commit()


# ---------- PlayerRepository ----------


class PlayerRepository:
    """Team rosters. Duplicate jersey numbers within a team raise sqlite3.IntegrityError."""

    _COLS = "id, team_id, name, last_name, number, position, status, user_id, created_at"

    def create(
        self,
        conn: sqlite3.Connection,
        team_id: str,
        name: str,
        number: int,
        last_name: str = "",
        position: str = PlayerPosition.UTILITY.value,
        status: str = PlayerStatus.ACTIVE.value,
        user_id: str | None = None,
        id: str | None = None,
    ) -> Player:
        pid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            f"INSERT INTO players ({self._COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (pid, team_id, name, last_name, number, position, status, user_id, now),
        )
        conn.commit()
        return Player(
            id=pid, team_id=team_id, name=name, last_name=last_name, number=number,
            position=position, status=status, created_at=_parse_datetime(now), user_id=user_id,
        )

    def _row(self, r: sqlite3.Row) -> Player:
        return Player(
            id=r["id"],
            team_id=r["team_id"],
            name=r["name"],
            last_name=r["last_name"],
            number=r["number"],
            position=r["position"],
            status=r["status"],
            created_at=_parse_datetime(r["created_at"]),
            user_id=r["user_id"],
        )

    def list_by_team(self, conn: sqlite3.Connection, team_id: str) -> list[Player]:
        rows = conn.execute(
            f"SELECT {self._COLS} FROM players WHERE team_id = ? ORDER BY number",
            (team_id,),
        ).fetchall()
        return [self._row(r) for r in rows]


# ---------- MatchRepository ----------


class MatchRepository:
    """CRUD for matches. create_batch is the all-or-nothing calendar write."""

    _COLS = (
        "id, season_id, division_id, category_id, home_team_id, away_team_id, field_id, "
        "match_date, match_time, round, status, home_score, away_score, winner, "
        "safeties_home, safeties_away, referee_id, notes, created_at"
    )

    def create_batch(
        self,
        conn: sqlite3.Connection,
        matches: Sequence[Match],
        replace_category_id: str | None = None,
    ) -> list[Match]:
        """
        Insert every match in one transaction and return them with ids assigned.
        With replace_category_id, that category's existing matches are deleted in
        the same transaction. Any failure rolls everything back and re-raises.
        """
        now = _now_iso()
        created: list[Match] = []
        try:
            with conn:
                if replace_category_id is not None:
                    conn.execute("DELETE FROM matches WHERE category_id = ?", (replace_category_id,))
                for m in matches:
                    mid = str(uuid.uuid4())
                    conn.execute(
                        f"INSERT INTO matches ({self._COLS}) VALUES "
                        "(?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        (
                            mid, m.season_id, m.division_id, m.category_id, m.home_team_id,
                            m.away_team_id, m.field_id, m.match_date.isoformat(), m.match_time,
                            m.round, m.status, m.home_score, m.away_score, m.winner,
                            m.safeties_home, m.safeties_away, m.referee_id, m.notes, now,
                        ),
                    )
                    created.append(replace(m, id=mid, created_at=_parse_datetime(now)))
        except sqlite3.Error:
            logger.error("Batch write of %d matches failed; nothing was saved", len(matches))
            raise
        return created

    def _row(self, r: sqlite3.Row) -> Match:
        return Match(
            id=r["id"],
            season_id=r["season_id"],
            division_id=r["division_id"],
            category_id=r["category_id"],
            home_team_id=r["home_team_id"],
            away_team_id=r["away_team_id"],
            field_id=r["field_id"],
            match_date=date.fromisoformat(r["match_date"]),
            match_time=r["match_time"],
            round=r["round"],
            status=r["status"],
            home_score=r["home_score"],
            away_score=r["away_score"],
            winner=r["winner"],
            safeties_home=r["safeties_home"],
            safeties_away=r["safeties_away"],
            referee_id=r["referee_id"],
            notes=r["notes"],
            created_at=_parse_datetime(r["created_at"]),
        )

    def get(self, conn: sqlite3.Connection, match_id: str) -> Match | None:
        row = conn.execute(f"SELECT {self._COLS} FROM matches WHERE id = ?", (match_id,)).fetchone()
        return self._row(row) if row else None

    def list_by_category(
        self, conn: sqlite3.Connection, category_id: str, status: str | None = None
    ) -> list[Match]:
        """Matches in calendar order (round, date, time)."""
        sql = f"SELECT {self._COLS} FROM matches WHERE category_id = ?"
        args: tuple = (category_id,)
        if status is not None:
            sql += " AND status = ?"
            args += (status,)
        sql += " ORDER BY round, match_date, match_time, rowid"
        return [self._row(r) for r in conn.execute(sql, args).fetchall()]

    def list_by_team(self, conn: sqlite3.Connection, team_id: str) -> list[Match]:
        rows = conn.execute(
            f"SELECT {self._COLS} FROM matches WHERE home_team_id = ? OR away_team_id = ? "
            "ORDER BY match_date, match_time",
            (team_id, team_id),
        ).fetchall()
        return [self._row(r) for r in rows]

    def list_by_referee(self, conn: sqlite3.Connection, referee_id: str) -> list[Match]:
        rows = conn.execute(
            f"SELECT {self._COLS} FROM matches WHERE referee_id = ? ORDER BY match_date, match_time, rowid",
            (referee_id,),
        ).fetchall()
        return [self._row(r) for r in rows]

    def update_result(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        home_score: int,
        away_score: int,
        winner: str,
        safeties_home: int = 0,
        safeties_away: int = 0,
        notes: str | None = None,
    ) -> None:
        if notes is not None:
            conn.execute(
                "UPDATE matches SET home_score = ?, away_score = ?, winner = ?, safeties_home = ?, "
                "safeties_away = ?, status = 'completed', notes = ? WHERE id = ?",
                (home_score, away_score, winner, safeties_home, safeties_away, notes, match_id),
            )
        else:
            conn.execute(
                "UPDATE matches SET home_score = ?, away_score = ?, winner = ?, safeties_home = ?, "
                "safeties_away = ?, status = 'completed' WHERE id = ?",
                (home_score, away_score, winner, safeties_home, safeties_away, match_id),
            )
        conn.commit()

    def update_status(self, conn: sqlite3.Connection, match_id: str, status: str) -> None:
        conn.execute("UPDATE matches SET status = ? WHERE id = ?", (status, match_id))
        conn.commit()

    def update_referee(self, conn: sqlite3.Connection, match_id: str, referee_id: str) -> None:
        conn.execute("UPDATE matches SET referee_id = ? WHERE id = ?", (referee_id, match_id))
        conn.commit()


# ---------- PaymentRepository ----------


class PaymentRepository:
    """CRUD for payments. No business logic."""

    _COLS = "id, team_id, season_id, amount, status, due_date, paid_date, method, reference, created_at"

    def create(
        self,
        conn: sqlite3.Connection,
        team_id: str,
        season_id: str,
        amount: float,
        due_date: date,
        status: str = "pending",
        paid_date: date | None = None,
        method: str | None = None,
        reference: str | None = None,
        id: str | None = None,
    ) -> Payment:
        pid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            f"INSERT INTO payments ({self._COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (pid, team_id, season_id, amount, status, due_date.isoformat(),
             paid_date.isoformat() if paid_date else None, method, reference, now),
        )
        conn.commit()
        return Payment(
            id=pid, team_id=team_id, season_id=season_id, amount=amount, status=status,
            due_date=due_date, created_at=_parse_datetime(now), paid_date=paid_date,
            method=method, reference=reference,
        )

    def _row(self, r: sqlite3.Row) -> Payment:
        return Payment(
            id=r["id"],
            team_id=r["team_id"],
            season_id=r["season_id"],
            amount=r["amount"],
            status=r["status"],
            due_date=date.fromisoformat(r["due_date"]),
            created_at=_parse_datetime(r["created_at"]),
            paid_date=_parse_date(r["paid_date"]),
            method=r["method"],
            reference=r["reference"],
        )

    def get(self, conn: sqlite3.Connection, payment_id: str) -> Payment | None:
        row = conn.execute(f"SELECT {self._COLS} FROM payments WHERE id = ?", (payment_id,)).fetchone()
        return self._row(row) if row else None

    def list_by_team(self, conn: sqlite3.Connection, team_id: str) -> list[Payment]:
        rows = conn.execute(
            f"SELECT {self._COLS} FROM payments WHERE team_id = ? ORDER BY due_date",
            (team_id,),
        ).fetchall()
        return [self._row(r) for r in rows]

    def mark_paid(
        self, conn: sqlite3.Connection, payment_id: str, paid_date: date, method: str | None = None
    ) -> None:
        conn.execute(
            "UPDATE payments SET status = 'paid', paid_date = ?, method = COALESCE(?, method) WHERE id = ?",
            (paid_date.isoformat(), method, payment_id),
        )
        conn.commit()
