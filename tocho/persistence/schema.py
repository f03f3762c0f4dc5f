"""
SQLite schema for league entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def users_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL DEFAULT '',
        name TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'spectator',
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL
    );
    """


def seasons_schema() -> str:
    """status: upcoming | active | completed | archived."""
    return """
    CREATE TABLE IF NOT EXISTS seasons (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        start_date TEXT NOT NULL,
        end_date TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'upcoming',
        description TEXT NOT NULL DEFAULT '',
        base_price REAL NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    );
    """


def divisions_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS divisions (
        id TEXT PRIMARY KEY,
        season_id TEXT NOT NULL,
        name TEXT NOT NULL,
        sort_order INTEGER NOT NULL DEFAULT 0,
        team_limit INTEGER,
        created_at TEXT NOT NULL,
        FOREIGN KEY (season_id) REFERENCES seasons(id)
    );
    CREATE INDEX IF NOT EXISTS ix_divisions_season ON divisions(season_id);
    """


def categories_schema() -> str:
    """points_rule: name of the standings rule (see services.standings.POINTS_RULES)."""
    return """
    CREATE TABLE IF NOT EXISTS categories (
        id TEXT PRIMARY KEY,
        season_id TEXT NOT NULL,
        division_id TEXT NOT NULL,
        name TEXT NOT NULL,
        level INTEGER NOT NULL DEFAULT 1,
        team_limit INTEGER NOT NULL DEFAULT 8,
        points_rule TEXT NOT NULL DEFAULT 'three_one_zero',
        price REAL NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        FOREIGN KEY (season_id) REFERENCES seasons(id),
        FOREIGN KEY (division_id) REFERENCES divisions(id)
    );
    CREATE INDEX IF NOT EXISTS ix_categories_division ON categories(division_id);
    """


def fields_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS fields (
        id TEXT PRIMARY KEY,
        code TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'available',
        priority INTEGER NOT NULL DEFAULT 5,
        created_at TEXT NOT NULL
    );
    """


def teams_schema() -> str:
    """Teams register into one category. Registration order (created_at) is the calendar seed order."""
    return """
    CREATE TABLE IF NOT EXISTS teams (
        id TEXT PRIMARY KEY,
        season_id TEXT NOT NULL,
        division_id TEXT NOT NULL,
        category_id TEXT NOT NULL,
        name TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        payment_status TEXT NOT NULL DEFAULT 'pending',
        primary_color TEXT NOT NULL DEFAULT '#cccccc',
        captain_id TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (category_id) REFERENCES categories(id),
        FOREIGN KEY (captain_id) REFERENCES users(id)
    );
    CREATE INDEX IF NOT EXISTS ix_teams_category ON teams(category_id);
    """


def matches_schema() -> str:
    """status: scheduled | in_progress | completed | cancelled | postponed. winner only once completed."""
    return """
    CREATE TABLE IF NOT EXISTS matches (
        id TEXT PRIMARY KEY,
        season_id TEXT NOT NULL,
        division_id TEXT NOT NULL,
        category_id TEXT NOT NULL,
        home_team_id TEXT NOT NULL,
        away_team_id TEXT NOT NULL,
        field_id TEXT NOT NULL,
        match_date TEXT NOT NULL,
        match_time TEXT NOT NULL,
        round INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'scheduled',
        home_score INTEGER,
        away_score INTEGER,
        winner TEXT,
        safeties_home INTEGER NOT NULL DEFAULT 0,
        safeties_away INTEGER NOT NULL DEFAULT 0,
        referee_id TEXT,
        notes TEXT NOT NULL DEFAULT '',
        created_at TEXT NOT NULL,
        FOREIGN KEY (category_id) REFERENCES categories(id),
        FOREIGN KEY (home_team_id) REFERENCES teams(id),
        FOREIGN KEY (away_team_id) REFERENCES teams(id),
        FOREIGN KEY (field_id) REFERENCES fields(id),
        FOREIGN KEY (referee_id) REFERENCES users(id)
    );
    CREATE INDEX IF NOT EXISTS ix_matches_category ON matches(category_id);
    CREATE INDEX IF NOT EXISTS ix_matches_home ON matches(home_team_id);
    CREATE INDEX IF NOT EXISTS ix_matches_away ON matches(away_team_id);
    CREATE INDEX IF NOT EXISTS ix_matches_date ON matches(match_date);
    """


def payments_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS payments (
        id TEXT PRIMARY KEY,
        team_id TEXT NOT NULL,
        season_id TEXT NOT NULL,
        amount REAL NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        due_date TEXT NOT NULL,
        paid_date TEXT,
        method TEXT,
        reference TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (team_id) REFERENCES teams(id),
        FOREIGN KEY (season_id) REFERENCES seasons(id)
    );
    CREATE INDEX IF NOT EXISTS ix_payments_team ON payments(team_id);
    """


def players_schema() -> str:
    """Roster rows. (team_id, number) is unique so jersey numbers never repeat within a team."""
    return """
    CREATE TABLE IF NOT EXISTS players (
        id TEXT PRIMARY KEY,
        team_id TEXT NOT NULL,
        name TEXT NOT NULL,
        last_name TEXT NOT NULL DEFAULT '',
        number INTEGER NOT NULL,
        position TEXT NOT NULL DEFAULT 'utility',
        status TEXT NOT NULL DEFAULT 'active',
        user_id TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (team_id) REFERENCES teams(id),
        FOREIGN KEY (user_id) REFERENCES users(id),
        UNIQUE (team_id, number)
    );
    CREATE INDEX IF NOT EXISTS ix_players_team ON players(team_id);
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution. Order follows foreign keys."""
    return "\n".join([
        users_schema(),
        seasons_schema(),
        divisions_schema(),
        categories_schema(),
        fields_schema(),
        teams_schema(),
        players_schema(),
        matches_schema(),
        payments_schema(),
    ])
