"""
Data models for the league backend.
Domain objects only; no persistence or API logic.

Hierarchy: a season owns divisions; a division owns categories; teams register
into one category; matches are scheduled per category and reference teams and
fields by id.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any


# ---------- Season status ----------
class SeasonStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


# ---------- Team registration ----------
class TeamStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"
    ACTIVE = "active"


# Teams in these states take part in calendars and standings
ELIGIBLE_TEAM_STATUSES = (TeamStatus.ACTIVE.value, TeamStatus.APPROVED.value)


class TeamPaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


# ---------- Field ----------
class FieldStatus(str, Enum):
    AVAILABLE = "available"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"
    UNAVAILABLE = "unavailable"


# ---------- Match status (state machine) ----------
class MatchStatus(str, Enum):
    """Match lifecycle: scheduled → in_progress → completed; cancelled/postponed on the side."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"


class MatchWinner(str, Enum):
    HOME = "home"
    AWAY = "away"
    DRAW = "draw"


# ---------- Payment ----------
class PaymentRecordStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    CASH = "cash"
    TRANSFER = "transfer"
    CARD = "card"
    ONLINE = "online"


# ---------- Player position and status ----------
class PlayerPosition(str, Enum):
    QUARTERBACK = "quarterback"
    RUNNINGBACK = "runningback"
    WIDE_RECEIVER = "wide_receiver"
    TIGHT_END = "tight_end"
    OFFENSIVE_LINE = "offensive_line"
    DEFENSIVE_LINE = "defensive_line"
    LINEBACKER = "linebacker"
    CORNERBACK = "cornerback"
    SAFETY = "safety"
    KICKER = "kicker"
    PUNTER = "punter"
    UTILITY = "utility"


class PlayerStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    INJURED = "injured"
    INACTIVE = "inactive"
    PENDING = "pending"


# ---------- User ----------
@dataclass
class User:
    """
    An account. role is a roles.Role value; password_hash is never plain text.
    """
    id: str
    username: str
    name: str
    role: str
    created_at: datetime
    password_hash: str | None = None
    is_active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Season ----------
@dataclass
class Season:
    id: str
    name: str
    start_date: date
    end_date: date
    status: str  # SeasonStatus value
    created_at: datetime
    description: str = ""
    base_price: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "status": self.status,
            "description": self.description,
            "base_price": self.base_price,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Division ----------
@dataclass
class Division:
    """Varonil / Femenil / Mixto within a season."""
    id: str
    season_id: str
    name: str
    order: int
    created_at: datetime
    team_limit: int | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "season_id": self.season_id,
            "name": self.name,
            "order": self.order,
            "created_at": self.created_at.isoformat(),
        }
        if self.team_limit is not None:
            d["team_limit"] = self.team_limit
        return d


# ---------- Category ----------
@dataclass
class Category:
    """
    Competition level inside a division (A, B, C, ...). Calendars and standings
    are scoped to one category. points_rule names the standings scoring rule.
    """
    id: str
    season_id: str
    division_id: str
    name: str
    level: int
    team_limit: int
    points_rule: str
    created_at: datetime
    price: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "season_id": self.season_id,
            "division_id": self.division_id,
            "name": self.name,
            "level": self.level,
            "team_limit": self.team_limit,
            "points_rule": self.points_rule,
            "price": self.price,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Field ----------
@dataclass
class Field:
    """A playing field. priority orders the pool handed to the scheduler (lower first)."""
    id: str
    code: str
    name: str
    status: str  # FieldStatus value
    priority: int
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "status": self.status,
            "priority": self.priority,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Team ----------
@dataclass
class Team:
    """
    A registered team. Belongs to exactly one category.
    Schedulers and standings only look at id; everything else is payload.
    """
    id: str
    season_id: str
    division_id: str
    category_id: str
    name: str
    status: str  # TeamStatus value
    payment_status: str  # TeamPaymentStatus value
    created_at: datetime
    primary_color: str = "#cccccc"
    captain_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "season_id": self.season_id,
            "division_id": self.division_id,
            "category_id": self.category_id,
            "name": self.name,
            "status": self.status,
            "payment_status": self.payment_status,
            "primary_color": self.primary_color,
            "created_at": self.created_at.isoformat(),
        }
        if self.captain_id is not None:
            d["captain_id"] = self.captain_id
        return d


# ---------- Match ----------
@dataclass
class Match:
    """
    A scheduled or played match within a category.
    id is None until the match has been persisted.
    home_score / away_score / winner are meaningful only once completed.
    Safeties are tracked per side for the flag-football points rule.
    """
    season_id: str
    division_id: str
    category_id: str
    home_team_id: str
    away_team_id: str
    field_id: str
    match_date: date
    match_time: str  # HH:MM
    round: int  # 1-based matchday
    status: str = MatchStatus.SCHEDULED.value
    home_score: int | None = 0
    away_score: int | None = 0
    winner: str | None = None  # MatchWinner value
    safeties_home: int = 0
    safeties_away: int = 0
    referee_id: str | None = None
    notes: str = ""
    id: str | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "season_id": self.season_id,
            "division_id": self.division_id,
            "category_id": self.category_id,
            "home_team_id": self.home_team_id,
            "away_team_id": self.away_team_id,
            "field_id": self.field_id,
            "match_date": self.match_date.isoformat(),
            "match_time": self.match_time,
            "round": self.round,
            "status": self.status,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "winner": self.winner,
            "safeties_home": self.safeties_home,
            "safeties_away": self.safeties_away,
            "notes": self.notes,
        }
        if self.referee_id is not None:
            d["referee_id"] = self.referee_id
        if self.created_at is not None:
            d["created_at"] = self.created_at.isoformat()
        return d


# ---------- Payment ----------
@dataclass
class Payment:
    """A registration or fee payment owed by a team for a season."""
    id: str
    team_id: str
    season_id: str
    amount: float
    status: str  # PaymentRecordStatus value
    due_date: date
    created_at: datetime
    paid_date: date | None = None
    method: str | None = None  # PaymentMethod value
    reference: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "team_id": self.team_id,
            "season_id": self.season_id,
            "amount": self.amount,
            "status": self.status,
            "due_date": self.due_date.isoformat(),
            "created_at": self.created_at.isoformat(),
        }
        if self.paid_date is not None:
            d["paid_date"] = self.paid_date.isoformat()
        if self.method is not None:
            d["method"] = self.method
        if self.reference is not None:
            d["reference"] = self.reference
        return d


# ---------- Player ----------
@dataclass
class Player:
    """A rostered player. Jersey numbers are unique within a team."""
    id: str
    team_id: str
    name: str
    last_name: str
    number: int
    position: str  # PlayerPosition value
    status: str  # PlayerStatus value
    created_at: datetime
    user_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "team_id": self.team_id,
            "name": self.name,
            "last_name": self.last_name,
            "number": self.number,
            "position": self.position,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }
        if self.user_id is not None:
            d["user_id"] = self.user_id
        return d
