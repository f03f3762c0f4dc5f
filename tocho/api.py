"""
REST API for the league backend.
Thin wrappers around domain logic and persistence.
"""
from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import asynccontextmanager, contextmanager
from datetime import date
from typing import Any, AsyncGenerator, Callable, Generator

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from tocho.auth import create_access_token, decode_token, hash_password, verify_password
from tocho.models import (
    FieldStatus,
    MatchStatus,
    PaymentMethod,
    PaymentRecordStatus,
    PlayerPosition,
    SeasonStatus,
    TeamStatus,
    User,
)
from tocho.persistence import (
    get_connection,
    init_db,
    CategoryRepository,
    DivisionRepository,
    FieldRepository,
    MatchRepository,
    PaymentRepository,
    SeasonRepository,
    TeamRepository,
    UserRepository,
)
from tocho.persistence.db import get_db_path
from tocho.roles import Capability, Role, capabilities_for, has_capability, list_all_roles, parse_role
from tocho.services.league_service import LeagueService, NotFoundError, RosterPermissionError
from tocho.services.standings import DEFAULT_POINTS_RULE, POINTS_RULES

logger = logging.getLogger(__name__)

LOG_LEVEL = os.environ.get("TOCHO_LOG_LEVEL", "INFO").upper()


@contextmanager
def db_conn() -> Generator[sqlite3.Connection, None, None]:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def domain_errors() -> Generator[None, None, None]:
    """Map service errors to HTTP: NotFoundError -> 404, RosterPermissionError -> 403, ValueError -> 400."""
    try:
        yield
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RosterPermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    init_db(db_path=get_db_path())
    yield


# ---------- FastAPI app ----------
app = FastAPI(
    title="Tocho Prime API",
    description="Seasons, calendars, results and standings for a flag-football league",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

security = HTTPBearer(auto_error=False)


# ---------- Request models ----------


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6)
    name: str | None = Field(None, max_length=200)


class LoginRequest(BaseModel):
    username: str
    password: str


class UpdateRoleRequest(BaseModel):
    role: str = Field(..., description="One of: superadmin, admin, referee, captain, player, photographer, spectator")


class CreateSeasonRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    start_date: date
    end_date: date
    status: SeasonStatus = SeasonStatus.UPCOMING
    description: str = ""
    base_price: float = Field(0.0, ge=0)


class CreateDivisionRequest(BaseModel):
    season_id: str
    name: str = Field(..., min_length=1, max_length=100)
    order: int = 0
    team_limit: int | None = Field(None, ge=1)


class CreateCategoryRequest(BaseModel):
    division_id: str
    name: str = Field(..., min_length=1, max_length=50)
    level: int = Field(1, ge=1)
    team_limit: int = Field(8, ge=2, le=8)
    points_rule: str = Field(DEFAULT_POINTS_RULE, description="Standings rule: three_one_zero | win_plus_safeties")
    price: float = Field(0.0, ge=0)


class CreateFieldRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    status: FieldStatus = FieldStatus.AVAILABLE
    priority: int = Field(5, ge=1, le=10)


class CreateTeamRequest(BaseModel):
    category_id: str
    name: str = Field(..., min_length=1, max_length=200)
    primary_color: str = "#cccccc"
    captain_id: str | None = None


class UpdateTeamStatusRequest(BaseModel):
    status: TeamStatus


class SetCaptainRequest(BaseModel):
    user_id: str


class AddPlayerRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)
    number: int = Field(..., ge=0, le=99)
    position: PlayerPosition = PlayerPosition.UTILITY


class GenerateCalendarRequest(BaseModel):
    start_date: date
    double_round: bool = False
    time_slots: list[str] | None = Field(None, description="HH:MM slots per matchday; default 09:00, 11:00, 13:00, 15:00")
    replace: bool = Field(False, description="Regenerate when no match has been played yet")


class UpdateMatchStatusRequest(BaseModel):
    status: MatchStatus


class RecordResultRequest(BaseModel):
    home_score: int = Field(..., ge=0)
    away_score: int = Field(..., ge=0)
    safeties_home: int = Field(0, ge=0)
    safeties_away: int = Field(0, ge=0)
    notes: str | None = None


class AssignRefereeRequest(BaseModel):
    referee_id: str


class CreatePaymentRequest(BaseModel):
    team_id: str
    amount: float = Field(..., gt=0)
    due_date: date
    status: PaymentRecordStatus = PaymentRecordStatus.PENDING
    method: PaymentMethod | None = None
    reference: str | None = None


# ---------- Auth dependencies ----------


def _get_current_user(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> User | None:
    """Return the user behind the bearer token, or None if no/invalid token. Role is read fresh from the DB."""
    if credentials is None:
        return None
    user_id = decode_token(credentials.credentials)
    if user_id is None:
        return None
    with db_conn() as conn:
        user = UserRepository().get(conn, user_id)
    if user is None or not user.is_active:
        return None
    return user


def require(capability: Capability) -> Callable[..., User]:
    """Dependency factory: 401 without a valid token, 403 when the role lacks capability."""

    def _dep(user: User | None = Depends(_get_current_user)) -> User:
        if user is None:
            raise HTTPException(status_code=401, detail="Login required")
        if not has_capability(user.role, capability):
            raise HTTPException(status_code=403, detail=f"Role '{user.role}' cannot {capability.value}")
        return user

    return _dep


# ---------- Accounts ----------


@app.post("/signup")
def signup(req: SignupRequest) -> dict[str, Any]:
    """Create account. The first account becomes superadmin; later ones start as spectators."""
    with db_conn() as conn:
        user_repo = UserRepository()
        if user_repo.get_by_username(conn, req.username):
            raise HTTPException(status_code=400, detail="Username already taken")
        first = conn.execute("SELECT 1 FROM users LIMIT 1").fetchone() is None
        role = Role.SUPERADMIN if first else Role.SPECTATOR
        user = user_repo.create_with_password(
            conn, req.username, hash_password(req.password), role.value, name=req.name,
        )
        logger.info("New account %s with role %s", user.username, user.role)
        token = create_access_token(user.id)
        return {"user_id": user.id, "username": user.username, "role": user.role, "token": token}


@app.post("/login")
def login(req: LoginRequest) -> dict[str, Any]:
    """Returns JWT token."""
    with db_conn() as conn:
        user = UserRepository().get_by_username(conn, req.username)
        if user is None or not user.password_hash or not verify_password(req.password, user.password_hash):
            raise HTTPException(status_code=401, detail="Invalid username or password")
        token = create_access_token(user.id)
        return {"user_id": user.id, "username": user.username, "role": user.role, "token": token}


@app.post("/users/{user_id}/role")
def update_user_role(
    user_id: str,
    req: UpdateRoleRequest,
    _: User = Depends(require(Capability.MANAGE_USERS)),
) -> dict[str, Any]:
    with domain_errors():
        role = parse_role(req.role)
    with db_conn() as conn:
        repo = UserRepository()
        if repo.get(conn, user_id) is None:
            raise HTTPException(status_code=404, detail="User not found")
        repo.update_role(conn, user_id, role.value)
        return repo.get(conn, user_id).to_dict()


@app.get("/roles")
def list_roles() -> dict[str, Any]:
    """List roles with their capabilities."""
    return {
        "roles": [
            {
                "id": r.value,
                "name": d.name,
                "description": d.description,
                "capabilities": sorted(c.value for c in capabilities_for(r)),
            }
            for r, d in list_all_roles()
        ]
    }


# ---------- Seasons / divisions / categories ----------


@app.post("/seasons")
def create_season(req: CreateSeasonRequest, _: User = Depends(require(Capability.MANAGE_LEAGUE))) -> dict[str, Any]:
    if req.end_date < req.start_date:
        raise HTTPException(status_code=400, detail="end_date must be on or after start_date")
    with db_conn() as conn:
        season = SeasonRepository().create(
            conn, req.name, req.start_date, req.end_date,
            status=req.status.value, description=req.description, base_price=req.base_price,
        )
        return season.to_dict()


@app.get("/seasons")
def list_seasons() -> dict[str, Any]:
    with db_conn() as conn:
        return {"seasons": [s.to_dict() for s in SeasonRepository().list_all(conn)]}


@app.get("/seasons/{season_id}")
def get_season(season_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        season = SeasonRepository().get(conn, season_id)
        if season is None:
            raise HTTPException(status_code=404, detail="Season not found")
        return season.to_dict()


@app.post("/divisions")
def create_division(req: CreateDivisionRequest, _: User = Depends(require(Capability.MANAGE_LEAGUE))) -> dict[str, Any]:
    with db_conn() as conn:
        if SeasonRepository().get(conn, req.season_id) is None:
            raise HTTPException(status_code=404, detail="Season not found")
        division = DivisionRepository().create(conn, req.season_id, req.name, order=req.order, team_limit=req.team_limit)
        return division.to_dict()


@app.get("/seasons/{season_id}/divisions")
def list_divisions(season_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        return {"divisions": [d.to_dict() for d in DivisionRepository().list_by_season(conn, season_id)]}


@app.post("/categories")
def create_category(req: CreateCategoryRequest, _: User = Depends(require(Capability.MANAGE_LEAGUE))) -> dict[str, Any]:
    if req.points_rule not in POINTS_RULES:
        raise HTTPException(status_code=400, detail=f"points_rule must be one of: {', '.join(POINTS_RULES)}")
    with db_conn() as conn:
        division = DivisionRepository().get(conn, req.division_id)
        if division is None:
            raise HTTPException(status_code=404, detail="Division not found")
        category = CategoryRepository().create(
            conn, division.season_id, division.id, req.name, level=req.level,
            team_limit=req.team_limit, points_rule=req.points_rule, price=req.price,
        )
        return category.to_dict()


@app.get("/divisions/{division_id}/categories")
def list_categories(division_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        return {"categories": [c.to_dict() for c in CategoryRepository().list_by_division(conn, division_id)]}


# ---------- Fields ----------


@app.post("/fields")
def create_field(req: CreateFieldRequest, _: User = Depends(require(Capability.MANAGE_LEAGUE))) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            f = FieldRepository().create(conn, req.code, req.name, status=req.status.value, priority=req.priority)
        except sqlite3.IntegrityError:
            raise HTTPException(status_code=400, detail=f"Field code already exists: {req.code}")
        return f.to_dict()


@app.get("/fields")
def list_fields(available: bool = Query(False, description="Only fields the scheduler may use")) -> dict[str, Any]:
    with db_conn() as conn:
        repo = FieldRepository()
        fields = repo.list_available(conn) if available else repo.list_all(conn)
        return {"fields": [f.to_dict() for f in fields]}


class UpdateFieldStatusRequest(BaseModel):
    status: FieldStatus


@app.patch("/fields/{field_id}/status")
def update_field_status(
    field_id: str,
    req: UpdateFieldStatusRequest,
    _: User = Depends(require(Capability.MANAGE_LEAGUE)),
) -> dict[str, Any]:
    """Fields out of 'available' are left out of future calendars."""
    with db_conn() as conn:
        repo = FieldRepository()
        if repo.get(conn, field_id) is None:
            raise HTTPException(status_code=404, detail="Field not found")
        repo.update_status(conn, field_id, req.status.value)
        return repo.get(conn, field_id).to_dict()


# ---------- Teams ----------


@app.post("/teams")
def create_team(req: CreateTeamRequest, _: User = Depends(require(Capability.MANAGE_TEAMS))) -> dict[str, Any]:
    with db_conn() as conn:
        category = CategoryRepository().get(conn, req.category_id)
        if category is None:
            raise HTTPException(status_code=404, detail="Category not found")
        team_repo = TeamRepository()
        if len(team_repo.list_by_category(conn, category.id)) >= category.team_limit:
            raise HTTPException(status_code=400, detail=f"Category {category.name} is full ({category.team_limit} teams)")
        if req.captain_id is not None and UserRepository().get(conn, req.captain_id) is None:
            raise HTTPException(status_code=404, detail="Captain not found")
        team = team_repo.create(conn, category, req.name, primary_color=req.primary_color, captain_id=req.captain_id)
        return team.to_dict()


@app.get("/categories/{category_id}/teams")
def list_teams(category_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        return {"teams": [t.to_dict() for t in TeamRepository().list_by_category(conn, category_id)]}


@app.get("/teams/{team_id}")
def get_team(team_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        team = TeamRepository().get(conn, team_id)
        if team is None:
            raise HTTPException(status_code=404, detail="Team not found")
        out = team.to_dict()
        out["matches"] = [m.to_dict() for m in MatchRepository().list_by_team(conn, team_id)]
        return out


@app.patch("/teams/{team_id}/status")
def update_team_status(
    team_id: str,
    req: UpdateTeamStatusRequest,
    _: User = Depends(require(Capability.MANAGE_TEAMS)),
) -> dict[str, Any]:
    with db_conn() as conn:
        repo = TeamRepository()
        if repo.get(conn, team_id) is None:
            raise HTTPException(status_code=404, detail="Team not found")
        repo.update_status(conn, team_id, req.status.value)
        return repo.get(conn, team_id).to_dict()


@app.put("/teams/{team_id}/captain")
def set_team_captain(
    team_id: str,
    req: SetCaptainRequest,
    _: User = Depends(require(Capability.MANAGE_TEAMS)),
) -> dict[str, Any]:
    with db_conn() as conn, domain_errors():
        return LeagueService().set_team_captain(conn, team_id, req.user_id).to_dict()


@app.post("/teams/{team_id}/players")
def add_player(
    team_id: str,
    req: AddPlayerRequest,
    user: User = Depends(require(Capability.MANAGE_ROSTER)),
) -> dict[str, Any]:
    """Add a player to the roster. Captains can only edit their own team."""
    with db_conn() as conn, domain_errors():
        player = LeagueService().add_player(
            conn, team_id,
            name=req.name, number=req.number, last_name=req.last_name,
            position=req.position.value, added_by=user,
        )
        return player.to_dict()


@app.get("/teams/{team_id}/players")
def list_players(team_id: str) -> dict[str, Any]:
    with db_conn() as conn, domain_errors():
        return {"players": [p.to_dict() for p in LeagueService().team_roster(conn, team_id)]}


# ---------- Calendar and matches ----------


@app.post("/categories/{category_id}/calendar")
def generate_calendar(
    category_id: str,
    req: GenerateCalendarRequest,
    _: User = Depends(require(Capability.GENERATE_CALENDAR)),
) -> dict[str, Any]:
    """Generate and persist the round-robin calendar of a category. All matches are written or none."""
    with db_conn() as conn, domain_errors():
        matches = LeagueService().generate_calendar(
            conn, category_id,
            start_date=req.start_date,
            double_round=req.double_round,
            time_slots=req.time_slots,
            replace=req.replace,
        )
        return {
            "category_id": category_id,
            "rounds": max((m.round for m in matches), default=0),
            "matches": [m.to_dict() for m in matches],
            "message": f"Calendar generated: {len(matches)} matches created",
        }


@app.get("/categories/{category_id}/matches")
def list_matches(
    category_id: str,
    status: MatchStatus | None = Query(None),
) -> dict[str, Any]:
    with db_conn() as conn:
        matches = MatchRepository().list_by_category(conn, category_id, status=status.value if status else None)
        return {"matches": [m.to_dict() for m in matches]}


@app.get("/matches/{match_id}")
def get_match(match_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        m = MatchRepository().get(conn, match_id)
        if m is None:
            raise HTTPException(status_code=404, detail="Match not found")
        team_repo = TeamRepository()
        teams = {t.id: t for t in team_repo.get_many(conn, [m.home_team_id, m.away_team_id])}
        out = m.to_dict()
        out["home_team_name"] = teams[m.home_team_id].name if m.home_team_id in teams else m.home_team_id
        out["away_team_name"] = teams[m.away_team_id].name if m.away_team_id in teams else m.away_team_id
        return out


@app.post("/matches/{match_id}/status")
def update_match_status(
    match_id: str,
    req: UpdateMatchStatusRequest,
    _: User = Depends(require(Capability.RECORD_RESULTS)),
) -> dict[str, Any]:
    with db_conn() as conn, domain_errors():
        return LeagueService().transition_match_status(conn, match_id, req.status.value).to_dict()


@app.post("/matches/{match_id}/result")
def record_result(
    match_id: str,
    req: RecordResultRequest,
    user: User = Depends(require(Capability.RECORD_RESULTS)),
) -> dict[str, Any]:
    """Referees may only score matches they are assigned to."""
    with db_conn() as conn, domain_errors():
        m = LeagueService().record_result(
            conn, match_id, req.home_score, req.away_score,
            safeties_home=req.safeties_home, safeties_away=req.safeties_away, notes=req.notes,
            recorded_by=user,
        )
        return m.to_dict()


@app.post("/matches/{match_id}/referee")
def assign_referee(
    match_id: str,
    req: AssignRefereeRequest,
    _: User = Depends(require(Capability.ASSIGN_REFEREES)),
) -> dict[str, Any]:
    with db_conn() as conn, domain_errors():
        return LeagueService().assign_referee(conn, match_id, req.referee_id).to_dict()


@app.get("/referees/me/matches")
def my_referee_matches(user: User = Depends(require(Capability.RECORD_RESULTS))) -> dict[str, Any]:
    """Matches assigned to the current user, grouped: upcoming, in_progress, completed, cancelled."""
    with db_conn() as conn:
        groups = LeagueService().referee_matches(conn, user.id)
    return {name: [m.to_dict() for m in matches] for name, matches in groups.items()}


# ---------- Standings ----------


@app.get("/categories/{category_id}/standings")
def get_standings(category_id: str) -> dict[str, Any]:
    """Ranked table: points, goal difference, goals for; remaining ties keep registration order."""
    with db_conn() as conn, domain_errors():
        rows = LeagueService().standings_for_category(conn, category_id)
        names = {t.id: t.name for t in TeamRepository().get_many(conn, [r.team_id for r in rows])}
        standings = []
        for position, row in enumerate(rows, start=1):
            d = row.to_dict()
            d["position"] = position
            d["team_name"] = names.get(row.team_id, row.team_id)
            standings.append(d)
        return {"category_id": category_id, "standings": standings}


# ---------- Payments ----------


@app.post("/payments")
def create_payment(req: CreatePaymentRequest, _: User = Depends(require(Capability.MANAGE_PAYMENTS))) -> dict[str, Any]:
    with db_conn() as conn:
        team = TeamRepository().get(conn, req.team_id)
        if team is None:
            raise HTTPException(status_code=404, detail="Team not found")
        payment = PaymentRepository().create(
            conn, team.id, team.season_id, req.amount, req.due_date,
            status=req.status.value,
            paid_date=date.today() if req.status == PaymentRecordStatus.PAID else None,
            method=req.method.value if req.method else None,
            reference=req.reference,
        )
        return payment.to_dict()


class MarkPaidRequest(BaseModel):
    paid_date: date | None = None
    method: PaymentMethod | None = None


@app.post("/payments/{payment_id}/paid")
def mark_payment_paid(
    payment_id: str,
    req: MarkPaidRequest,
    _: User = Depends(require(Capability.MANAGE_PAYMENTS)),
) -> dict[str, Any]:
    with db_conn() as conn:
        repo = PaymentRepository()
        payment = repo.get(conn, payment_id)
        if payment is None:
            raise HTTPException(status_code=404, detail="Payment not found")
        if payment.status in (PaymentRecordStatus.CANCELLED.value, PaymentRecordStatus.REFUNDED.value):
            raise HTTPException(status_code=400, detail=f"Cannot mark a {payment.status} payment as paid")
        repo.mark_paid(conn, payment_id, req.paid_date or date.today(), method=req.method.value if req.method else None)
        return repo.get(conn, payment_id).to_dict()


@app.get("/teams/{team_id}/payments")
def list_team_payments(team_id: str, _: User = Depends(require(Capability.MANAGE_PAYMENTS))) -> dict[str, Any]:
    with db_conn() as conn:
        if TeamRepository().get(conn, team_id) is None:
            raise HTTPException(status_code=404, detail="Team not found")
        payments = PaymentRepository().list_by_team(conn, team_id)
        return {
            "team_id": team_id,
            "payments": [p.to_dict() for p in payments],
            "summary": LeagueService().payment_summary(conn, team_id),
        }


# ---------- Run with: uvicorn tocho.api:app --reload ----------
