"""
API integration tests.
Uses TestClient to avoid starting a server.
Requires: pip install httpx (for TestClient)
"""
from __future__ import annotations

from pathlib import Path

import pytest

try:
    from fastapi.testclient import TestClient
    HAS_HTTPX = True
except (ImportError, RuntimeError):
    HAS_HTTPX = False

# Ensure project root on path
import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

pytestmark = pytest.mark.skipif(not HAS_HTTPX, reason="httpx required for TestClient")

from tocho.api import app
from tocho.persistence.db import set_db_path, init_db


@pytest.fixture(autouse=True)
def isolated_db(tmp_path):
    """Use a temporary DB for each test."""
    db_path = tmp_path / "test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    yield db_path


@pytest.fixture
def client():
    return TestClient(app)


def _signup(client, username, password="secret123"):
    resp = client.post("/signup", json={"username": username, "password": password})
    assert resp.status_code == 200
    return resp.json()


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(client):
    """First account: superadmin."""
    return _auth(_signup(client, "admin")["token"])


@pytest.fixture
def category_id(client, admin):
    season = client.post(
        "/seasons",
        json={"name": "Primavera 2025", "start_date": "2025-03-01", "end_date": "2025-06-30"},
        headers=admin,
    ).json()
    division = client.post("/divisions", json={"season_id": season["id"], "name": "Mixta"}, headers=admin).json()
    category = client.post(
        "/categories", json={"division_id": division["id"], "name": "Primera"}, headers=admin
    ).json()
    return category["id"]


def _add_active_teams(client, admin, category_id, n):
    ids = []
    for i in range(n):
        team = client.post("/teams", json={"category_id": category_id, "name": f"Team {i}"}, headers=admin).json()
        resp = client.patch(f"/teams/{team['id']}/status", json={"status": "active"}, headers=admin)
        assert resp.status_code == 200
        ids.append(team["id"])
    return ids


# ---------- Accounts ----------


def test_first_signup_is_superadmin_then_spectator(client):
    assert _signup(client, "first")["role"] == "superadmin"
    assert _signup(client, "second")["role"] == "spectator"


def test_signup_duplicate_username(client):
    _signup(client, "dup")
    resp = client.post("/signup", json={"username": "dup", "password": "secret123"})
    assert resp.status_code == 400


def test_login(client):
    _signup(client, "ana", password="secret123")
    resp = client.post("/login", json={"username": "ana", "password": "secret123"})
    assert resp.status_code == 200
    assert resp.json()["token"]
    bad = client.post("/login", json={"username": "ana", "password": "wrong-pass"})
    assert bad.status_code == 401


def test_roles_list_includes_capabilities(client):
    resp = client.get("/roles")
    assert resp.status_code == 200
    roles = {r["id"]: r for r in resp.json()["roles"]}
    assert "record_results" in roles["referee"]["capabilities"]
    assert "generate_calendar" not in roles["referee"]["capabilities"]
    assert "manage_users" in roles["superadmin"]["capabilities"]


def test_update_role_requires_superadmin(client, admin):
    other = _signup(client, "pepe")
    resp = client.post(f"/users/{other['user_id']}/role", json={"role": "admin"}, headers=_auth(other["token"]))
    assert resp.status_code == 403
    resp = client.post(f"/users/{other['user_id']}/role", json={"role": "admin"}, headers=admin)
    assert resp.status_code == 200
    assert resp.json()["role"] == "admin"
    resp = client.post(f"/users/{other['user_id']}/role", json={"role": "coach"}, headers=admin)
    assert resp.status_code == 400



def test_token_carries_only_user_id(client):
    from jose import jwt
    from tocho.auth import decode_token

    data = _signup(client, "first")
    assert set(jwt.get_unverified_claims(data["token"])) == {"sub", "exp"}
    assert decode_token(data["token"]) == data["user_id"]
    assert decode_token(data["token"] + "x") is None


def test_long_password_round_trips(client):
    password = "ñ" * 60
    _signup(client, "largo", password=password)
    assert client.post("/login", json={"username": "largo", "password": password}).status_code == 200
    wrong = client.post("/login", json={"username": "largo", "password": "ñ" * 59})
    assert wrong.status_code == 401


# ---------- Access control ----------


def test_write_requires_login(client):
    resp = client.post("/seasons", json={"name": "S", "start_date": "2025-03-01", "end_date": "2025-06-30"})
    assert resp.status_code == 401


def test_spectator_cannot_create_season(client, admin):
    fan = _signup(client, "fan")
    resp = client.post(
        "/seasons",
        json={"name": "S", "start_date": "2025-03-01", "end_date": "2025-06-30"},
        headers=_auth(fan["token"]),
    )
    assert resp.status_code == 403


def test_season_dates_validated(client, admin):
    resp = client.post(
        "/seasons", json={"name": "S", "start_date": "2025-06-30", "end_date": "2025-03-01"}, headers=admin
    )
    assert resp.status_code == 400


def test_category_rejects_unknown_points_rule(client, admin):
    season = client.post(
        "/seasons", json={"name": "S", "start_date": "2025-03-01", "end_date": "2025-06-30"}, headers=admin
    ).json()
    division = client.post("/divisions", json={"season_id": season["id"], "name": "D"}, headers=admin).json()
    resp = client.post(
        "/categories",
        json={"division_id": division["id"], "name": "C", "points_rule": "two_for_a_win"},
        headers=admin,
    )
    assert resp.status_code == 400


# ---------- Fields and teams ----------


def test_field_code_unique_and_status(client, admin):
    created = client.post("/fields", json={"code": "C1", "name": "Cancha 1"}, headers=admin)
    assert created.status_code == 200
    dup = client.post("/fields", json={"code": "C1", "name": "Otra"}, headers=admin)
    assert dup.status_code == 400
    fid = created.json()["id"]
    resp = client.patch(f"/fields/{fid}/status", json={"status": "maintenance"}, headers=admin)
    assert resp.status_code == 200
    assert client.get("/fields?available=true").json()["fields"] == []
    assert len(client.get("/fields").json()["fields"]) == 1


def test_category_team_limit(client, admin):
    season = client.post(
        "/seasons", json={"name": "S", "start_date": "2025-03-01", "end_date": "2025-06-30"}, headers=admin
    ).json()
    division = client.post("/divisions", json={"season_id": season["id"], "name": "D"}, headers=admin).json()
    category = client.post(
        "/categories", json={"division_id": division["id"], "name": "C", "team_limit": 2}, headers=admin
    ).json()
    for name in ("A", "B"):
        assert client.post("/teams", json={"category_id": category["id"], "name": name}, headers=admin).status_code == 200
    resp = client.post("/teams", json={"category_id": category["id"], "name": "C"}, headers=admin)
    assert resp.status_code == 400



def test_roster_managed_by_own_captain(client, admin, category_id):
    own, other = _add_active_teams(client, admin, category_id, 2)
    cap = _signup(client, "capitan")
    cap_headers = _auth(cap["token"])
    not_captain = client.put(f"/teams/{own}/captain", json={"user_id": cap["user_id"]}, headers=admin)
    assert not_captain.status_code == 400
    client.post(f"/users/{cap['user_id']}/role", json={"role": "captain"}, headers=admin)
    resp = client.put(f"/teams/{own}/captain", json={"user_id": cap["user_id"]}, headers=admin)
    assert resp.status_code == 200
    assert resp.json()["captain_id"] == cap["user_id"]

    added = client.post(
        f"/teams/{own}/players",
        json={"name": "Luis", "last_name": "Ortega", "number": 12, "position": "quarterback"},
        headers=cap_headers,
    )
    assert added.status_code == 200
    assert added.json()["number"] == 12
    dup = client.post(f"/teams/{own}/players", json={"name": "Pedro", "number": 12}, headers=cap_headers)
    assert dup.status_code == 400
    elsewhere = client.post(f"/teams/{other}/players", json={"name": "Pedro", "number": 8}, headers=cap_headers)
    assert elsewhere.status_code == 403
    roster = client.get(f"/teams/{own}/players").json()["players"]
    assert [(p["name"], p["position"]) for p in roster] == [("Luis", "quarterback")]
    assert client.get(f"/teams/{other}/players").json()["players"] == []


def test_roster_requires_manage_roster(client, admin, category_id):
    team_id = _add_active_teams(client, admin, category_id, 1)[0]
    fan = _signup(client, "fan")
    resp = client.post(f"/teams/{team_id}/players", json={"name": "Luis", "number": 12}, headers=_auth(fan["token"]))
    assert resp.status_code == 403
    bad = client.post(f"/teams/{team_id}/players", json={"name": "Luis", "number": 100}, headers=admin)
    assert bad.status_code == 422
    assert client.get("/teams/missing/players").status_code == 404


# ---------- Calendar, results, standings ----------


def test_generate_calendar_and_list_matches(client, admin, category_id):
    client.post("/fields", json={"code": "C1", "name": "Cancha 1"}, headers=admin)
    _add_active_teams(client, admin, category_id, 4)
    resp = client.post(
        f"/categories/{category_id}/calendar", json={"start_date": "2025-03-03"}, headers=admin
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["rounds"] == 3
    assert len(data["matches"]) == 6
    assert data["matches"][0]["match_date"] == "2025-03-08"
    listed = client.get(f"/categories/{category_id}/matches").json()["matches"]
    assert len(listed) == 6
    again = client.post(f"/categories/{category_id}/calendar", json={"start_date": "2025-03-03"}, headers=admin)
    assert again.status_code == 400


def test_generate_calendar_without_fields_returns_400(client, admin, category_id):
    _add_active_teams(client, admin, category_id, 4)
    resp = client.post(f"/categories/{category_id}/calendar", json={"start_date": "2025-03-03"}, headers=admin)
    assert resp.status_code == 400
    assert "field" in resp.json()["detail"].lower()


def test_generate_calendar_empty_time_slots_returns_400(client, admin, category_id):
    client.post("/fields", json={"code": "C1", "name": "Cancha 1"}, headers=admin)
    _add_active_teams(client, admin, category_id, 2)
    resp = client.post(
        f"/categories/{category_id}/calendar", json={"start_date": "2025-03-01", "time_slots": []}, headers=admin
    )
    assert resp.status_code == 400
    assert client.get(f"/categories/{category_id}/matches").json()["matches"] == []


def test_generate_calendar_unknown_category_returns_404(client, admin):
    resp = client.post("/categories/missing/calendar", json={"start_date": "2025-03-03"}, headers=admin)
    assert resp.status_code == 404


def test_record_result_and_standings(client, admin, category_id):
    client.post("/fields", json={"code": "C1", "name": "Cancha 1"}, headers=admin)
    _add_active_teams(client, admin, category_id, 2)
    match = client.post(
        f"/categories/{category_id}/calendar", json={"start_date": "2025-03-01"}, headers=admin
    ).json()["matches"][0]
    resp = client.post(f"/matches/{match['id']}/result", json={"home_score": 3, "away_score": 1}, headers=admin)
    assert resp.status_code == 200
    assert resp.json()["winner"] == "home"
    assert resp.json()["status"] == "completed"
    detail = client.get(f"/matches/{match['id']}").json()
    assert detail["home_team_name"] == "Team 0"
    standings = client.get(f"/categories/{category_id}/standings").json()["standings"]
    assert [(r["position"], r["team_id"], r["points"]) for r in standings] == [
        (1, match["home_team_id"], 3),
        (2, match["away_team_id"], 0),
    ]
    assert standings[0]["team_name"] == "Team 0"
    assert standings[0]["goal_difference"] == 2
    again = client.post(f"/matches/{match['id']}/result", json={"home_score": 0, "away_score": 0}, headers=admin)
    assert again.status_code == 400


def test_referee_records_result_but_cannot_generate(client, admin, category_id):
    ref = _signup(client, "arbitro")
    client.post(f"/users/{ref['user_id']}/role", json={"role": "referee"}, headers=admin)
    ref_headers = _auth(ref["token"])
    client.post("/fields", json={"code": "C1", "name": "Cancha 1"}, headers=admin)
    _add_active_teams(client, admin, category_id, 2)
    denied = client.post(f"/categories/{category_id}/calendar", json={"start_date": "2025-03-01"}, headers=ref_headers)
    assert denied.status_code == 403
    match = client.post(
        f"/categories/{category_id}/calendar", json={"start_date": "2025-03-01"}, headers=admin
    ).json()["matches"][0]
    assigned = client.post(f"/matches/{match['id']}/referee", json={"referee_id": ref["user_id"]}, headers=admin)
    assert assigned.status_code == 200
    assert assigned.json()["referee_id"] == ref["user_id"]
    resp = client.post(f"/matches/{match['id']}/result", json={"home_score": 0, "away_score": 6}, headers=ref_headers)
    assert resp.status_code == 200
    assert resp.json()["winner"] == "away"



def _referee(client, admin, username):
    ref = _signup(client, username)
    client.post(f"/users/{ref['user_id']}/role", json={"role": "referee"}, headers=admin)
    return ref


def test_unassigned_referee_cannot_record_result(client, admin, category_id):
    assigned = _referee(client, admin, "arbitro")
    other = _referee(client, admin, "otro")
    client.post("/fields", json={"code": "C1", "name": "Cancha 1"}, headers=admin)
    _add_active_teams(client, admin, category_id, 2)
    match = client.post(
        f"/categories/{category_id}/calendar", json={"start_date": "2025-03-01"}, headers=admin
    ).json()["matches"][0]
    client.post(f"/matches/{match['id']}/referee", json={"referee_id": assigned["user_id"]}, headers=admin)
    resp = client.post(
        f"/matches/{match['id']}/result", json={"home_score": 6, "away_score": 0}, headers=_auth(other["token"])
    )
    assert resp.status_code == 400
    assert client.get(f"/matches/{match['id']}").json()["status"] == "scheduled"


def test_referee_lists_own_matches(client, admin, category_id):
    ref = _referee(client, admin, "arbitro")
    client.post("/fields", json={"code": "C1", "name": "Cancha 1"}, headers=admin)
    _add_active_teams(client, admin, category_id, 3)
    matches = client.post(
        f"/categories/{category_id}/calendar", json={"start_date": "2025-03-01"}, headers=admin
    ).json()["matches"]
    for m in matches[:2]:
        client.post(f"/matches/{m['id']}/referee", json={"referee_id": ref["user_id"]}, headers=admin)
    client.post(
        f"/matches/{matches[0]['id']}/result", json={"home_score": 7, "away_score": 0}, headers=_auth(ref["token"])
    )
    resp = client.get("/referees/me/matches", headers=_auth(ref["token"]))
    assert resp.status_code == 200
    data = resp.json()
    assert [m["id"] for m in data["completed"]] == [matches[0]["id"]]
    assert [m["id"] for m in data["upcoming"]] == [matches[1]["id"]]
    assert data["in_progress"] == [] and data["cancelled"] == []
    assert client.get("/referees/me/matches").status_code == 401
    fan = _signup(client, "fan")
    assert client.get("/referees/me/matches", headers=_auth(fan["token"])).status_code == 403


def test_unknown_match_returns_404(client, admin):
    resp = client.post("/matches/missing/result", json={"home_score": 1, "away_score": 0}, headers=admin)
    assert resp.status_code == 404
    assert client.post("/matches/missing/status", json={"status": "cancelled"}, headers=admin).status_code == 404

def test_match_status_transitions(client, admin, category_id):
    client.post("/fields", json={"code": "C1", "name": "Cancha 1"}, headers=admin)
    _add_active_teams(client, admin, category_id, 2)
    match = client.post(
        f"/categories/{category_id}/calendar", json={"start_date": "2025-03-01"}, headers=admin
    ).json()["matches"][0]
    resp = client.post(f"/matches/{match['id']}/status", json={"status": "cancelled"}, headers=admin)
    assert resp.status_code == 200
    resp = client.post(f"/matches/{match['id']}/status", json={"status": "scheduled"}, headers=admin)
    assert resp.status_code == 400


# ---------- Payments ----------


def test_payments_and_summary(client, admin, category_id):
    team_id = _add_active_teams(client, admin, category_id, 1)[0]
    p1 = client.post("/payments", json={"team_id": team_id, "amount": 500, "due_date": "2025-03-01"}, headers=admin)
    assert p1.status_code == 200
    client.post("/payments", json={"team_id": team_id, "amount": 250, "due_date": "2025-04-01"}, headers=admin)
    paid = client.post(f"/payments/{p1.json()['id']}/paid", json={"method": "transfer"}, headers=admin)
    assert paid.status_code == 200
    assert paid.json()["status"] == "paid"
    assert paid.json()["method"] == "transfer"
    data = client.get(f"/teams/{team_id}/payments", headers=admin).json()
    assert len(data["payments"]) == 2
    assert data["summary"] == {"total": 750.0, "paid": 500.0, "pending": 250.0, "overdue": 0.0}
