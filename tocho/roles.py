"""
Account roles and what each role may do.
Access checks go through has_capability so handlers never compare role strings.
Reads (calendars, matches, standings) are public and need no capability.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# ---------- Role enum (closed set) ----------


class Role(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    REFEREE = "referee"
    CAPTAIN = "captain"
    PLAYER = "player"
    PHOTOGRAPHER = "photographer"
    SPECTATOR = "spectator"


class Capability(str, Enum):
    MANAGE_LEAGUE = "manage_league"  # seasons, divisions, categories, fields
    MANAGE_TEAMS = "manage_teams"
    GENERATE_CALENDAR = "generate_calendar"
    RECORD_RESULTS = "record_results"
    ASSIGN_REFEREES = "assign_referees"
    MANAGE_PAYMENTS = "manage_payments"
    MANAGE_ROSTER = "manage_roster"  # captains: own team only
    MANAGE_USERS = "manage_users"  # superadmin only


# ---------- Role definitions (shown to users) ----------


@dataclass(frozen=True)
class RoleDefinition:
    name: str
    description: str


ROLE_DEFINITIONS: dict[Role, RoleDefinition] = {
    Role.SUPERADMIN: RoleDefinition("Superadministrador", "Full control of every season and account."),
    Role.ADMIN: RoleDefinition("Administrador", "Runs seasons, calendars, results and payments."),
    Role.REFEREE: RoleDefinition("Árbitro", "Records results for assigned matches."),
    Role.CAPTAIN: RoleDefinition("Capitán", "Manages their team roster."),
    Role.PLAYER: RoleDefinition("Jugador", "Follows matches and standings."),
    Role.PHOTOGRAPHER: RoleDefinition("Fotógrafo", "Covers matches; read-only access."),
    Role.SPECTATOR: RoleDefinition("Espectador", "Public read-only access."),
}

_ADMIN_CAPABILITIES = frozenset({
    Capability.MANAGE_LEAGUE,
    Capability.MANAGE_TEAMS,
    Capability.GENERATE_CALENDAR,
    Capability.RECORD_RESULTS,
    Capability.ASSIGN_REFEREES,
    Capability.MANAGE_PAYMENTS,
    Capability.MANAGE_ROSTER,
})

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.SUPERADMIN: frozenset(Capability),
    Role.ADMIN: _ADMIN_CAPABILITIES,
    Role.REFEREE: frozenset({Capability.RECORD_RESULTS}),
    Role.CAPTAIN: frozenset({Capability.MANAGE_ROSTER}),
    Role.PLAYER: frozenset(),
    Role.PHOTOGRAPHER: frozenset(),
    Role.SPECTATOR: frozenset(),
}


def parse_role(value: str | Role) -> Role:
    """Return Role for a string; raises ValueError for anything outside the closed set."""
    if isinstance(value, Role):
        return value
    s = (value or "").strip().lower()
    try:
        return Role(s)
    except ValueError:
        valid = ", ".join(r.value for r in Role)
        raise ValueError(f"Unknown role: {value!r}. Valid roles: {valid}") from None


def capabilities_for(role: str | Role) -> frozenset[Capability]:
    return ROLE_CAPABILITIES[parse_role(role)]


def has_capability(role: str | Role | None, capability: Capability) -> bool:
    """False for None or unknown roles rather than raising; used on request paths."""
    if role is None:
        return False
    try:
        return capability in capabilities_for(role)
    except ValueError:
        return False


def list_all_roles() -> list[tuple[Role, RoleDefinition]]:
    """For API/frontend: list all roles with definitions."""
    return [(r, ROLE_DEFINITIONS[r]) for r in Role]
