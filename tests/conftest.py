"""
CAD Core — Test Infrastructure (conftest.py)
=============================================
Provides:
  - Manual clock so SLA math is deterministic
  - Empty and demo-seeded orchestrators (in-memory sqlite)
  - Actor fixtures for every role
  - FastAPI TestClient with session login helper
"""

import os
import sys
import datetime
import pytest

# Ensure project root is on path
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT_DIR)

from cadcore import (
    CADConfig, IncidentOrchestrator, seed_demo_session,
    Actor, Role, Severity, NewIncident, Unit, Agency, UnitStatus,
)
from cadcore.clock import ManualClock

START = datetime.datetime(2026, 3, 10, 10, 0, 0, tzinfo=datetime.timezone.utc)


# ============================================================================
# Core fixtures
# ============================================================================

@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
def config():
    return CADConfig(db_path=":memory:", seed_demo_data=False, log_level="WARNING")


@pytest.fixture
def orch(config, clock):
    """Empty orchestrator: no units, no incidents."""
    return IncidentOrchestrator(config=config, clock=clock)


@pytest.fixture
def seeded(orch):
    """Orchestrator loaded with the demo board (5 units, 3 incidents)."""
    seed_demo_session(orch)
    return orch


# ============================================================================
# Actors
# ============================================================================

@pytest.fixture
def operator():
    return Actor("Operator 07", Role.OPERATOR)


@pytest.fixture
def supervisor():
    return Actor("Shift Supervisor", Role.SUPERVISOR)


@pytest.fixture
def coordinator():
    return Actor("Coordinator Ruiz", Role.COORDINATOR)


@pytest.fixture
def admin():
    return Actor("IT Admin", Role.ADMIN)


# ============================================================================
# Builders
# ============================================================================

def new_incident(**overrides):
    data = {
        "title": "Vehicle theft reported",
        "type": "Vehicle theft",
        "severity": Severity.HIGH,
        "sector": "Centro",
        "location": "Av. Reforma 222, Centro",
        "sla_minutes": 20,
        "description": None,
    }
    data.update(overrides)
    return NewIncident(**data)


def make_unit(unit_id, sector, status=UnitStatus.AVAILABLE, agency=Agency.POLICE):
    return Unit(unit_id, f"CS-{unit_id}", agency, status, sector, "Base")


@pytest.fixture
def create(orch, operator):
    """Create an incident on the empty orchestrator."""
    def _create(**overrides):
        return orch.create_incident(new_incident(**overrides), operator)
    return _create


# ============================================================================
# HTTP
# ============================================================================

@pytest.fixture
def app(clock):
    from main import create_app
    return create_app(CADConfig(db_path=":memory:", seed_demo_data=True, log_level="WARNING"), clock=clock)


@pytest.fixture
def client(app):
    """FastAPI TestClient with a fresh seeded session."""
    from starlette.testclient import TestClient
    with TestClient(app) as c:
        yield c


def login(client, name="Operator 07", role="OPERATOR"):
    """Declare an operator identity via the session endpoint (cookies are stored)."""
    resp = client.post("/api/session/login", json={"name": name, "role": role})
    assert resp.status_code == 200, resp.text
    return client
