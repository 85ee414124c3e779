"""
CAD Core
Incident/unit state machine, dispatch policy and audit trail for a
computer-aided-dispatch session.
"""
from .config import CADConfig
from .errors import CADError, ValidationError, NotFoundError
from .models import (
    Actor, Role, Severity, IncidentStatus, UnitStatus, Agency, EvidenceKind,
    Incident, Unit, Evidence, TimelineEvent, NewIncident, CloseCheck, TransitionResult,
)
from .orchestrator import IncidentOrchestrator
from .routes import register_cad_routes
from .seed import seed_demo_session

__all__ = [
    "CADConfig",
    "CADError",
    "ValidationError",
    "NotFoundError",
    "Actor",
    "Role",
    "Severity",
    "IncidentStatus",
    "UnitStatus",
    "Agency",
    "EvidenceKind",
    "Incident",
    "Unit",
    "Evidence",
    "TimelineEvent",
    "NewIncident",
    "CloseCheck",
    "TransitionResult",
    "IncidentOrchestrator",
    "register_cad_routes",
    "seed_demo_session",
]
