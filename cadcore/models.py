# ============================================================================
# CAD CORE - Domain Models
# ============================================================================
# Immutable snapshots handed out by the stores. Policy functions work on
# these; only the orchestrator writes the underlying tables.
# ============================================================================

import datetime
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, List, Dict, Any

from .clock import format_ts, parse_ts


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class IncidentStatus(str, Enum):
    """Incident lifecycle. CLOSED is terminal."""
    NEW = "NEW"
    CLASSIFIED = "CLASSIFIED"
    ASSIGNED = "ASSIGNED"
    EN_ROUTE = "EN_ROUTE"
    ON_SCENE = "ON_SCENE"
    CLOSED = "CLOSED"


# Position of each status along the lifecycle
STATUS_ORDER = {status: idx for idx, status in enumerate(IncidentStatus)}


class UnitStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    ASSIGNED = "ASSIGNED"
    EN_ROUTE = "EN_ROUTE"
    ON_SCENE = "ON_SCENE"
    UNAVAILABLE = "UNAVAILABLE"


class Agency(str, Enum):
    POLICE = "POLICE"
    CIVIL_PROTECTION = "CIVIL_PROTECTION"
    TRAFFIC = "TRAFFIC"


class EvidenceKind(str, Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    DOCUMENT = "DOCUMENT"


class Role(str, Enum):
    OPERATOR = "OPERATOR"
    SUPERVISOR = "SUPERVISOR"
    COORDINATOR = "COORDINATOR"
    ADMIN = "ADMIN"  # IT administration, does not operate incidents


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation. Passed explicitly into every write."""
    name: str
    role: Optional[Role] = None

    @property
    def label(self) -> str:
        if self.role is None:
            return self.name
        return f"{self.name} ({self.role.value})"

    def to_dict(self) -> Dict:
        return {"name": self.name, "role": self.role.value if self.role else None}


@dataclass(frozen=True)
class Incident:
    id: str
    folio: str
    title: str
    type: str
    severity: Severity
    status: IncidentStatus
    sector: str
    location: str
    created_at: datetime.datetime
    sla_minutes: int
    description: Optional[str] = None
    assigned_unit_id: Optional[str] = None  # weak ref into the unit registry

    @property
    def is_closed(self) -> bool:
        return self.status == IncidentStatus.CLOSED

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["status"] = self.status.value
        data["created_at"] = format_ts(self.created_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Incident":
        return cls(
            id=data["id"],
            folio=data["folio"],
            title=data["title"],
            type=data["type"],
            severity=Severity(data["severity"]),
            status=IncidentStatus(data["status"]),
            sector=data["sector"],
            location=data["location"],
            created_at=parse_ts(data["created_at"]),
            sla_minutes=int(data["sla_minutes"]),
            description=data.get("description"),
            assigned_unit_id=data.get("assigned_unit_id"),
        )


@dataclass(frozen=True)
class Unit:
    id: str
    callsign: str
    agency: Agency
    status: UnitStatus
    sector: str
    last_known: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["agency"] = self.agency.value
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Unit":
        return cls(
            id=data["id"],
            callsign=data["callsign"],
            agency=Agency(data["agency"]),
            status=UnitStatus(data["status"]),
            sector=data["sector"],
            last_known=data.get("last_known") or "",
        )


@dataclass(frozen=True)
class Evidence:
    id: str
    incident_id: str
    name: str
    kind: EvidenceKind
    integrity_token: str
    created_at: datetime.datetime
    created_by: str

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["created_at"] = format_ts(self.created_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Evidence":
        return cls(
            id=data["id"],
            incident_id=data["incident_id"],
            name=data["name"],
            kind=EvidenceKind(data["kind"]),
            integrity_token=data["integrity_token"],
            created_at=parse_ts(data["created_at"]),
            created_by=data["created_by"],
        )


@dataclass(frozen=True)
class TimelineEvent:
    id: int
    incident_id: str
    timestamp: datetime.datetime
    actor_name: str
    actor_role: Optional[Role]
    action: str
    detail: Optional[str] = None

    @property
    def actor(self) -> Actor:
        return Actor(self.actor_name, self.actor_role)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "incident_id": self.incident_id,
            "timestamp": format_ts(self.timestamp),
            "actor_name": self.actor_name,
            "actor_role": self.actor_role.value if self.actor_role else None,
            "actor": self.actor.label,
            "action": self.action,
            "detail": self.detail,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimelineEvent":
        role = data.get("actor_role")
        return cls(
            id=int(data["id"]),
            incident_id=data["incident_id"],
            timestamp=parse_ts(data["timestamp"]),
            actor_name=data["actor_name"],
            actor_role=Role(role) if role else None,
            action=data["action"],
            detail=data.get("detail"),
        )


@dataclass
class NewIncident:
    """Caller-supplied fields for incident creation."""
    title: str
    type: str
    severity: Severity
    sector: str
    location: str
    sla_minutes: Optional[int] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NewIncident":
        return cls(
            title=data.get("title"),
            type=data.get("type"),
            severity=data.get("severity") or Severity.MEDIUM,
            sector=data.get("sector"),
            location=data.get("location"),
            sla_minutes=data.get("sla_minutes"),
            description=data.get("description") or None,
        )


@dataclass(frozen=True)
class CloseCheck:
    """Outcome of the closure eligibility policy."""
    allowed: bool
    reason: Optional[str] = None
    overridable: bool = False

    def to_dict(self) -> Dict:
        return {"allowed": self.allowed, "reason": self.reason, "overridable": self.overridable}


@dataclass
class TransitionResult:
    """Result of a status change or closure attempt."""
    applied: bool
    incident: Incident
    reason: Optional[str] = None
    overridable: bool = False
    event_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "applied": self.applied,
            "incident": self.incident.to_dict(),
            "reason": self.reason,
            "overridable": self.overridable,
            "event_ids": list(self.event_ids),
        }
