"""
Dispatch Policy - Operator Recommendations

Suggestions only. An action key tells the caller which normal operation
would apply the recommendation; nothing is executed here.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..models import Evidence, Incident, IncidentStatus, Severity, Unit
from .suggestion import suggest_unit

ACTION_CLASSIFY = "classify"
ACTION_ASSIGN = "assign"


@dataclass(frozen=True)
class Recommendation:
    title: str
    detail: str
    action: Optional[str] = None
    unit_id: Optional[str] = None

    def to_dict(self) -> Dict:
        return {"title": self.title, "detail": self.detail, "action": self.action, "unit_id": self.unit_id}


def recommendations(incident: Incident, units: Sequence[Unit],
                    evidence: Sequence[Evidence]) -> List[Recommendation]:
    out = []

    if incident.status == IncidentStatus.NEW:
        out.append(Recommendation(
            "Classify incident",
            "Confirm type and severity, then move to CLASSIFIED for dispatch.",
            action=ACTION_CLASSIFY,
        ))

    if not incident.assigned_unit_id:
        unit = suggest_unit(incident, units)
        if unit:
            out.append(Recommendation(
                "Suggested unit",
                f"Assign {unit.callsign} ({unit.agency.value}) by sector availability.",
                action=ACTION_ASSIGN,
                unit_id=unit.id,
            ))

    has_evidence = any(e.incident_id == incident.id for e in evidence)
    if incident.severity == Severity.CRITICAL and not has_evidence and not incident.is_closed:
        out.append(Recommendation(
            "Evidence recommended",
            "Attach minimum evidence (photo/video) before closure or escalation.",
        ))

    return out
