"""
CAD Core - Board Analytics

Read-only aggregates over one orchestrator snapshot.
"""
import datetime
from collections import Counter
from typing import Dict, List, Tuple

from . import policy
from .clock import as_utc
from .audit import STATUS_CHANGED
from .models import IncidentStatus, Severity, UnitStatus


def _ranked(counter: Counter) -> List[Tuple[str, int]]:
    """Counts descending, ties alphabetical."""
    return sorted(counter.items(), key=lambda kv: (-kv[1], kv[0]))


def _closed_within_sla(events, incident) -> bool:
    closed_at = None
    for ev in events:
        if ev.action == STATUS_CHANGED and ev.detail == IncidentStatus.CLOSED.value:
            closed_at = ev.timestamp
    if closed_at is None:
        return False
    return policy.elapsed_minutes(incident, closed_at) <= incident.sla_minutes


def board_summary(orchestrator, now: datetime.datetime = None) -> Dict:
    now = as_utc(now) if now else orchestrator.clock.now()
    units, incidents, _evidence, events = orchestrator.export_records()
    risk_minutes = orchestrator.config.sla_risk_minutes
    escalation_ratio = orchestrator.config.sla_escalation_ratio

    events_by_incident: Dict[str, list] = {}
    for ev in events:
        events_by_incident.setdefault(ev.incident_id, []).append(ev)

    open_incidents = [i for i in incidents if not i.is_closed]
    closed = [i for i in incidents if i.is_closed]
    on_time = sum(1 for i in closed if _closed_within_sla(events_by_incident.get(i.id, []), i))

    by_severity = Counter({s.value: 0 for s in Severity})
    by_severity.update(i.severity.value for i in incidents)

    return {
        "active_incidents": len(open_incidents),
        "closed_incidents": len(closed),
        "at_risk": sum(1 for i in open_incidents if policy.is_at_risk(i, now, risk_minutes)),
        "needs_escalation": sum(1 for i in open_incidents if policy.needs_escalation(i, now, escalation_ratio)),
        "sla_compliance": round(on_time / len(closed), 3) if closed else None,
        "by_sector": _ranked(Counter(i.sector for i in incidents)),
        "by_type": _ranked(Counter(i.type for i in incidents)),
        "by_severity": dict(by_severity),
        "units_available": sum(1 for u in units if u.status == UnitStatus.AVAILABLE),
        "units_total": len(units),
    }
