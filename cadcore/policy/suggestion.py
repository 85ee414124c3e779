"""
Dispatch Policy - Unit Suggestion

Greedy and deterministic: same-sector AVAILABLE unit first, then any
AVAILABLE unit, both in registration order. No distance or ETA input.
"""
from typing import Iterable, Optional

from ..models import Incident, Unit, UnitStatus


def suggest_unit(incident: Incident, units: Iterable[Unit]) -> Optional[Unit]:
    available = [u for u in units if u.status == UnitStatus.AVAILABLE]
    for unit in available:
        if unit.sector == incident.sector:
            return unit
    return available[0] if available else None
