"""
Dispatch Policy - SLA Risk

Advisory only. Nothing here gates an operation; values are recomputed on
every read.
"""
import datetime
import math

from ..models import Incident

SLA_RISK_MINUTES = 3
SLA_ESCALATION_RATIO = 0.7


def elapsed_minutes(incident: Incident, now: datetime.datetime) -> int:
    """Whole minutes since creation, half-up rounding, never negative."""
    seconds = (now - incident.created_at).total_seconds()
    return max(0, math.floor(seconds / 60.0 + 0.5))


def sla_remaining(incident: Incident, now: datetime.datetime) -> int:
    return max(0, incident.sla_minutes - elapsed_minutes(incident, now))


def is_at_risk(incident: Incident, now: datetime.datetime, threshold: int = SLA_RISK_MINUTES) -> bool:
    return sla_remaining(incident, now) <= threshold and not incident.is_closed


def sla_consumed_ratio(incident: Incident, now: datetime.datetime) -> float:
    """Share of the SLA budget already used (may exceed 1.0)."""
    if incident.sla_minutes <= 0:
        return 1.0
    return elapsed_minutes(incident, now) / float(incident.sla_minutes)


def needs_escalation(incident: Incident, now: datetime.datetime,
                     ratio: float = SLA_ESCALATION_RATIO) -> bool:
    """Supervisor notification rule: budget consumed at or past `ratio` while open."""
    return not incident.is_closed and sla_consumed_ratio(incident, now) >= ratio
