"""
CAD Core - Demo Session Seed

Units are created once at session start. The three incidents, one evidence
record and their timelines reproduce a mid-shift board, with timestamps
relative to the session clock.
"""
import datetime
import logging

from .clock import integrity_token
from .models import (
    Actor, Agency, Evidence, EvidenceKind, Incident, IncidentStatus,
    Severity, TimelineEvent, Unit, UnitStatus,
)

logger = logging.getLogger(__name__)


def seed_units():
    return [
        Unit("u_1", "SSC-Delta-12", Agency.POLICE, UnitStatus.AVAILABLE, "Centro", "Eje Central"),
        Unit("u_2", "SSC-Delta-18", Agency.POLICE, UnitStatus.AVAILABLE, "Centro", "Bellas Artes"),
        Unit("u_3", "TRANSITO-Tau-07", Agency.TRAFFIC, UnitStatus.ASSIGNED, "Oriente", "Zaragoza"),
        Unit("u_4", "PC-Rescate-03", Agency.CIVIL_PROTECTION, UnitStatus.AVAILABLE, "Oriente", "Iztapalapa"),
        Unit("u_5", "SSC-Alpha-21", Agency.POLICE, UnitStatus.UNAVAILABLE, "Sur", "Tlalpan"),
    ]


def seed_incidents(now: datetime.datetime):
    ago = lambda minutes: now - datetime.timedelta(minutes=minutes)
    return [
        Incident(
            id="inc_1",
            folio="CDMX-2026-000341",
            title="Commercial robbery (convenience store)",
            type="Commercial robbery",
            severity=Severity.HIGH,
            status=IncidentStatus.CLASSIFIED,
            sector="Centro",
            location="Av. Juarez 120, Centro",
            created_at=ago(18),
            sla_minutes=20,
            description="Reported by operator. Suspect fled westbound.",
        ),
        Incident(
            id="inc_2",
            folio="CDMX-2026-000342",
            title="Traffic accident with injuries",
            type="Traffic accident",
            severity=Severity.CRITICAL,
            status=IncidentStatus.ASSIGNED,
            sector="Oriente",
            location="Calz. Ignacio Zaragoza km 7",
            created_at=ago(9),
            sla_minutes=10,
            description="Two vehicles, possible injured. Traffic and civil protection.",
            assigned_unit_id="u_3",
        ),
        Incident(
            id="inc_3",
            folio="CDMX-2026-000343",
            title="Suspicious person loitering",
            type="Suspicious person",
            severity=Severity.MEDIUM,
            status=IncidentStatus.NEW,
            sector="Sur",
            location="Insurgentes Sur 3000",
            created_at=ago(3),
            sla_minutes=30,
            description="Raised by video analytics.",
        ),
    ]


def seed_evidence(now: datetime.datetime):
    created = now - datetime.timedelta(minutes=12)
    return [
        Evidence(
            id="ev_1",
            incident_id="inc_2",
            name="Preliminary photo",
            kind=EvidenceKind.IMAGE,
            integrity_token=integrity_token("Preliminary photo", created),
            created_at=created,
            created_by="Operator 02",
        ),
    ]


def seed_timeline(now: datetime.datetime):
    ago = lambda minutes: now - datetime.timedelta(minutes=minutes)
    rows = [
        ("inc_1", 18, Actor("Operator 07"), "incident created", "Manual entry"),
        ("inc_1", 16, Actor("Supervisor"), "status changed", "CLASSIFIED"),
        ("inc_2", 9, Actor("Operator 02"), "incident created", "Manual entry"),
        ("inc_2", 8, Actor("Dispatch"), "unit assigned", "TRANSITO-Tau-07"),
        ("inc_3", 3, Actor("Video analytics"), "incident created", "Rule: loitering"),
    ]
    return [
        TimelineEvent(
            id=None,
            incident_id=incident_id,
            timestamp=ago(minutes),
            actor_name=actor.name,
            actor_role=actor.role,
            action=action,
            detail=detail,
        )
        for incident_id, minutes, actor, action, detail in rows
    ]


def seed_demo_session(orchestrator):
    """Load the demo board into an empty orchestrator."""
    if orchestrator.list_units():
        logger.info("[Seed] registry not empty, skipping demo seed")
        return
    now = orchestrator.clock.now()
    orchestrator.load_records(
        units=seed_units(),
        incidents=seed_incidents(now),
        evidence=seed_evidence(now),
        events=seed_timeline(now),
    )
