# ============================================================================
# CAD CORE - Incident Orchestrator
# ============================================================================
# The only writer. Every public operation:
#   - validates input and resolves references before touching anything
#   - asks the dispatch policy (read-only) where a rule applies
#   - mutates the stores and appends to the audit log in ONE transaction
#
# All operations and reads are serialized on one re-entrant lock, so an
# observer sees either the full pre-operation or full post-operation state.
# ============================================================================

import contextlib
import logging
import threading
from typing import List, Optional

from . import audit as actions
from . import policy
from .audit import AuditLog
from .clock import SessionClock, SystemClock, as_utc, new_id, format_folio, integrity_token
from .config import CADConfig
from .db import get_conn, init_core_schema
from .errors import ValidationError, NotFoundError
from .models import (
    Actor, Role,
    Incident, IncidentStatus, NewIncident, Severity, STATUS_ORDER,
    Unit, UnitStatus,
    Evidence, EvidenceKind,
    TimelineEvent, CloseCheck, TransitionResult,
)
from .stores import IncidentStore, UnitRegistry, EvidenceStore

logger = logging.getLogger(__name__)

REASON_OVERRIDE_NOT_COORDINATOR = "Closure override is reserved for the COORDINATOR role."
REASON_OVERRIDE_NOT_NEEDED = "Closure override is not available: incident can be closed normally."


def _coerce(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {field_name}: {value!r}", field=field_name)


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


class IncidentOrchestrator:
    """Public write/read surface of the CAD core for one operator session."""

    def __init__(self, config: CADConfig = None, clock=None, conn=None):
        self.config = config or CADConfig()
        self.clock = SessionClock(clock or SystemClock())
        self.conn = conn or get_conn(self.config.db_path)
        init_core_schema(self.conn)

        self.incidents = IncidentStore(self.conn)
        self.units = UnitRegistry(self.conn)
        self.evidence = EvidenceStore(self.conn)
        self.audit = AuditLog(self.conn, self.clock)

        self._lock = threading.RLock()

    @contextlib.contextmanager
    def _transaction(self):
        with self._lock:
            with self.conn:
                yield

    @contextlib.contextmanager
    def _snapshot(self):
        with self._lock:
            yield

    # ------------------------------------------------------------------
    # Lookups (callers hold the lock)
    # ------------------------------------------------------------------

    def _require_incident(self, incident_id: str) -> Incident:
        incident = self.incidents.get(incident_id)
        if incident is None:
            raise NotFoundError("Incident", incident_id)
        return incident

    def _require_unit(self, unit_id: str) -> Unit:
        unit = self.units.get(unit_id)
        if unit is None:
            raise NotFoundError("Unit", unit_id)
        return unit

    # ==================================================================
    # SESSION INITIALIZATION
    # ==================================================================

    def register_unit(self, unit: Unit) -> Unit:
        """Add a unit to the registry (session seed only; units are never removed)."""
        with self._transaction():
            if self.units.get(unit.id) is not None:
                raise ValidationError(f"Unit already registered: {unit.id}", field="id")
            self.units.insert(unit)
        logger.info(f"[Orchestrator] unit registered {unit.id} ({unit.callsign})")
        return unit

    def load_records(self, units=(), incidents=(), evidence=(), events=()):
        """
        Bulk-load previously built records (seed data, saved session).
        All-or-nothing; bypasses operation rules and does not audit.
        """
        units, incidents, evidence, events = list(units), list(incidents), list(evidence), list(events)
        with self._transaction():
            for unit in units:
                self.units.insert(unit)
            for incident in incidents:
                tail = incident.folio.rsplit("-", 1)[-1]
                seq = int(tail) if tail.isdigit() else self.incidents.next_folio_seq(self.config.folio_start)
                self.incidents.insert(incident, seq)
            for item in evidence:
                self.evidence.insert(item)
            for event in events:
                self.audit.restore(event)
        logger.info(
            f"[Orchestrator] loaded {len(units)} units, {len(incidents)} incidents, "
            f"{len(evidence)} evidence, {len(events)} events"
        )

    def export_records(self):
        """Consistent copy of every record: (units, incidents, evidence, events)."""
        with self._snapshot():
            return self.units.list(), self.incidents.list(), self.evidence.list(), self.audit.read_all()

    # ==================================================================
    # OPERATIONS
    # ==================================================================

    def create_incident(self, data: NewIncident, actor: Actor) -> Incident:
        title = _text(data.title)
        location = _text(data.location)
        if len(title) <= 3:
            raise ValidationError("Title must be longer than 3 characters.", field="title")
        if len(location) <= 5:
            raise ValidationError("Location must be longer than 5 characters.", field="location")
        if data.type not in self.config.incident_types:
            raise ValidationError(f"Unknown incident type: {data.type!r}", field="type")
        if data.sector not in self.config.sectors:
            raise ValidationError(f"Unknown sector: {data.sector!r}", field="sector")
        severity = _coerce(Severity, data.severity, "severity")

        sla = self.config.default_sla_minutes if data.sla_minutes is None else data.sla_minutes
        if isinstance(sla, bool) or (isinstance(sla, float) and not sla.is_integer()):
            raise ValidationError(f"Invalid SLA minutes: {sla!r}", field="sla_minutes")
        try:
            sla = int(sla)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid SLA minutes: {sla!r}", field="sla_minutes")
        if sla < 0:
            raise ValidationError("SLA minutes cannot be negative.", field="sla_minutes")

        description = _text(data.description) or None

        with self._transaction():
            now = self.clock.now()
            seq = self.incidents.next_folio_seq(self.config.folio_start)
            incident = Incident(
                id=new_id("inc"),
                folio=format_folio(self.config.folio_prefix, now.year, seq),
                title=title,
                type=data.type,
                severity=severity,
                status=IncidentStatus.NEW,
                sector=data.sector,
                location=location,
                created_at=now,
                sla_minutes=sla,
                description=description,
            )
            self.incidents.insert(incident, seq)
            self.audit.append(
                incident.id, actor, actions.INCIDENT_CREATED,
                f"Type: {incident.type} | Severity: {severity.value}",
            )

        logger.info(f"[Orchestrator] incident created {incident.folio} ({severity.value}) by {actor.label}")
        return incident

    def assign_unit(self, incident_id: str, unit_id: str, actor: Actor) -> Incident:
        """
        Link a unit to an incident.

        The incident moves to ASSIGNED no matter its current status, and the
        unit is marked ASSIGNED in the same transaction. A previously
        assigned unit is left as it is.
        """
        with self._transaction():
            incident = self._require_incident(incident_id)
            unit = self._require_unit(unit_id)

            if STATUS_ORDER[incident.status] > STATUS_ORDER[IncidentStatus.ASSIGNED]:
                logger.warning(
                    f"[Orchestrator] assign_unit moves {incident.folio} back from "
                    f"{incident.status.value} to ASSIGNED"
                )
            if incident.assigned_unit_id and incident.assigned_unit_id != unit_id:
                logger.info(
                    f"[Orchestrator] {incident.folio} reassigned from {incident.assigned_unit_id} to {unit_id}"
                )

            self.incidents.set_assignment(incident_id, unit_id, IncidentStatus.ASSIGNED)
            self.units.set_status(unit_id, UnitStatus.ASSIGNED)
            self.audit.append(incident_id, actor, actions.UNIT_ASSIGNED, unit.callsign)
            updated = self.incidents.get(incident_id)

        logger.info(f"[Orchestrator] {unit.callsign} assigned to {incident.folio}")
        return updated

    def set_incident_status(self, incident_id: str, status, actor: Actor) -> TransitionResult:
        """
        Apply a status transition. Only CLOSED is checked, against the
        closure policy; any other target is set as requested.
        """
        target = _coerce(IncidentStatus, status, "status")

        with self._transaction():
            incident = self._require_incident(incident_id)

            if target == IncidentStatus.CLOSED:
                if actor.role is None:
                    raise ValidationError("Closing an incident requires an operator role.", field="role")
                check = policy.can_close(incident, actor.role, self.evidence.list_for(incident_id))
                if not check.allowed:
                    event_id = self.audit.append(incident_id, actor, actions.CLOSURE_BLOCKED, check.reason)
                    logger.warning(f"[Orchestrator] closure blocked {incident.folio}: {check.reason}")
                    return TransitionResult(
                        applied=False, incident=incident, reason=check.reason,
                        overridable=check.overridable, event_ids=[event_id],
                    )

            event_id = self._apply_status(incident, target, actor)
            updated = self.incidents.get(incident_id)

        logger.info(f"[Orchestrator] {incident.folio} {incident.status.value} -> {target.value} by {actor.label}")
        return TransitionResult(applied=True, incident=updated, event_ids=[event_id])

    def override_close(self, incident_id: str, actor: Actor, justification: str) -> TransitionResult:
        """
        Coordinator override of a blocked closure.

        Records "closure override" with the trimmed justification, then forces
        CLOSED and releases the assigned unit.
        """
        min_length = self.config.override_min_length
        if not policy.valid_justification(justification, min_length):
            raise ValidationError(
                f"Override justification must be at least {min_length} characters.",
                field="justification",
            )
        reason_text = justification.strip()

        with self._transaction():
            incident = self._require_incident(incident_id)
            check = (
                policy.can_close(incident, actor.role, self.evidence.list_for(incident_id))
                if actor.role is not None else CloseCheck(False, REASON_OVERRIDE_NOT_COORDINATOR)
            )

            refusal = None
            if actor.role != Role.COORDINATOR:
                refusal = check.reason if not check.allowed else REASON_OVERRIDE_NOT_COORDINATOR
            elif check.allowed:
                refusal = REASON_OVERRIDE_NOT_NEEDED
            elif not check.overridable:
                refusal = check.reason

            if refusal:
                event_id = self.audit.append(incident_id, actor, actions.CLOSURE_BLOCKED, refusal)
                logger.warning(f"[Orchestrator] override refused {incident.folio}: {refusal}")
                return TransitionResult(applied=False, incident=incident, reason=refusal, event_ids=[event_id])

            override_id = self.audit.append(incident_id, actor, actions.CLOSURE_OVERRIDE, reason_text)
            status_id = self._apply_status(incident, IncidentStatus.CLOSED, actor)
            updated = self.incidents.get(incident_id)

        logger.warning(f"[Orchestrator] {incident.folio} closed by override ({actor.label}): {reason_text}")
        return TransitionResult(applied=True, incident=updated, event_ids=[override_id, status_id])

    def set_unit_status(self, unit_id: str, status) -> Unit:
        """Manual unit status change. Not audited."""
        target = _coerce(UnitStatus, status, "status")
        with self._transaction():
            self._require_unit(unit_id)
            self.units.set_status(unit_id, target)
            updated = self.units.get(unit_id)
        logger.info(f"[Orchestrator] unit {unit_id} -> {target.value}")
        return updated

    def attach_evidence(self, incident_id: str, name: str, kind, actor: Actor) -> Evidence:
        clean_name = _text(name)
        if len(clean_name) <= 2:
            raise ValidationError("Evidence name must be longer than 2 characters.", field="name")
        evidence_kind = _coerce(EvidenceKind, kind, "kind")

        with self._transaction():
            incident = self._require_incident(incident_id)
            now = self.clock.now()
            evidence = Evidence(
                id=new_id("ev"),
                incident_id=incident_id,
                name=clean_name,
                kind=evidence_kind,
                integrity_token=integrity_token(clean_name, now),
                created_at=now,
                created_by=actor.name,
            )
            self.evidence.insert(evidence)
            self.audit.append(
                incident_id, actor, actions.EVIDENCE_ATTACHED,
                f"{evidence_kind.value}: {clean_name} | Token {evidence.integrity_token[:12]}",
            )

        logger.info(f"[Orchestrator] evidence {evidence.id} attached to {incident.folio}")
        return evidence

    def _apply_status(self, incident: Incident, target: IncidentStatus, actor: Actor) -> int:
        """Set status, audit it, and release the unit on CLOSED. Caller holds the transaction."""
        self.incidents.set_status(incident.id, target)
        event_id = self.audit.append(incident.id, actor, actions.STATUS_CHANGED, target.value)

        if target == IncidentStatus.CLOSED and incident.assigned_unit_id:
            if self.units.get(incident.assigned_unit_id) is None:
                logger.warning(
                    f"[Orchestrator] {incident.folio} assigned unit {incident.assigned_unit_id} not in registry"
                )
            else:
                self.units.set_status(incident.assigned_unit_id, UnitStatus.AVAILABLE)
                logger.info(f"[Orchestrator] unit {incident.assigned_unit_id} released by {incident.folio}")
        return event_id

    # ==================================================================
    # READ ACCESSORS
    # ==================================================================

    def get_incident(self, incident_id: str) -> Incident:
        with self._snapshot():
            return self._require_incident(incident_id)

    def get_unit(self, unit_id: str) -> Unit:
        with self._snapshot():
            return self._require_unit(unit_id)

    def list_incidents(self, query: str = None, severity=None, sector: str = None,
                       open_only: bool = False) -> List[Incident]:
        """Incidents newest first, optionally filtered."""
        sev = _coerce(Severity, severity, "severity") if severity else None
        needle = (query or "").strip().lower()

        with self._snapshot():
            items = self.incidents.list()

        out = []
        for inc in items:
            if open_only and inc.is_closed:
                continue
            if sev and inc.severity != sev:
                continue
            if sector and inc.sector != sector:
                continue
            if needle:
                haystack = f"{inc.folio} {inc.title} {inc.type} {inc.location}".lower()
                if needle not in haystack:
                    continue
            out.append(inc)
        out.reverse()
        out.sort(key=lambda i: i.created_at, reverse=True)
        return out

    def dispatch_queue(self) -> List[Incident]:
        return self.list_incidents(open_only=True)

    def list_units(self) -> List[Unit]:
        with self._snapshot():
            return self.units.list()

    def list_evidence(self, incident_id: str = None) -> List[Evidence]:
        with self._snapshot():
            if incident_id is None:
                return self.evidence.list()
            self._require_incident(incident_id)
            return self.evidence.list_for(incident_id)

    def get_timeline(self, incident_id: str, newest_first: bool = False) -> List[TimelineEvent]:
        with self._snapshot():
            self._require_incident(incident_id)
            return self.audit.read(incident_id, newest_first=newest_first)

    def resolve_assigned_unit(self, incident_id: str) -> Optional[Unit]:
        """Resolve the incident's weak unit reference at read time."""
        with self._snapshot():
            incident = self._require_incident(incident_id)
            if not incident.assigned_unit_id:
                return None
            return self.units.get(incident.assigned_unit_id)

    def sla_remaining(self, incident_id: str, now=None) -> int:
        incident = self.get_incident(incident_id)
        return policy.sla_remaining(incident, as_utc(now) if now else self.clock.now())

    def is_at_risk(self, incident_id: str, now=None) -> bool:
        incident = self.get_incident(incident_id)
        return policy.is_at_risk(incident, as_utc(now) if now else self.clock.now(), self.config.sla_risk_minutes)

    def needs_escalation(self, incident_id: str, now=None) -> bool:
        incident = self.get_incident(incident_id)
        return policy.needs_escalation(incident, as_utc(now) if now else self.clock.now(), self.config.sla_escalation_ratio)

    def suggest_unit(self, incident_id: str) -> Optional[Unit]:
        with self._snapshot():
            incident = self._require_incident(incident_id)
            units = self.units.list()
        return policy.suggest_unit(incident, units)

    def can_close(self, incident_id: str, role) -> CloseCheck:
        role = _coerce(Role, role, "role")
        with self._snapshot():
            incident = self._require_incident(incident_id)
            evidence = self.evidence.list_for(incident_id)
        return policy.can_close(incident, role, evidence)

    def recommendations(self, incident_id: str) -> List[policy.Recommendation]:
        with self._snapshot():
            incident = self._require_incident(incident_id)
            units = self.units.list()
            evidence = self.evidence.list_for(incident_id)
        return policy.recommendations(incident, units, evidence)
