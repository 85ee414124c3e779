"""
CAD Core - Incident Store, Unit Registry, Evidence Store

Row-level CRUD only. None of these commit; the orchestrator wraps each
operation in a single transaction.
"""
import sqlite3
from typing import List, Optional

from .clock import format_ts, parse_ts
from .models import (
    Incident, IncidentStatus, Severity,
    Unit, UnitStatus, Agency,
    Evidence, EvidenceKind,
)


# ======================================================================
# INCIDENTS
# ======================================================================

class IncidentStore:

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def insert(self, incident: Incident, folio_seq: int):
        self.conn.execute("""
            INSERT INTO incidents
                (id, folio, folio_seq, title, type, severity, status, sector, location,
                 created_at, sla_minutes, description, assigned_unit_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            incident.id, incident.folio, folio_seq, incident.title, incident.type,
            incident.severity.value, incident.status.value, incident.sector, incident.location,
            format_ts(incident.created_at), incident.sla_minutes, incident.description,
            incident.assigned_unit_id,
        ))

    def get(self, incident_id: str) -> Optional[Incident]:
        row = self.conn.execute("SELECT * FROM incidents WHERE id = ?", (incident_id,)).fetchone()
        return _row_to_incident(row) if row else None

    def list(self) -> List[Incident]:
        rows = self.conn.execute("SELECT * FROM incidents ORDER BY seq").fetchall()
        return [_row_to_incident(r) for r in rows]

    def set_status(self, incident_id: str, status: IncidentStatus):
        self.conn.execute("UPDATE incidents SET status = ? WHERE id = ?", (status.value, incident_id))

    def set_assignment(self, incident_id: str, unit_id: str, status: IncidentStatus):
        self.conn.execute(
            "UPDATE incidents SET assigned_unit_id = ?, status = ? WHERE id = ?",
            (unit_id, status.value, incident_id)
        )

    def next_folio_seq(self, start: int) -> int:
        row = self.conn.execute("SELECT MAX(folio_seq) AS m FROM incidents").fetchone()
        if row is None or row["m"] is None:
            return start
        return max(start, row["m"] + 1)


def _row_to_incident(row) -> Incident:
    return Incident(
        id=row["id"],
        folio=row["folio"],
        title=row["title"],
        type=row["type"],
        severity=Severity(row["severity"]),
        status=IncidentStatus(row["status"]),
        sector=row["sector"],
        location=row["location"],
        created_at=parse_ts(row["created_at"]),
        sla_minutes=row["sla_minutes"],
        description=row["description"],
        assigned_unit_id=row["assigned_unit_id"],
    )


# ======================================================================
# UNITS
# ======================================================================

class UnitRegistry:

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def insert(self, unit: Unit):
        self.conn.execute("""
            INSERT INTO units (id, callsign, agency, status, sector, last_known)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (unit.id, unit.callsign, unit.agency.value, unit.status.value, unit.sector, unit.last_known))

    def get(self, unit_id: str) -> Optional[Unit]:
        row = self.conn.execute("SELECT * FROM units WHERE id = ?", (unit_id,)).fetchone()
        return _row_to_unit(row) if row else None

    def list(self) -> List[Unit]:
        """All units in registration order."""
        rows = self.conn.execute("SELECT * FROM units ORDER BY seq").fetchall()
        return [_row_to_unit(r) for r in rows]

    def set_status(self, unit_id: str, status: UnitStatus):
        self.conn.execute("UPDATE units SET status = ? WHERE id = ?", (status.value, unit_id))


def _row_to_unit(row) -> Unit:
    return Unit(
        id=row["id"],
        callsign=row["callsign"],
        agency=Agency(row["agency"]),
        status=UnitStatus(row["status"]),
        sector=row["sector"],
        last_known=row["last_known"] or "",
    )


# ======================================================================
# EVIDENCE
# ======================================================================

class EvidenceStore:

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def insert(self, evidence: Evidence):
        self.conn.execute("""
            INSERT INTO evidence (id, incident_id, name, kind, integrity_token, created_at, created_by)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            evidence.id, evidence.incident_id, evidence.name, evidence.kind.value,
            evidence.integrity_token, format_ts(evidence.created_at), evidence.created_by,
        ))

    def list_for(self, incident_id: str) -> List[Evidence]:
        rows = self.conn.execute(
            "SELECT * FROM evidence WHERE incident_id = ? ORDER BY seq", (incident_id,)
        ).fetchall()
        return [_row_to_evidence(r) for r in rows]

    def list(self) -> List[Evidence]:
        rows = self.conn.execute("SELECT * FROM evidence ORDER BY seq").fetchall()
        return [_row_to_evidence(r) for r in rows]


def _row_to_evidence(row) -> Evidence:
    return Evidence(
        id=row["id"],
        incident_id=row["incident_id"],
        name=row["name"],
        kind=EvidenceKind(row["kind"]),
        integrity_token=row["integrity_token"],
        created_at=parse_ts(row["created_at"]),
        created_by=row["created_by"],
    )
