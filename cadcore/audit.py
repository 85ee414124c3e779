"""
CAD Core - Audit Log

Append-only, per-incident timeline. No business logic: append() never
validates and never fails on content. The caller owns the transaction.
"""
import logging
import sqlite3
from typing import List, Optional

from .clock import format_ts, parse_ts
from .models import Actor, Role, TimelineEvent

logger = logging.getLogger(__name__)

# Action labels
INCIDENT_CREATED = "incident created"
UNIT_ASSIGNED = "unit assigned"
STATUS_CHANGED = "status changed"
CLOSURE_BLOCKED = "closure blocked"
CLOSURE_OVERRIDE = "closure override"
EVIDENCE_ATTACHED = "evidence attached"


class AuditLog:

    def __init__(self, conn: sqlite3.Connection, clock):
        self.conn = conn
        self.clock = clock

    def append(self, incident_id: str, actor: Actor, action: str, detail: Optional[str] = None,
               timestamp=None) -> int:
        """Append one event and return its id."""
        ts = timestamp or self.clock.now()
        c = self.conn.cursor()
        c.execute("""
            INSERT INTO audit_events (incident_id, timestamp, actor_name, actor_role, action, detail)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (
            incident_id, format_ts(ts), actor.name,
            actor.role.value if actor.role else None,
            action, detail,
        ))
        event_id = c.lastrowid
        logger.debug(f"[Audit] #{event_id} {incident_id} {action}: {detail or ''}")
        return event_id

    def read(self, incident_id: str, newest_first: bool = False) -> List[TimelineEvent]:
        """Events for one incident, oldest first unless newest_first."""
        order = "DESC" if newest_first else "ASC"
        rows = self.conn.execute(f"""
            SELECT * FROM audit_events
            WHERE incident_id = ?
            ORDER BY timestamp {order}, id {order}
        """, (incident_id,)).fetchall()
        return [_row_to_event(r) for r in rows]

    def read_all(self) -> List[TimelineEvent]:
        rows = self.conn.execute("SELECT * FROM audit_events ORDER BY id").fetchall()
        return [_row_to_event(r) for r in rows]

    def restore(self, event: TimelineEvent):
        """Re-insert a recorded event, keeping its id (a None id is numbered by the log)."""
        self.conn.execute("""
            INSERT INTO audit_events (id, incident_id, timestamp, actor_name, actor_role, action, detail)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            event.id, event.incident_id, format_ts(event.timestamp), event.actor_name,
            event.actor_role.value if event.actor_role else None,
            event.action, event.detail,
        ))


def _row_to_event(row) -> TimelineEvent:
    return TimelineEvent(
        id=row["id"],
        incident_id=row["incident_id"],
        timestamp=parse_ts(row["timestamp"]),
        actor_name=row["actor_name"],
        actor_role=Role(row["actor_role"]) if row["actor_role"] else None,
        action=row["action"],
        detail=row["detail"],
    )
