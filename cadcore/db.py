"""
CAD Core - Database Connection & Schema
"""
import logging
import sqlite3

logger = logging.getLogger(__name__)


def get_conn(db_path: str = ":memory:") -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_core_schema(conn: sqlite3.Connection):
    """Create core tables if they don't exist."""
    c = conn.cursor()

    # -----------------------------
    # UNITS (seq keeps registration order)
    # -----------------------------
    c.execute("""
        CREATE TABLE IF NOT EXISTS units (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            id TEXT NOT NULL UNIQUE,
            callsign TEXT NOT NULL,
            agency TEXT NOT NULL,
            status TEXT NOT NULL,
            sector TEXT NOT NULL,
            last_known TEXT
        )
    """)

    # -----------------------------
    # INCIDENTS
    # -----------------------------
    c.execute("""
        CREATE TABLE IF NOT EXISTS incidents (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            id TEXT NOT NULL UNIQUE,
            folio TEXT NOT NULL UNIQUE,
            folio_seq INTEGER NOT NULL,
            title TEXT NOT NULL,
            type TEXT NOT NULL,
            severity TEXT NOT NULL,
            status TEXT NOT NULL,
            sector TEXT NOT NULL,
            location TEXT NOT NULL,
            created_at TEXT NOT NULL,
            sla_minutes INTEGER NOT NULL,
            description TEXT,
            assigned_unit_id TEXT
        )
    """)

    # -----------------------------
    # EVIDENCE (append-only)
    # -----------------------------
    c.execute("""
        CREATE TABLE IF NOT EXISTS evidence (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            id TEXT NOT NULL UNIQUE,
            incident_id TEXT NOT NULL REFERENCES incidents(id),
            name TEXT NOT NULL,
            kind TEXT NOT NULL,
            integrity_token TEXT NOT NULL,
            created_at TEXT NOT NULL,
            created_by TEXT NOT NULL
        )
    """)

    # -----------------------------
    # AUDIT LOG (append-only, per incident)
    # -----------------------------
    c.execute("""
        CREATE TABLE IF NOT EXISTS audit_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            incident_id TEXT NOT NULL,
            timestamp TEXT NOT NULL,
            actor_name TEXT NOT NULL,
            actor_role TEXT,
            action TEXT NOT NULL,
            detail TEXT
        )
    """)

    for table, col in (("evidence", "incident_id"), ("audit_events", "incident_id")):
        c.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_{col} ON {table} ({col})")

    conn.commit()
    logger.debug("[DB] core schema ready")
