"""
CAD Core - Session Snapshot

Lossless dict/JSON round-trip of every record in an operator session.
"""
import json
import logging
from typing import Dict

from .models import Evidence, Incident, TimelineEvent, Unit

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def dump_session(orchestrator) -> Dict:
    units, incidents, evidence, events = orchestrator.export_records()
    snapshot = {
        "version": SNAPSHOT_VERSION,
        "units": [u.to_dict() for u in units],
        "incidents": [i.to_dict() for i in incidents],
        "evidence": [e.to_dict() for e in evidence],
        "timeline": [t.to_dict() for t in events],
    }
    logger.info(
        f"[Session] dumped {len(snapshot['incidents'])} incidents, {len(snapshot['timeline'])} events"
    )
    return snapshot


def load_session(orchestrator, snapshot: Dict):
    """Load a snapshot into an empty orchestrator."""
    version = snapshot.get("version")
    if version != SNAPSHOT_VERSION:
        raise ValueError(f"Unsupported session snapshot version: {version!r}")

    orchestrator.load_records(
        units=[Unit.from_dict(u) for u in snapshot.get("units", [])],
        incidents=[Incident.from_dict(i) for i in snapshot.get("incidents", [])],
        evidence=[Evidence.from_dict(e) for e in snapshot.get("evidence", [])],
        events=[TimelineEvent.from_dict(t) for t in snapshot.get("timeline", [])],
    )


def dumps_session(orchestrator) -> str:
    return json.dumps(dump_session(orchestrator), indent=2)


def loads_session(orchestrator, raw: str):
    load_session(orchestrator, json.loads(raw))
