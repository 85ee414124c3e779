"""
Dispatch Policy - Closure Eligibility

Rules are evaluated in order and the first match wins. Role and
already-closed checks run before any severity/evidence check.
"""
from typing import Sequence

from ..models import CloseCheck, Evidence, Incident, Role, Severity

REASON_ADMIN = "Administrative role does not operate incidents."
REASON_ALREADY_CLOSED = "Incident is already closed."
REASON_CRITICAL_NO_EVIDENCE = "CRITICAL incident requires evidence to close."
REASON_CRITICAL_NO_EVIDENCE_OVERRIDE = (
    "CRITICAL incident without evidence. Requires evidence to close (or coordinator override)."
)
REASON_OPERATOR_CRITICAL = (
    "Operators cannot close CRITICAL incidents. Requires supervisor or coordinator."
)

OVERRIDE_MIN_LENGTH = 10


def can_close(incident: Incident, role: Role, evidence: Sequence[Evidence]) -> CloseCheck:
    if role == Role.ADMIN:
        return CloseCheck(False, REASON_ADMIN)

    if incident.is_closed:
        return CloseCheck(False, REASON_ALREADY_CLOSED)

    has_evidence = any(e.incident_id == incident.id for e in evidence)
    critical = incident.severity == Severity.CRITICAL

    if critical and not has_evidence:
        if role == Role.COORDINATOR:
            return CloseCheck(False, REASON_CRITICAL_NO_EVIDENCE_OVERRIDE, overridable=True)
        return CloseCheck(False, REASON_CRITICAL_NO_EVIDENCE)

    if critical and role == Role.OPERATOR:
        return CloseCheck(False, REASON_OPERATOR_CRITICAL)

    return CloseCheck(True)


def valid_justification(text: str, min_length: int = OVERRIDE_MIN_LENGTH) -> bool:
    if not isinstance(text, str):
        return False
    return len(text.strip()) >= min_length
