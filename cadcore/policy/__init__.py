"""
CAD Core Dispatch Policy
Pure functions over store snapshots: SLA risk, unit suggestion, closure rules.
"""
from .sla import sla_remaining, is_at_risk, sla_consumed_ratio, needs_escalation, elapsed_minutes
from .suggestion import suggest_unit
from .closure import can_close, valid_justification
from .advisor import recommendations, Recommendation

__all__ = [
    "sla_remaining",
    "is_at_risk",
    "sla_consumed_ratio",
    "needs_escalation",
    "elapsed_minutes",
    "suggest_unit",
    "can_close",
    "valid_justification",
    "recommendations",
    "Recommendation",
]
