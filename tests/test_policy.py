"""
CAD Core — Dispatch Policy Tests
=================================
Pure functions only: SLA risk, unit suggestion, closure eligibility,
operator recommendations.
"""

import datetime
import pytest

from cadcore.models import (
    Incident, IncidentStatus, Severity, Role, Evidence, EvidenceKind,
    Unit, UnitStatus, Agency,
)
from cadcore.policy import (
    sla_remaining, is_at_risk, sla_consumed_ratio, needs_escalation,
    suggest_unit, can_close, valid_justification, recommendations,
)
from cadcore.policy import closure

T0 = datetime.datetime(2026, 3, 10, 10, 0, 0, tzinfo=datetime.timezone.utc)


def incident(**kw):
    data = dict(
        id="inc_x", folio="CDMX-2026-000900", title="Test incident", type="Fire",
        severity=Severity.MEDIUM, status=IncidentStatus.NEW, sector="Centro",
        location="Calle Uno 100", created_at=T0, sla_minutes=10,
    )
    data.update(kw)
    return Incident(**data)


def unit(uid, sector, status=UnitStatus.AVAILABLE):
    return Unit(uid, uid.upper(), Agency.POLICE, status, sector, "")


def evidence_for(incident_id):
    return [Evidence("ev_x", incident_id, "Photo 1", EvidenceKind.IMAGE, "abc", T0, "Op")]


# ============================================================================
# SLA
# ============================================================================

class TestSLA:

    def test_nine_minutes_into_ten_minute_budget(self):
        inc = incident(sla_minutes=10)
        now = T0 + datetime.timedelta(minutes=9)
        assert sla_remaining(inc, now) == 1
        assert is_at_risk(inc, now) is True

    def test_fresh_incident_has_full_budget(self):
        inc = incident(sla_minutes=20)
        assert sla_remaining(inc, T0) == 20
        assert is_at_risk(inc, T0) is False

    def test_elapsed_rounds_to_nearest_minute(self):
        inc = incident(sla_minutes=10)
        assert sla_remaining(inc, T0 + datetime.timedelta(seconds=89)) == 9
        assert sla_remaining(inc, T0 + datetime.timedelta(seconds=90)) == 8

    def test_remaining_floors_at_zero(self):
        inc = incident(sla_minutes=5)
        assert sla_remaining(inc, T0 + datetime.timedelta(hours=3)) == 0

    def test_clock_before_creation_counts_as_zero_elapsed(self):
        inc = incident(sla_minutes=5)
        assert sla_remaining(inc, T0 - datetime.timedelta(minutes=10)) == 5

    def test_remaining_is_monotonic_non_increasing(self):
        inc = incident(sla_minutes=15)
        previous = None
        for seconds in range(0, 40 * 60, 17):
            value = sla_remaining(inc, T0 + datetime.timedelta(seconds=seconds))
            assert value >= 0
            if previous is not None:
                assert value <= previous
            previous = value
        assert previous == 0

    def test_closed_incident_never_at_risk(self):
        inc = incident(status=IncidentStatus.CLOSED, sla_minutes=1)
        assert is_at_risk(inc, T0 + datetime.timedelta(minutes=30)) is False

    def test_risk_threshold_is_inclusive(self):
        inc = incident(sla_minutes=10)
        assert is_at_risk(inc, T0 + datetime.timedelta(minutes=7)) is True
        assert is_at_risk(inc, T0 + datetime.timedelta(minutes=6)) is False

    def test_escalation_at_seventy_percent(self):
        inc = incident(sla_minutes=10)
        assert needs_escalation(inc, T0 + datetime.timedelta(minutes=6)) is False
        assert needs_escalation(inc, T0 + datetime.timedelta(minutes=7)) is True
        assert sla_consumed_ratio(inc, T0 + datetime.timedelta(minutes=7)) == pytest.approx(0.7)

    def test_zero_budget_is_fully_consumed(self):
        inc = incident(sla_minutes=0)
        assert sla_consumed_ratio(inc, T0) == 1.0
        assert needs_escalation(incident(sla_minutes=0, status=IncidentStatus.CLOSED), T0) is False


# ============================================================================
# UNIT SUGGESTION
# ============================================================================

class TestSuggestion:

    def test_same_sector_preferred_over_earlier_registration(self):
        inc = incident(severity=Severity.HIGH, sector="Centro")
        units = [unit("u_norte", "Norte"), unit("u_centro", "Centro")]
        assert suggest_unit(inc, units).id == "u_centro"

    def test_first_same_sector_unit_wins(self):
        inc = incident(sector="Centro")
        units = [unit("u_a", "Centro"), unit("u_b", "Centro")]
        assert suggest_unit(inc, units).id == "u_a"

    def test_falls_back_to_first_available(self):
        inc = incident(sector="Poniente")
        units = [
            unit("u_busy", "Poniente", UnitStatus.ON_SCENE),
            unit("u_sur", "Sur"),
            unit("u_norte", "Norte"),
        ]
        assert suggest_unit(inc, units).id == "u_sur"

    def test_non_available_same_sector_unit_skipped(self):
        inc = incident(sector="Centro")
        units = [unit("u_c", "Centro", UnitStatus.ASSIGNED), unit("u_n", "Norte")]
        assert suggest_unit(inc, units).id == "u_n"

    def test_none_when_nothing_available(self):
        inc = incident()
        units = [unit("u_1", "Centro", UnitStatus.UNAVAILABLE), unit("u_2", "Sur", UnitStatus.EN_ROUTE)]
        assert suggest_unit(inc, units) is None
        assert suggest_unit(inc, []) is None


# ============================================================================
# CLOSURE ELIGIBILITY
# ============================================================================

class TestCanClose:

    def test_admin_never_allowed(self):
        check = can_close(incident(severity=Severity.LOW), Role.ADMIN, [])
        assert check.allowed is False
        assert check.overridable is False
        assert check.reason == closure.REASON_ADMIN

    def test_admin_rule_short_circuits_closed_check(self):
        check = can_close(incident(status=IncidentStatus.CLOSED), Role.ADMIN, [])
        assert check.reason == closure.REASON_ADMIN

    def test_already_closed_not_overridable(self):
        check = can_close(
            incident(status=IncidentStatus.CLOSED, severity=Severity.CRITICAL), Role.COORDINATOR, []
        )
        assert check.allowed is False
        assert check.overridable is False
        assert check.reason == closure.REASON_ALREADY_CLOSED

    def test_critical_without_evidence_coordinator_overridable(self):
        check = can_close(incident(severity=Severity.CRITICAL), Role.COORDINATOR, [])
        assert check.allowed is False
        assert check.overridable is True

    @pytest.mark.parametrize("role", [Role.OPERATOR, Role.SUPERVISOR])
    def test_critical_without_evidence_others_not_overridable(self, role):
        check = can_close(incident(severity=Severity.CRITICAL), role, [])
        assert check.allowed is False
        assert check.overridable is False
        assert check.reason == closure.REASON_CRITICAL_NO_EVIDENCE

    def test_operator_critical_with_evidence_blocked(self):
        inc = incident(severity=Severity.CRITICAL)
        check = can_close(inc, Role.OPERATOR, evidence_for(inc.id))
        assert check.allowed is False
        assert check.overridable is False
        assert check.reason == closure.REASON_OPERATOR_CRITICAL

    @pytest.mark.parametrize("role", [Role.SUPERVISOR, Role.COORDINATOR])
    def test_critical_with_evidence_allowed_for_senior_roles(self, role):
        inc = incident(severity=Severity.CRITICAL)
        assert can_close(inc, role, evidence_for(inc.id)).allowed is True

    def test_evidence_of_other_incident_does_not_count(self):
        inc = incident(severity=Severity.CRITICAL)
        check = can_close(inc, Role.SUPERVISOR, evidence_for("inc_other"))
        assert check.allowed is False

    @pytest.mark.parametrize("severity", [Severity.HIGH, Severity.MEDIUM, Severity.LOW])
    def test_operator_closes_non_critical(self, severity):
        check = can_close(incident(severity=severity), Role.OPERATOR, [])
        assert check.allowed is True
        assert check.reason is None

    def test_justification_length_after_trim(self):
        assert valid_justification("Scene clear.") is True
        assert valid_justification("   short    ") is False
        assert valid_justification("Done.") is False
        assert valid_justification(None) is False
        assert valid_justification(123456789012) is False


# ============================================================================
# RECOMMENDATIONS
# ============================================================================

class TestRecommendations:

    def test_new_unassigned_critical_gets_all_advice(self):
        inc = incident(severity=Severity.CRITICAL)
        recs = recommendations(inc, [unit("u_1", "Centro")], [])
        assert [r.action for r in recs] == ["classify", "assign", None]
        assert recs[1].unit_id == "u_1"

    def test_assigned_classified_incident_has_no_advice(self):
        inc = incident(status=IncidentStatus.ASSIGNED, assigned_unit_id="u_1")
        assert recommendations(inc, [unit("u_2", "Centro")], []) == []

    def test_no_unit_advice_when_none_available(self):
        inc = incident(status=IncidentStatus.CLASSIFIED)
        assert recommendations(inc, [unit("u_1", "Centro", UnitStatus.UNAVAILABLE)], []) == []
