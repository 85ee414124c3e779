"""
CAD Core — End-to-End Workflow Tests
=====================================
Full lifecycle tests that chain multiple operations together.
"""

import threading

from cadcore import IncidentStatus, UnitStatus
from tests.conftest import login, new_incident, make_unit


class TestIncidentLifecycle:
    """create -> classify -> assign -> en route -> on scene -> evidence -> close."""

    def test_full_incident_lifecycle(self, client, clock):
        # 1. Declare operator
        login(client, "Operator 07", "OPERATOR")

        # 2. Create incident
        resp = client.post("/api/cad/incidents", json={
            "title": "Fire in residential building",
            "type": "Fire",
            "severity": "HIGH",
            "sector": "Oriente",
            "location": "Av. Tlahuac 450, Oriente",
            "sla_minutes": 12,
        })
        assert resp.status_code == 200
        inc_id = resp.json()["incident"]["id"]

        # 3. Classify
        resp = client.post(f"/api/cad/incidents/{inc_id}/status", json={"status": "CLASSIFIED"})
        assert resp.json()["ok"] is True

        # 4. Take the suggested unit (same sector, available)
        unit = client.get(f"/api/cad/incidents/{inc_id}/suggestion").json()["unit"]
        assert unit["id"] == "u_4"
        resp = client.post(f"/api/cad/incidents/{inc_id}/assign", json={"unit_id": unit["id"]})
        assert resp.json()["incident"]["assigned_unit_id"] == "u_4"

        # 5. Unit rolls and arrives
        clock.advance(minutes=4)
        client.post(f"/api/cad/incidents/{inc_id}/status", json={"status": "EN_ROUTE"})
        client.post("/api/cad/units/u_4/status", json={"status": "EN_ROUTE"})
        clock.advance(minutes=5)
        client.post(f"/api/cad/incidents/{inc_id}/status", json={"status": "ON_SCENE"})
        client.post("/api/cad/units/u_4/status", json={"status": "ON_SCENE"})

        detail = client.get(f"/api/cad/incidents/{inc_id}").json()
        assert detail["incident"]["sla_remaining"] == 3
        assert detail["incident"]["sla_at_risk"] is True

        # 6. Evidence
        resp = client.post(f"/api/cad/incidents/{inc_id}/evidence", json={
            "name": "Facade photo", "kind": "IMAGE",
        })
        assert resp.status_code == 200

        # 7. Close
        resp = client.post(f"/api/cad/incidents/{inc_id}/close")
        data = resp.json()
        assert data["ok"] is True
        assert data["incident"]["status"] == "CLOSED"

        # 8. Unit back in service, incident out of the queue
        units = {u["id"]: u for u in client.get("/api/cad/units").json()["units"]}
        assert units["u_4"]["status"] == "AVAILABLE"
        queue = [i["id"] for i in client.get("/api/cad/queue").json()["incidents"]]
        assert inc_id not in queue

        # 9. Timeline tells the whole story
        events = client.get(f"/api/cad/incidents/{inc_id}/timeline", params={"order": "asc"}).json()["events"]
        assert [e["action"] for e in events] == [
            "incident created",
            "status changed",
            "unit assigned",
            "status changed",
            "status changed",
            "evidence attached",
            "status changed",
        ]
        assert all(e["actor"] == "Operator 07 (OPERATOR)" for e in events)
        assert events[-1]["detail"] == "CLOSED"


class TestCriticalClosureEscalation:
    """Operator blocked -> supervisor blocked without evidence -> coordinator override."""

    def test_critical_closure_chain(self, client):
        login(client, "Operator 07", "OPERATOR")
        inc = client.post("/api/cad/incidents", json={
            "title": "Medical emergency in metro station",
            "type": "Medical emergency",
            "severity": "CRITICAL",
            "sector": "Centro",
            "location": "Metro Zocalo, Centro",
            "sla_minutes": 8,
        }).json()["incident"]
        client.post(f"/api/cad/incidents/{inc['id']}/assign", json={"unit_id": "u_2"})

        # Operator cannot close
        assert client.post(f"/api/cad/incidents/{inc['id']}/close").json()["ok"] is False

        # Supervisor cannot close without evidence, and cannot override
        login(client, "Shift Supervisor", "SUPERVISOR")
        assert client.post(f"/api/cad/incidents/{inc['id']}/close").json()["ok"] is False
        refused = client.post(
            f"/api/cad/incidents/{inc['id']}/override", json={"justification": "Patient transported."}
        ).json()
        assert refused["ok"] is False

        # Coordinator overrides
        login(client, "Coordinator Ruiz", "COORDINATOR")
        done = client.post(
            f"/api/cad/incidents/{inc['id']}/override", json={"justification": "Patient transported."}
        ).json()
        assert done["ok"] is True

        events = client.get(f"/api/cad/incidents/{inc['id']}/timeline", params={"order": "asc"}).json()["events"]
        actions = [e["action"] for e in events]
        assert actions.count("closure blocked") == 3
        assert actions[-2:] == ["closure override", "status changed"]
        assert events[-2]["detail"] == "Patient transported."
        assert events[-1]["actor"] == "Coordinator Ruiz (COORDINATOR)"

        units = {u["id"]: u for u in client.get("/api/cad/units").json()["units"]}
        assert units["u_2"]["status"] == "AVAILABLE"


class TestConcurrentOperations:
    """Operations from several threads stay atomic and folios stay unique."""

    def test_parallel_creates_get_unique_folios(self, orch, operator):
        results, errors = [], []

        def worker():
            try:
                for _ in range(10):
                    results.append(orch.create_incident(new_incident(), operator))
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        folios = [i.folio for i in results]
        assert len(folios) == 40
        assert len(set(folios)) == 40
        assert len(orch.audit.read_all()) == 40

    def test_parallel_assign_and_close_leave_consistent_state(self, orch, supervisor):
        for n in range(5):
            orch.register_unit(make_unit(f"u_{n}", "Centro"))
        incidents = [orch.create_incident(new_incident(), supervisor) for _ in range(5)]

        def worker(n):
            orch.assign_unit(incidents[n].id, f"u_{n}", supervisor)
            orch.set_incident_status(incidents[n].id, IncidentStatus.CLOSED, supervisor)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(orch.get_incident(i.id).status == IncidentStatus.CLOSED for i in incidents)
        assert all(u.status == UnitStatus.AVAILABLE for u in orch.list_units())
