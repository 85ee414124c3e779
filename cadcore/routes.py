"""
CAD Core - API Routes

JSON endpoints over the orchestrator. The session only declares who is
operating (name + role); it is not authentication.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import analytics
from .errors import CADError, ValidationError
from .models import Actor, NewIncident, Role
from .session import dump_session

logger = logging.getLogger(__name__)


class SessionRequired(CADError):
    status_code = 401

    def __init__(self):
        super().__init__("No operator session. Log in first.")


class RoleForbidden(CADError):
    status_code = 403


def _session_actor(request: Request) -> Actor:
    name = request.session.get("user")
    role = request.session.get("role")
    if not name or not role:
        raise SessionRequired()
    return Actor(name, Role(role))


async def _json_body(request: Request) -> dict:
    try:
        data = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON body")
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON body")
    return data


def _incident_view(orch, incident, now) -> dict:
    data = incident.to_dict()
    data["sla_remaining"] = orch.sla_remaining(incident.id, now)
    data["sla_at_risk"] = orch.is_at_risk(incident.id, now)
    return data


def register_cad_routes(app: FastAPI, orch):
    """Register all CAD core endpoints."""

    @app.exception_handler(CADError)
    async def _cad_error(request: Request, exc: CADError):
        body = {"ok": False, "error": exc.message}
        if isinstance(exc, ValidationError) and exc.field:
            body["field"] = exc.field
        return JSONResponse(body, status_code=exc.status_code)

    # ============================================================
    # SESSION
    # ============================================================

    @app.post("/api/session/login")
    async def api_session_login(request: Request):
        data = await _json_body(request)
        name = data.get("name")
        name = name.strip() if isinstance(name, str) else ""
        if len(name) < 3:
            raise ValidationError("Operator name must be at least 3 characters.", field="name")
        try:
            role = Role(data.get("role") or Role.OPERATOR.value)
        except ValueError:
            raise ValidationError(f"Invalid role: {data.get('role')!r}", field="role")

        request.session["user"] = name
        request.session["role"] = role.value
        logger.info(f"[Session] {name} logged in as {role.value}")
        return {"ok": True, "user": name, "role": role.value}

    @app.get("/api/session/status")
    async def api_session_status(request: Request):
        user = request.session.get("user")
        return {"ok": True, "logged_in": bool(user), "user": user, "role": request.session.get("role")}

    @app.post("/api/session/logout")
    async def api_session_logout(request: Request):
        request.session.clear()
        return {"ok": True}

    @app.get("/api/session/export")
    async def api_session_export(request: Request):
        _session_actor(request)
        return {"ok": True, "session": dump_session(orch)}

    # ============================================================
    # INCIDENTS
    # ============================================================

    @app.get("/api/cad/incidents")
    async def api_list_incidents(request: Request):
        params = request.query_params
        incidents = orch.list_incidents(
            query=params.get("q"),
            severity=params.get("severity") or None,
            sector=params.get("sector") or None,
            open_only=params.get("open_only", "").lower() in ("1", "true", "yes"),
        )
        now = orch.clock.now()
        return {"ok": True, "incidents": [_incident_view(orch, i, now) for i in incidents]}

    @app.get("/api/cad/queue")
    async def api_dispatch_queue(request: Request):
        now = orch.clock.now()
        return {"ok": True, "incidents": [_incident_view(orch, i, now) for i in orch.dispatch_queue()]}

    @app.post("/api/cad/incidents")
    async def api_create_incident(request: Request):
        actor = _session_actor(request)
        data = await _json_body(request)
        incident = orch.create_incident(NewIncident.from_dict(data), actor)
        return {"ok": True, "incident": incident.to_dict()}

    @app.get("/api/cad/incidents/{incident_id}")
    async def api_get_incident(incident_id: str, request: Request):
        incident = orch.get_incident(incident_id)
        unit = orch.resolve_assigned_unit(incident_id)
        body = {
            "ok": True,
            "incident": _incident_view(orch, incident, orch.clock.now()),
            "assigned_unit": unit.to_dict() if unit else None,
            "recommendations": [r.to_dict() for r in orch.recommendations(incident_id)],
        }
        role = request.session.get("role")
        if role:
            body["close_check"] = orch.can_close(incident_id, role).to_dict()
        return body

    @app.post("/api/cad/incidents/{incident_id}/assign")
    async def api_assign_unit(incident_id: str, request: Request):
        actor = _session_actor(request)
        data = await _json_body(request)
        unit_id = data.get("unit_id")
        if not isinstance(unit_id, str) or not unit_id:
            raise ValidationError("Missing unit_id", field="unit_id")
        incident = orch.assign_unit(incident_id, unit_id, actor)
        return {"ok": True, "incident": incident.to_dict()}

    @app.post("/api/cad/incidents/{incident_id}/status")
    async def api_set_incident_status(incident_id: str, request: Request):
        actor = _session_actor(request)
        data = await _json_body(request)
        result = orch.set_incident_status(incident_id, data.get("status"), actor)
        return {"ok": result.applied, **result.to_dict()}

    @app.post("/api/cad/incidents/{incident_id}/close")
    async def api_close_incident(incident_id: str, request: Request):
        actor = _session_actor(request)
        result = orch.set_incident_status(incident_id, "CLOSED", actor)
        return {"ok": result.applied, **result.to_dict()}

    @app.post("/api/cad/incidents/{incident_id}/override")
    async def api_override_close(incident_id: str, request: Request):
        actor = _session_actor(request)
        data = await _json_body(request)
        result = orch.override_close(incident_id, actor, data.get("justification"))
        return {"ok": result.applied, **result.to_dict()}

    @app.get("/api/cad/incidents/{incident_id}/can_close")
    async def api_can_close(incident_id: str, request: Request):
        role = request.query_params.get("role") or request.session.get("role")
        if not role:
            raise SessionRequired()
        return {"ok": True, **orch.can_close(incident_id, role).to_dict()}

    @app.get("/api/cad/incidents/{incident_id}/suggestion")
    async def api_suggest_unit(incident_id: str, request: Request):
        unit = orch.suggest_unit(incident_id)
        return {"ok": True, "unit": unit.to_dict() if unit else None}

    @app.get("/api/cad/incidents/{incident_id}/timeline")
    async def api_timeline(incident_id: str, request: Request):
        newest_first = request.query_params.get("order", "desc").lower() == "desc"
        events = orch.get_timeline(incident_id, newest_first=newest_first)
        return {"ok": True, "events": [e.to_dict() for e in events]}

    # ============================================================
    # EVIDENCE
    # ============================================================

    @app.get("/api/cad/incidents/{incident_id}/evidence")
    async def api_list_evidence(incident_id: str, request: Request):
        return {"ok": True, "evidence": [e.to_dict() for e in orch.list_evidence(incident_id)]}

    @app.post("/api/cad/incidents/{incident_id}/evidence")
    async def api_attach_evidence(incident_id: str, request: Request):
        actor = _session_actor(request)
        data = await _json_body(request)
        evidence = orch.attach_evidence(incident_id, data.get("name"), data.get("kind"), actor)
        return {"ok": True, "evidence": evidence.to_dict()}

    # ============================================================
    # UNITS
    # ============================================================

    @app.get("/api/cad/units")
    async def api_list_units(request: Request):
        return {"ok": True, "units": [u.to_dict() for u in orch.list_units()]}

    @app.post("/api/cad/units/{unit_id}/status")
    async def api_set_unit_status(unit_id: str, request: Request):
        _session_actor(request)
        data = await _json_body(request)
        unit = orch.set_unit_status(unit_id, data.get("status"))
        return {"ok": True, "unit": unit.to_dict()}

    # ============================================================
    # ANALYTICS / ADMIN
    # ============================================================

    @app.get("/api/cad/analytics")
    async def api_analytics(request: Request):
        return {"ok": True, "summary": analytics.board_summary(orch)}

    @app.get("/api/cad/admin/config")
    async def api_admin_config(request: Request):
        actor = _session_actor(request)
        if actor.role not in (Role.COORDINATOR, Role.ADMIN):
            raise RoleForbidden("This section requires the COORDINATOR or ADMIN role.")
        return {
            "ok": True,
            "incident_types": orch.config.incident_types,
            "sectors": orch.config.sectors,
            "settings": orch.config.by_category(),
        }
