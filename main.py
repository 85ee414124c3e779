# ================================================================
# CAD CORE — Backend Entry Point
# Incidents + Units + Closure Policy + Audit Trail
# ================================================================

import datetime
import logging

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from cadcore import CADConfig, IncidentOrchestrator, register_cad_routes, seed_demo_session

logger = logging.getLogger("cadcore")


# ================================================================
# FASTAPI APP
# ================================================================

def create_app(config: CADConfig = None, clock=None) -> FastAPI:
    config = config or CADConfig()
    logging.basicConfig(
        level=getattr(logging, str(config.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    orchestrator = IncidentOrchestrator(config=config, clock=clock)
    if config.seed_demo_data:
        seed_demo_session(orchestrator)

    cad_app = FastAPI(title="CAD Core")
    cad_app.add_middleware(SessionMiddleware, secret_key=config.session_secret)
    cad_app.state.orchestrator = orchestrator

    register_cad_routes(cad_app, orchestrator)

    # ================================================================
    # HEALTH & PING
    # ================================================================

    @cad_app.get("/api/ping")
    async def api_ping():
        return {"ok": True, "ts": datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")}

    @cad_app.get("/api/health")
    async def api_health():
        return {
            "ok": True,
            "active_incidents": len(orchestrator.dispatch_queue()),
            "total_units": len(orchestrator.list_units()),
        }

    logger.info("[Main] CAD core backend ready")
    return cad_app


app = create_app()
