"""
FieldOps FastAPI Application — Compliance scoring & predictive maintenance.

  POST   /refresh                              → refresh buildings now
  POST   /refresh/schedule                     → refresh buildings on an interval
  DELETE /refresh/schedule                     → stop the interval schedule
  GET    /buildings/{id}/compliance            → score, grade, risk tier, trend
  GET    /buildings/{id}/exposure              → outstanding fines + projection
  GET    /buildings/{id}/emergency             → escalation state
  POST   /buildings/{id}/emergency/{command}   → acknowledge | start | resolve
  POST   /maintenance/predictions              → backlog risk forecast
  GET    /portfolio                            → portfolio metrics + alerts
  GET    /audit/recent                         → recent audit entries
  GET    /health                               → {"status": "ok"}
"""

from __future__ import annotations

import logging

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fieldops.api.routes.audit import router as audit_router
from fieldops.api.routes.buildings import router as buildings_router
from fieldops.api.routes.health import router as health_router
from fieldops.api.routes.maintenance import router as maintenance_router
from fieldops.api.routes.portfolio import router as portfolio_router
from fieldops.api.routes.refresh import router as refresh_router
from fieldops.config import settings
from fieldops.core.errors import InvalidTransition

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("fieldops")

app = FastAPI(
    title="FieldOps",
    description="Building compliance scoring, financial exposure and maintenance forecasting",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(refresh_router)
app.include_router(buildings_router)
app.include_router(maintenance_router)
app.include_router(portfolio_router)
app.include_router(audit_router)


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=409,
        content={
            "detail": str(exc),
            "building_id": exc.building_id,
            "state": exc.from_state,
            "reason": exc.reason,
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = await request.body()
    logger.error(f"Validation Error. Raw body: {body.decode('utf-8')[:500]} | Errors: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors(), "body": body.decode("utf-8")[:100]},
    )
