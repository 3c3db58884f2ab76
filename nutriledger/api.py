# -*- coding: utf-8 -*-
"""
Nutrition Ledger API

Onboarding, weight log, meal log and daily nutrition targets on top of a
local SQLite ledger mirrored to a per-user document store.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .deps import get_context
from .errors import LedgerError
from .identity.api import router as auth_router
from .identity.security import bearer_token
from .meals.api import router as meals_router
from .nutrition.api import router as nutrition_router
from .onboarding.api import router as onboarding_router
from .preferences.api import router as preferences_router
from .progress.api import router as progress_router
from .weight.api import router as weight_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    ctx = get_context()
    yield
    await ctx.close()


app = FastAPI(
    lifespan=_lifespan,
    title="Nutrition Ledger",
    description="Dual-written nutrition ledger with derived daily targets",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


_AUTH_EXEMPT_PREFIXES = (
    "/api/auth/login",
    "/api/auth/register",
    "/api/docs",
    "/api/redoc",
    "/api/openapi.json",
)


@app.middleware("http")
async def _auth_gate(request: Request, call_next):
    path = request.url.path
    if path.startswith("/api") and path != "/api/health" and not any(path.startswith(p) for p in _AUTH_EXEMPT_PREFIXES):
        token = bearer_token(request)
        if not token:
            return JSONResponse(status_code=401, content={"detail": "Not authenticated"})
        try:
            user = get_context().identity.authenticate(token)
        except LedgerError as exc:
            return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
        request.state.user = {"id": user["id"], "email": user["email"], "created_at": user["created_at"]}
    return await call_next(request)


@app.exception_handler(LedgerError)
async def _ledger_error_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(auth_router)
app.include_router(onboarding_router)
app.include_router(weight_router)
app.include_router(meals_router)
app.include_router(nutrition_router)
app.include_router(progress_router)
app.include_router(preferences_router)


@app.get("/api/health")
def health_check():
    ctx = get_context()
    return {
        "status": "ok",
        "mirror_online": ctx.mirror.online,
        "pending_remote": len(ctx.repository.pending),
    }


def run() -> None:
    """Console entry point (used by pyproject [project.scripts])."""
    import uvicorn

    host = os.environ.get("NUTRILEDGER_HOST") or os.environ.get("HOST") or "127.0.0.1"
    port_raw = os.environ.get("NUTRILEDGER_PORT") or os.environ.get("PORT") or "8000"
    try:
        port = int(port_raw)
    except ValueError:
        port = 8000

    uvicorn.run("nutriledger.api:app", host=host, port=port, reload=False)
