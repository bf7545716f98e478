"""
Courseware web application.

Authentication happens upstream: whoever creates a session in SESSION_STORE
vouches for the identity stored in it. The middleware only resolves the
opaque session cookie and exposes the identity as `request.state.user`.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from courseware.config import ensure_secure_config_on_startup
from courseware.identity_access.stores import SessionStore
from courseware.web import deps
from courseware.web.routes.courses import courses_router
from courseware.web.routes.units import units_router

# Fail fast on unsafe production configuration.
ensure_secure_config_on_startup(deps.SETTINGS)

logger = logging.getLogger("courseware.web")
SESSION_COOKIE_NAME = "courseware_session"
SESSION_STORE = SessionStore()

app = FastAPI(title="Courseware", description="Courses, enrollment and content units", version="0.1.0")

app.include_router(courses_router)
app.include_router(units_router)


def _is_public_path(path: str) -> bool:
    return path in ("/health", "/favicon.ico")


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    path = request.url.path
    if _is_public_path(path):
        return await call_next(request)

    sid = request.cookies.get(SESSION_COOKIE_NAME)
    rec = SESSION_STORE.get(sid) if sid else None
    if not rec:
        headers = {"Cache-Control": "private, no-store"}
        return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=headers)

    # Expose the read-only caller identity for downstream handlers.
    request.state.user = rec.identity
    return await call_next(request)


@app.get("/health")
async def health_check():
    # Security: include no-store to avoid caching any runtime status.
    return JSONResponse({"status": "healthy"}, headers={"Cache-Control": "private, no-store"})
