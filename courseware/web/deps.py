"""
Shared wiring for the web routes: repository, binary store, services and
response helpers.

Why:
    Routes stay thin. They resolve the caller, call a service and map the
    error taxonomy to status codes. Persistence prefers the Postgres repo when
    a DSN is configured and falls back to an in-memory repo for tests and
    local offline work. Tests call `set_repo` / `set_binary_store` to swap
    implementations.
"""
from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from courseware.config import CoursewareSettings, load_settings
from courseware.content.files import FileAssetLifecycle, FileSettings
from courseware.content.service import ContentUnitService
from courseware.enrollment.courses import CourseService
from courseware.enrollment.policy import EnrollmentService
from courseware.errors import ForbiddenError, NotFoundError, PersistenceError, ValidationError
from courseware.identity_access.domain import Identity
from courseware.persistence.memory import InMemoryRepo
from courseware.storage.local import LocalFileStore
from courseware.storage.ports import BinaryStoreProtocol

logger = logging.getLogger("courseware.web")

SETTINGS: CoursewareSettings = load_settings()

SERVICE_ERRORS = (NotFoundError, ForbiddenError, ValidationError, PersistenceError)


def _build_default_repo():
    """Prefer the DB-backed repo when a DSN is configured; else in-memory."""
    if not SETTINGS.database_url:
        return InMemoryRepo()
    from courseware.persistence.repo_db import DBCoursewareRepo

    return DBCoursewareRepo(SETTINGS.database_url)


_REPO = None
_BINARY_STORE: BinaryStoreProtocol | None = None


def get_repo():
    global _REPO
    if _REPO is None:
        _REPO = _build_default_repo()
    return _REPO


def get_binary_store() -> BinaryStoreProtocol:
    global _BINARY_STORE
    if _BINARY_STORE is None:
        _BINARY_STORE = LocalFileStore(SETTINGS.upload_dir)
    return _BINARY_STORE


def set_repo(repo) -> None:
    """Allow tests to swap the repository implementation."""
    global _REPO
    _REPO = repo


def set_binary_store(store: BinaryStoreProtocol) -> None:
    """Allow tests to provide a binary store (e.g., a fake or a tmp dir)."""
    global _BINARY_STORE
    _BINARY_STORE = store


def enrollment_service() -> EnrollmentService:
    return EnrollmentService(get_repo())


def course_service() -> CourseService:
    return CourseService(get_repo())


def content_service() -> ContentUnitService:
    files = FileAssetLifecycle(
        get_binary_store(),
        FileSettings(upload_dir=SETTINGS.upload_dir, max_size_bytes=SETTINGS.max_upload_bytes),
    )
    return ContentUnitService(get_repo(), files)


def current_identity(request: Request) -> Identity:
    # Set by the auth middleware; every /api/ route runs behind it.
    return request.state.user


def _json_private(payload, *, status_code: int = 200) -> JSONResponse:
    """Return a JSONResponse with cache disabled for shared caches and browsers.

    Course and unit payloads are role-scoped, so they must never land in a
    proxy or browser cache.
    """
    return JSONResponse(content=payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def _private_error(payload: dict, *, status_code: int) -> JSONResponse:
    return JSONResponse(content=payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def error_response(exc: Exception) -> JSONResponse:
    """Map the service error taxonomy to HTTP responses."""
    if isinstance(exc, NotFoundError):
        return _private_error({"error": "not_found", "detail": exc.code}, status_code=404)
    if isinstance(exc, ForbiddenError):
        return _private_error({"error": "forbidden", "detail": exc.reason}, status_code=403)
    if isinstance(exc, ValidationError):
        return _private_error(exc.to_dict(), status_code=400)
    if isinstance(exc, PersistenceError):
        logger.warning("Persistence failure op=%s", exc.operation)
        return _private_error({"error": "service_unavailable"}, status_code=503)
    raise exc


async def _read_request_stream_with_limit(request: Request, limit: int) -> tuple[bytes | None, str | None]:
    """Consume the request stream without buffering unlimited bytes."""

    total = 0
    buffer = bytearray()
    async for chunk in request.stream():
        if not chunk:
            continue
        buffer.extend(chunk)
        total += len(chunk)
        if limit > 0 and total > limit:
            return None, "size_exceeded"
    if not buffer:
        return None, "empty_file"
    return bytes(buffer), None
