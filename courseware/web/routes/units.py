"""
Content unit API routes.

Why:
    Thin adapter over ContentUnitService. Unit documents are JSON; file
    uploads are raw request bodies attached to an existing file unit via
    `POST /api/units/{id}/files?filename=...`, read with the configured
    upload limit.
"""
from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Request
from pydantic import BaseModel, Field

from courseware.content.files import UploadedFile
from courseware.web import deps
from courseware.web.deps import (
    SERVICE_ERRORS,
    _json_private,
    _private_error,
    _read_request_stream_with_limit,
    current_identity,
    error_response,
)

units_router = APIRouter(tags=["Units"])
logger = logging.getLogger("courseware.web.units")


class UnitCreatePayload(BaseModel):
    lecture_id: str = Field(..., min_length=1)
    model: Dict[str, Any]


@units_router.get("/api/units/{unit_id}")
async def get_unit(request: Request, unit_id: str):
    viewer = current_identity(request)
    try:
        data = deps.content_service().get(unit_id, viewer)
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(data)


@units_router.post("/api/units")
async def create_unit(request: Request, payload: UnitCreatePayload):
    """Create a unit and append it to the given lecture (teacher or admin).

    Behavior:
        - 201 with the unit on success
        - 400 with per-field `errors` on invalid unit data
        - 404 when lecture or course does not exist
    """
    actor = current_identity(request)
    service = deps.content_service()
    try:
        unit = service.create(payload.model, lecture_id=payload.lecture_id, actor=actor)
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(service.project_unit(unit, actor), status_code=201)


@units_router.put("/api/units/{unit_id}")
async def replace_unit(request: Request, unit_id: str, fields: Dict[str, Any] = Body(...)):
    """Merge the given fields into the unit; `id` and `type` cannot change."""
    actor = current_identity(request)
    service = deps.content_service()
    try:
        result = service.replace(unit_id, fields, actor=actor)
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(service.project_unit(result.unit, actor))


@units_router.post("/api/units/{unit_id}/files")
async def upload_unit_file(request: Request, unit_id: str, filename: str | None = None):
    """Attach the raw request body as a file of a `file` unit."""
    actor = current_identity(request)
    if not (filename or "").strip():
        return _private_error({"error": "bad_request", "detail": "missing_filename"}, status_code=400)
    body, err = await _read_request_stream_with_limit(request, deps.SETTINGS.max_upload_bytes)
    if err:
        return _private_error({"error": "bad_request", "detail": err}, status_code=400)
    service = deps.content_service()
    try:
        result = service.replace(
            unit_id,
            {},
            actor=actor,
            upload=UploadedFile(filename=filename.strip(), data=body),
        )
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(service.project_unit(result.unit, actor), status_code=201)


@units_router.delete("/api/units/{unit_id}")
async def delete_unit(request: Request, unit_id: str):
    actor = current_identity(request)
    try:
        removal = deps.content_service().remove(unit_id, actor=actor)
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private({"result": True, "files": removal.cleanup.to_dict()})


__all__ = ["units_router"]
