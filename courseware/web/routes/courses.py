"""
Course API routes: administration, enrollment and whitelist management.

Why:
    Thin adapter over CourseService and EnrollmentService. Authentication is
    enforced by the middleware; authorization and enrollment rules live in the
    services and surface here as the error taxonomy.

Notes:
    - Responses carry `Cache-Control: private, no-store`; payloads are
      projected per viewer (students never see access keys or other students).
    - Roster uploads are raw request bodies (`?filename=roster.csv`) read with
      a hard byte limit.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

from courseware.enrollment.courses import CourseService
from courseware.enrollment.roster import ensure_csv_filename
from courseware.web import deps
from courseware.web.deps import (
    SERVICE_ERRORS,
    _json_private,
    _private_error,
    _read_request_stream_with_limit,
    current_identity,
    error_response,
)

courses_router = APIRouter(tags=["Courses"])
logger = logging.getLogger("courseware.web.courses")


# --- Request models --------------------------------------------------------------

class CourseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    active: bool = True
    enroll_type: str = "free"
    access_key: str | None = None


class CourseUpdate(BaseModel):
    # Accept raw values and validate in the service to return 400 with field errors.
    name: str | None = None
    description: str | None = None
    active: bool | None = None
    enroll_type: str | None = None
    access_key: str | None = None


class EnrollPayload(BaseModel):
    access_key: str | None = None


# --- Courses -----------------------------------------------------------------------

@courses_router.get("/api/courses")
async def list_courses(request: Request):
    """List courses visible to the caller (see CourseService read conditions)."""
    viewer = current_identity(request)
    try:
        courses = deps.course_service().list_courses(viewer)
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private([CourseService.project_course(c, viewer) for c in courses])


@courses_router.get("/api/courses/{course_id}")
async def get_course(request: Request, course_id: str):
    viewer = current_identity(request)
    try:
        course = deps.course_service().get_course(course_id, viewer)
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(CourseService.project_course(course, viewer))


@courses_router.post("/api/courses")
async def create_course(request: Request, payload: CourseCreate):
    """Create a course (teacher or admin); the caller becomes course admin.

    Behavior:
        - 201 with the course on success
        - 400 on invalid fields or a duplicate name
        - 403 when the caller is a student
    """
    actor = current_identity(request)
    try:
        course = deps.course_service().create_course(payload.model_dump(), actor)
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(CourseService.project_course(course, actor), status_code=201)


@courses_router.patch("/api/courses/{course_id}")
async def update_course(request: Request, course_id: str, payload: CourseUpdate):
    actor = current_identity(request)
    fields = payload.model_dump(exclude_unset=True)
    try:
        course = deps.course_service().update_course(course_id, fields, actor)
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(CourseService.project_course(course, actor))


@courses_router.delete("/api/courses/{course_id}")
async def delete_course(request: Request, course_id: str):
    """Delete a course (course teacher, course admin or admin) → 204."""
    actor = current_identity(request)
    try:
        deps.course_service().delete_course(course_id, actor)
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    return Response(status_code=204, headers={"Cache-Control": "private, no-store"})


# --- Enrollment --------------------------------------------------------------------

@courses_router.post("/api/courses/{course_id}/enroll")
async def enroll(request: Request, course_id: str, payload: EnrollPayload | None = None):
    """Enroll the calling student.

    Behavior:
        - 200 with `status` enrolled | already_enrolled
        - 403 with `detail` students_only | course-inactive | not-on-whitelist |
          invalid-access-key
        - 404 when the course does not exist
    """
    identity = current_identity(request)
    access_key = payload.access_key if payload else None
    try:
        outcome = deps.enrollment_service().enroll(course_id, identity, access_key)
        course = deps.get_repo().find_course_by_id(course_id)
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    body = {"status": outcome.value}
    if course is not None:
        body["course"] = CourseService.project_course(course, identity)
    return _json_private(body)


@courses_router.post("/api/courses/{course_id}/leave")
async def leave(request: Request, course_id: str):
    identity = current_identity(request)
    try:
        outcome = deps.enrollment_service().leave(course_id, identity)
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private({"status": outcome.value})


# --- Whitelist -----------------------------------------------------------------------

async def _read_roster(request: Request, filename: str | None):
    """Return (body, error_response); the filename is checked before reading."""
    try:
        ensure_csv_filename(filename)
    except SERVICE_ERRORS as exc:
        return None, error_response(exc)
    body, err = await _read_request_stream_with_limit(request, deps.SETTINGS.max_roster_bytes)
    if err:
        return None, _private_error({"error": "bad_request", "detail": err}, status_code=400)
    return body, None


@courses_router.post("/api/courses/{course_id}/whitelist")
async def import_whitelist(request: Request, course_id: str, filename: str | None = None):
    """Merge a roster CSV (raw body) into the course whitelist.

    Behavior:
        - 200 with inserted/updated/unchanged counts and row errors
        - 400 for non-.csv names, unreadable files or a missing header
        - 403 unless course teacher, course admin or admin
    """
    actor = current_identity(request)
    body, error = await _read_roster(request, filename)
    if error is not None:
        return error
    try:
        report = deps.enrollment_service().import_roster(course_id, filename, body, actor)
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(report.to_dict())


@courses_router.post("/api/courses/{course_id}/whitelist/check")
async def check_whitelist(request: Request, course_id: str, filename: str | None = None):
    """Preview a roster against registered accounts; nothing is stored."""
    actor = current_identity(request)
    body, error = await _read_roster(request, filename)
    if error is not None:
        return error
    try:
        matches, errors = deps.enrollment_service().check_roster(course_id, filename, body, actor)
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private({"rows": [m.to_dict() for m in matches], "errors": [e.to_dict() for e in errors]})


@courses_router.delete("/api/courses/{course_id}/whitelist/{uid}")
async def remove_whitelist_entry(request: Request, course_id: str, uid: str):
    actor = current_identity(request)
    try:
        removed = deps.enrollment_service().remove_whitelist_entry(course_id, uid, actor)
    except SERVICE_ERRORS as exc:
        return error_response(exc)
    if not removed:
        return _private_error({"error": "not_found", "detail": "whitelist_entry_not_found"}, status_code=404)
    return _json_private({"removed": removed})


__all__ = ["courses_router"]
