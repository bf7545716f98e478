"""
Course administration use cases.

Read conditions:
    admin    every course
    student  active courses they are enrolled in
    teacher  courses they teach or administer
Listings additionally show every `free` and `accesskey` course so students can
discover courses to join; those are still filtered by `active` for students.

Access key invariant:
    Enforced whenever the policy is configured (create or update): the key is
    required under `accesskey` and cleared for every other policy. The
    whitelist is kept across policy changes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from courseware.enrollment.models import (
    ENROLL_ACCESSKEY,
    ENROLL_FREE,
    ENROLL_TYPES,
    Course,
    course_to_dict,
)
from courseware.enrollment.policy import ensure_course_staff
from courseware.errors import ForbiddenError, NotFoundError, ValidationError
from courseware.identity_access.domain import Identity
from courseware.persistence.ports import CoursewareRepoProtocol

logger = logging.getLogger("courseware.enrollment")

_OPEN_TYPES = (ENROLL_FREE, ENROLL_ACCESSKEY)
_UNSET = object()


def _readable(course: Course, viewer: Identity) -> bool:
    if viewer.has_role("admin"):
        return True
    if viewer.has_role("student"):
        return course.active and viewer.id in course.students
    return course.is_staff(viewer.id)


def _listed(course: Course, viewer: Identity) -> bool:
    if _readable(course, viewer):
        return True
    if course.enroll_type not in _OPEN_TYPES:
        return False
    return course.active or not viewer.has_role("student")


def _clean_name(value: object, errors: Dict[str, str]) -> str:
    if not isinstance(value, str) or not value.strip():
        errors["name"] = "required"
        return ""
    name = value.strip()
    if len(name) > 200:
        errors["name"] = "must be at most 200 characters"
    return name


def _apply_policy(course: Course, enroll_type: object, access_key: object, errors: Dict[str, str]) -> None:
    if enroll_type is not _UNSET:
        if enroll_type not in ENROLL_TYPES:
            errors["enroll_type"] = "must be one of: accesskey, free, whitelist"
            return
        course.enroll_type = str(enroll_type)
    if access_key is not _UNSET:
        if access_key is not None and not isinstance(access_key, str):
            errors["access_key"] = "must be a string"
            return
        course.access_key = (access_key or "").strip() or None
    if course.enroll_type == ENROLL_ACCESSKEY:
        if not course.access_key:
            errors["access_key"] = "required for accesskey enrollment"
    else:
        course.access_key = None


@dataclass
class CourseService:
    """Encapsulate course administration use cases independent of web adapters."""

    repo: CoursewareRepoProtocol

    def create_course(self, fields: Mapping[str, Any], actor: Identity) -> Course:
        """Create a course with `actor` as its course admin.

        Raises:
            ForbiddenError: actor is neither teacher nor admin.
            ValidationError: invalid fields, or `duplicate_name`.
        """
        if not actor.has_role("teacher", "admin"):
            raise ForbiddenError("forbidden")
        errors: Dict[str, str] = {}
        name = _clean_name(fields.get("name"), errors)
        description = fields.get("description") or ""
        if not isinstance(description, str):
            errors["description"] = "must be a string"
            description = ""
        course = Course.new(name, description=description, course_admin_id=actor.id)
        if "active" in fields:
            if not isinstance(fields["active"], bool):
                errors["active"] = "must be a boolean"
            else:
                course.active = fields["active"]
        _apply_policy(
            course,
            fields.get("enroll_type", ENROLL_FREE),
            fields.get("access_key"),
            errors,
        )
        if errors:
            raise ValidationError("invalid_course", errors)
        if self.repo.find_course_by_name(name) is not None:
            raise ValidationError("duplicate_name", {"name": "course name already in use"})
        saved = self.repo.save_course(course)
        logger.info("Course created course=%s by=%s", saved.id[-6:], actor.id[-6:])
        return saved

    def update_course(self, course_id: str, fields: Mapping[str, Any], actor: Identity) -> Course:
        """Update course settings; only present keys change.

        Membership lists are not editable here; whitelist changes go through
        roster imports and explicit removals.
        """
        course = self.repo.find_course_by_id(course_id)
        if course is None or not (actor.has_role("teacher", "admin") and _readable(course, actor)):
            raise NotFoundError("course_not_found")
        errors: Dict[str, str] = {}
        if "name" in fields:
            name = _clean_name(fields["name"], errors)
            if name and name != course.name:
                other = self.repo.find_course_by_name(name)
                if other is not None and other.id != course.id:
                    errors["name"] = "course name already in use"
                course.name = name
        if "description" in fields:
            if not isinstance(fields["description"], str):
                errors["description"] = "must be a string"
            else:
                course.description = fields["description"]
        if "active" in fields:
            if not isinstance(fields["active"], bool):
                errors["active"] = "must be a boolean"
            else:
                course.active = fields["active"]
        _apply_policy(
            course,
            fields.get("enroll_type", _UNSET),
            fields.get("access_key", _UNSET),
            errors,
        )
        if errors:
            code = "duplicate_name" if errors.get("name") == "course name already in use" else "invalid_course"
            raise ValidationError(code, errors)
        course.touch()
        return self.repo.save_course(course)

    def delete_course(self, course_id: str, actor: Identity) -> None:
        """Delete the course and its whitelist (course teacher, course admin or admin)."""
        course = self.repo.find_course_by_id(course_id)
        if course is None:
            raise NotFoundError("course_not_found")
        try:
            ensure_course_staff(course, actor)
        except ForbiddenError:
            logger.info("Course delete forbidden course=%s by=%s", course.id[-6:], actor.id[-6:])
            raise
        self.repo.remove_course(course.id)
        logger.info("Course deleted course=%s by=%s", course.id[-6:], actor.id[-6:])

    def list_courses(self, viewer: Identity) -> List[Course]:
        return [c for c in self.repo.list_courses() if _listed(c, viewer)]

    def get_course(self, course_id: str, viewer: Identity) -> Course:
        course = self.repo.find_course_by_id(course_id)
        if course is None or not _readable(course, viewer):
            raise NotFoundError("course_not_found")
        return course

    @staticmethod
    def project_course(course: Course, viewer: Identity) -> dict:
        """Serialize a course for `viewer`.

        Students see no course admin, only themselves among the students and
        never the access key or whitelist; staff and admins see everything.
        """
        staff = viewer.has_role("admin") or course.is_staff(viewer.id)
        data = course_to_dict(course, include_access_key=staff)
        if viewer.has_role("student"):
            data.pop("course_admin_id", None)
            data["students"] = [s for s in course.students if s == viewer.id]
            data["whitelist"] = []
        return data


__all__ = ["CourseService"]
