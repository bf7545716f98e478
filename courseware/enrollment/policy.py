"""
Enrollment policy and the enrollment use cases built on it.

Why:
    Admission is a pure decision over (course, identity, presented key) and is
    kept apart from the repository-backed service so every branch can be
    tested without storage. The service adds authorization, idempotence and
    the atomic membership write.

Decision order:
    1. Inactive courses reject everyone (`course-inactive`).
    2. Exactly one branch by `enroll_type`:
       free       always allowed
       whitelist  identity triple must match an entry (`not-on-whitelist`)
       accesskey  presented key must equal the stored key exactly
                  (`invalid-access-key`); an unset key admits everyone
    3. Only then is existing membership checked, so a rejected caller never
       learns whether they were already a member.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from courseware.enrollment.models import ENROLL_ACCESSKEY, ENROLL_FREE, ENROLL_WHITELIST, Course
from courseware.enrollment.roster import ensure_csv_filename, parse_roster
from courseware.enrollment.whitelist import RowMatch, apply_plan, check_against_users, find_entry, merge
from courseware.errors import ForbiddenError, NotFoundError, RowError
from courseware.identity_access.domain import Identity, normalize_uid
from courseware.persistence.ports import CoursewareRepoProtocol

logger = logging.getLogger("courseware.enrollment")

REASON_INACTIVE = "course-inactive"
REASON_NOT_ON_WHITELIST = "not-on-whitelist"
REASON_INVALID_ACCESS_KEY = "invalid-access-key"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None


class EnrollmentOutcome(str, enum.Enum):
    ENROLLED = "enrolled"
    ALREADY_ENROLLED = "already_enrolled"


class LeaveOutcome(str, enum.Enum):
    LEFT = "left"
    NOT_ENROLLED = "not_enrolled"


class EnrollmentPolicy:
    """Pure admission rules; no storage access."""

    @staticmethod
    def decide(course: Course, identity: Identity, access_key: Optional[str] = None) -> Decision:
        if not course.active:
            return Decision(False, REASON_INACTIVE)
        if course.enroll_type == ENROLL_WHITELIST:
            if find_entry(course.whitelist, identity) is None:
                return Decision(False, REASON_NOT_ON_WHITELIST)
            return Decision(True)
        if course.enroll_type == ENROLL_ACCESSKEY:
            # Lenient for legacy records: no stored key means no key required.
            if course.access_key and access_key != course.access_key:
                return Decision(False, REASON_INVALID_ACCESS_KEY)
            return Decision(True)
        if course.enroll_type == ENROLL_FREE:
            return Decision(True)
        raise ValueError(f"unknown enroll_type: {course.enroll_type!r}")


@dataclass
class RosterImportReport:
    course_id: str
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    errors: List[RowError] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "course_id": self.course_id,
            "inserted": self.inserted,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "errors": [e.to_dict() for e in self.errors],
        }


def ensure_course_staff(course: Course, actor: Identity) -> None:
    """Allow admins and the course's teachers or course admin; raise otherwise."""
    if actor.has_role("admin"):
        return
    if actor.has_role("teacher") and course.is_staff(actor.id):
        return
    raise ForbiddenError("forbidden")


@dataclass
class EnrollmentService:
    """Encapsulate enrollment use cases independent of web adapters."""

    repo: CoursewareRepoProtocol
    policy: EnrollmentPolicy = field(default_factory=EnrollmentPolicy)

    def _course(self, course_id: str) -> Course:
        course = self.repo.find_course_by_id(course_id)
        if course is None:
            raise NotFoundError("course_not_found")
        return course

    def enroll(self, course_id: str, identity: Identity, access_key: Optional[str] = None) -> EnrollmentOutcome:
        """Add the student to the course if the course's policy admits them.

        Raises:
            NotFoundError: unknown course.
            ForbiddenError: caller is not a student (`students_only`) or the
                policy rejected them; the latter carries the `Decision`.
        """
        course = self._course(course_id)
        if not identity.has_role("student"):
            raise ForbiddenError("students_only")
        decision = self.policy.decide(course, identity, access_key)
        if not decision.allowed:
            logger.info(
                "Enrollment rejected course=%s user=%s reason=%s",
                course.id[-6:],
                identity.id[-6:],
                decision.reason,
            )
            raise ForbiddenError(decision.reason or "forbidden", decision=decision)
        if identity.id in course.students:
            return EnrollmentOutcome.ALREADY_ENROLLED
        if not self.repo.add_student_if_absent(course.id, identity.id):
            # Lost a race against a concurrent enrollment of the same student.
            return EnrollmentOutcome.ALREADY_ENROLLED
        logger.info("Student enrolled course=%s user=%s", course.id[-6:], identity.id[-6:])
        return EnrollmentOutcome.ENROLLED

    def leave(self, course_id: str, identity: Identity) -> LeaveOutcome:
        """Remove the student from the course; the policy is not consulted."""
        course = self._course(course_id)
        if not identity.has_role("student"):
            raise ForbiddenError("students_only")
        if identity.id not in course.students:
            return LeaveOutcome.NOT_ENROLLED
        if not self.repo.remove_student(course.id, identity.id):
            return LeaveOutcome.NOT_ENROLLED
        logger.info("Student left course=%s user=%s", course.id[-6:], identity.id[-6:])
        return LeaveOutcome.LEFT

    def import_roster(self, course_id: str, filename: Optional[str], data: bytes, actor: Identity) -> RosterImportReport:
        """Merge a roster CSV into the course whitelist (additive).

        Behavior:
            - Rejects non-`.csv` filenames before parsing.
            - Persists the course once, and only when the merge changed it.
            - Row errors are reported, not raised.
        """
        ensure_csv_filename(filename)
        course = self._course(course_id)
        ensure_course_staff(course, actor)
        parsed = parse_roster(data)
        plan = merge(course.whitelist, parsed.rows)
        if plan.changed:
            course.whitelist = apply_plan(course.whitelist, plan)
            course.touch()
            self.repo.save_course(course)
        counts = plan.counts()
        logger.info(
            "Roster imported course=%s inserted=%s updated=%s unchanged=%s errors=%s",
            course.id[-6:],
            counts["inserted"],
            counts["updated"],
            counts["unchanged"],
            len(parsed.errors),
        )
        return RosterImportReport(course_id=course.id, errors=list(parsed.errors), **counts)

    def check_roster(
        self, course_id: str, filename: Optional[str], data: bytes, actor: Identity
    ) -> Tuple[List[RowMatch], List[RowError]]:
        """Annotate roster rows with their account match status; nothing is stored."""
        ensure_csv_filename(filename)
        course = self._course(course_id)
        ensure_course_staff(course, actor)
        parsed = parse_roster(data)
        return check_against_users(parsed.rows, self.repo.list_users()), list(parsed.errors)

    def remove_whitelist_entry(self, course_id: str, uid: str, actor: Identity) -> int:
        """Remove every whitelist entry with `uid`; returns how many were removed.

        Students already enrolled stay enrolled.
        """
        course = self._course(course_id)
        ensure_course_staff(course, actor)
        target = normalize_uid(uid)
        kept = [e for e in course.whitelist if e.uid != target]
        removed = len(course.whitelist) - len(kept)
        if removed:
            course.whitelist = kept
            course.touch()
            self.repo.save_course(course)
            logger.info("Whitelist entries removed course=%s count=%s", course.id[-6:], removed)
        return removed


__all__ = [
    "Decision",
    "EnrollmentOutcome",
    "EnrollmentPolicy",
    "EnrollmentService",
    "LeaveOutcome",
    "REASON_INACTIVE",
    "REASON_INVALID_ACCESS_KEY",
    "REASON_NOT_ON_WHITELIST",
    "RosterImportReport",
    "ensure_course_staff",
]
