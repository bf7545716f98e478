"""
Small builders shared by the courseware tests.

Keep these dumb: they construct records directly and never go through the
services under test.
"""
from __future__ import annotations

from typing import Dict, List

from courseware.content.units import Lecture
from courseware.enrollment.models import Course, WhitelistEntry
from courseware.identity_access.domain import Identity, User
from courseware.storage.ports import StoredFile


def student(id: str = "student-1", uid: str = "s1001", first: str = "Ada", last: str = "Lovelace") -> Identity:
    return Identity(id=id, uid=uid, first_name=first, last_name=last, role="student")


def teacher(id: str = "teacher-1", uid: str = "t2001", first: str = "Grace", last: str = "Hopper") -> Identity:
    return Identity(id=id, uid=uid, first_name=first, last_name=last, role="teacher")


def admin(id: str = "admin-1") -> Identity:
    return Identity(id=id, uid="a3001", first_name="Alan", last_name="Turing", role="admin")


def as_user(identity: Identity) -> User:
    return User(
        id=identity.id,
        uid=identity.uid,
        first_name=identity.first_name,
        last_name=identity.last_name,
        role=identity.role,
    )


def seed_course(repo, name: str = "Algorithms", **kwargs) -> Course:
    kwargs.setdefault("course_admin_id", "teacher-1")
    return repo.save_course(Course.new(name, **kwargs))


def seed_lecture(repo, course: Course, name: str = "Week 1") -> Lecture:
    lecture = repo.save_lecture(Lecture(id=f"lecture-{course.id[-6:]}-{name}", name=name, course_id=course.id))
    course.lectures.append(lecture.id)
    repo.save_course(course)
    return lecture


def entry(first: str, last: str, uid: str, **extra: str) -> WhitelistEntry:
    return WhitelistEntry.create(first, last, uid, extra)


class RecordingStore:
    """Binary store fake that records writes and deletes.

    `fail_deletes` names storage names whose delete reports failure;
    `raise_deletes` names storage names whose delete raises.
    """

    def __init__(self, *, fail_deletes=(), raise_deletes=()):
        self.files: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        self.fail_deletes = set(fail_deletes)
        self.raise_deletes = set(raise_deletes)

    def write_file(self, *, name: str, body: bytes) -> StoredFile:
        self.files[name] = body
        return StoredFile(path=name, size=len(body))

    def delete_file(self, name: str) -> bool:
        self.deleted.append(name)
        if name in self.raise_deletes:
            raise OSError("disk on fire")
        if name in self.fail_deletes:
            return False
        return self.files.pop(name, None) is not None

