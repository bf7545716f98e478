"""Course and whitelist records used by the enrollment services."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from courseware.identity_access.domain import IdentityKey, identity_key

ENROLL_FREE = "free"
ENROLL_WHITELIST = "whitelist"
ENROLL_ACCESSKEY = "accesskey"
ENROLL_TYPES = frozenset({ENROLL_FREE, ENROLL_WHITELIST, ENROLL_ACCESSKEY})


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class WhitelistEntry:
    """Pre-approved identity triple; names are stored lower-cased."""

    first_name: str
    last_name: str
    uid: str
    extra: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def create(cls, first_name: str, last_name: str, uid: str, extra: Optional[Dict[str, str]] = None) -> "WhitelistEntry":
        first, last, normalized_uid = identity_key(first_name, last_name, uid)
        return cls(first_name=first, last_name=last, uid=normalized_uid, extra=dict(extra or {}))

    @property
    def key(self) -> IdentityKey:
        return (self.first_name, self.last_name, self.uid)

    def to_dict(self) -> dict:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "uid": self.uid,
            "extra": dict(self.extra),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WhitelistEntry":
        return cls.create(
            data.get("first_name", ""),
            data.get("last_name", ""),
            data.get("uid", ""),
            {str(k): str(v) for k, v in (data.get("extra") or {}).items()},
        )


@dataclass
class Course:
    id: str
    name: str
    description: str = ""
    active: bool = True
    enroll_type: str = ENROLL_FREE
    access_key: Optional[str] = None
    course_admin_id: Optional[str] = None
    whitelist: List[WhitelistEntry] = field(default_factory=list)
    students: List[str] = field(default_factory=list)
    teachers: List[str] = field(default_factory=list)
    lectures: List[str] = field(default_factory=list)
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    @classmethod
    def new(cls, name: str, **kwargs: Any) -> "Course":
        return cls(id=str(uuid4()), name=name, **kwargs)

    @property
    def has_access_key(self) -> bool:
        return bool(self.access_key)

    def is_staff(self, user_id: str) -> bool:
        return user_id == self.course_admin_id or user_id in self.teachers

    def touch(self) -> None:
        self.updated_at = _now_iso()


def course_to_dict(course: Course, *, include_access_key: bool = False) -> dict:
    """Serialize a course; the access key itself is only exposed to staff."""
    data = {
        "id": course.id,
        "name": course.name,
        "description": course.description,
        "active": course.active,
        "enroll_type": course.enroll_type,
        "has_access_key": course.has_access_key,
        "course_admin_id": course.course_admin_id,
        "whitelist": [entry.to_dict() for entry in course.whitelist],
        "students": list(course.students),
        "teachers": list(course.teachers),
        "lectures": list(course.lectures),
        "created_at": course.created_at,
        "updated_at": course.updated_at,
    }
    if include_access_key:
        data["access_key"] = course.access_key
    return data


def course_from_dict(data: Dict[str, Any]) -> Course:
    return Course(
        id=str(data["id"]),
        name=str(data.get("name") or ""),
        description=str(data.get("description") or ""),
        active=bool(data.get("active", True)),
        enroll_type=str(data.get("enroll_type") or ENROLL_FREE),
        access_key=data.get("access_key") or None,
        course_admin_id=data.get("course_admin_id"),
        whitelist=[WhitelistEntry.from_dict(e) for e in data.get("whitelist") or []],
        students=[str(s) for s in data.get("students") or []],
        teachers=[str(t) for t in data.get("teachers") or []],
        lectures=[str(lec) for lec in data.get("lectures") or []],
        created_at=str(data.get("created_at") or _now_iso()),
        updated_at=str(data.get("updated_at") or _now_iso()),
    )


__all__ = [
    "Course",
    "ENROLL_ACCESSKEY",
    "ENROLL_FREE",
    "ENROLL_TYPES",
    "ENROLL_WHITELIST",
    "WhitelistEntry",
    "course_from_dict",
    "course_to_dict",
]
