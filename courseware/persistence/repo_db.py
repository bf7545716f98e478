"""
Postgres-backed repository for courses, users, lectures and content units.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- Course membership lives in `course_students`; its primary key turns
  enrollment into `insert ... on conflict do nothing`, so concurrent enrollments
  can neither duplicate nor lose a member.
- Whole-record course saves never delete membership rows; students only leave
  through `remove_student`.
- Unit documents are stored as JSONB in the shape of `unit_to_dict`.
- Driver errors are wrapped in `PersistenceError` at this boundary.
"""
from __future__ import annotations

from contextlib import contextmanager
import logging
import os
from typing import Any, Iterator, List, Optional, Tuple

import psycopg
from psycopg.types.json import Jsonb

from courseware.content.units import ContentUnit, Lecture, unit_from_dict, unit_to_dict
from courseware.enrollment.models import Course, WhitelistEntry
from courseware.errors import PersistenceError
from courseware.identity_access.domain import User

logger = logging.getLogger("courseware.persistence")


def _dsn() -> str:
    for name in ("COURSEWARE_DATABASE_URL", "DATABASE_URL"):
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    raise RuntimeError("Database DSN unavailable for DBCoursewareRepo")


_COURSE_COLUMNS_SQL = """
    id, name, description, active, enroll_type, access_key, course_admin_id,
    whitelist, teachers, lectures, created_at, updated_at
"""


def _course_from_row(row: Tuple, students: List[str]) -> Course:
    return Course(
        id=row[0],
        name=row[1],
        description=row[2] or "",
        active=bool(row[3]),
        enroll_type=row[4],
        access_key=row[5],
        course_admin_id=row[6],
        whitelist=[WhitelistEntry.from_dict(e) for e in (row[7] or [])],
        students=students,
        teachers=[str(t) for t in (row[8] or [])],
        lectures=[str(lec) for lec in (row[9] or [])],
        created_at=row[10],
        updated_at=row[11],
    )


def _user_from_row(row: Tuple) -> User:
    return User(id=row[0], uid=row[1], first_name=row[2], last_name=row[3], role=row[4], email=row[5])


def _lecture_from_row(row: Tuple) -> Lecture:
    return Lecture(id=row[0], name=row[1], course_id=row[2], units=[str(u) for u in (row[3] or [])])


class DBCoursewareRepo:
    def __init__(self, dsn: Optional[str] = None) -> None:
        """Initialize a Postgres-backed repository.

        Does not open a connection eagerly; connections are per-call.
        """
        self._dsn = dsn or _dsn()

    @contextmanager
    def _cursor(self, operation: str) -> Iterator[Any]:
        try:
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    yield cur
                conn.commit()
        except psycopg.Error as exc:
            logger.warning("Database operation failed op=%s error=%s", operation, type(exc).__name__)
            raise PersistenceError(operation, exc) from exc

    # --- Courses ----------------------------------------------------------------

    @staticmethod
    def _students(cur: Any, course_id: str) -> List[str]:
        cur.execute(
            "select user_id from course_students where course_id = %s order by position",
            (course_id,),
        )
        return [r[0] for r in cur.fetchall() or []]

    def find_course_by_id(self, course_id: str) -> Optional[Course]:
        with self._cursor("find_course") as cur:
            cur.execute(f"select {_COURSE_COLUMNS_SQL} from courses where id = %s", (course_id,))
            row = cur.fetchone()
            if not row:
                return None
            return _course_from_row(row, self._students(cur, row[0]))

    def find_course_by_name(self, name: str) -> Optional[Course]:
        with self._cursor("find_course") as cur:
            cur.execute(f"select {_COURSE_COLUMNS_SQL} from courses where name = %s", (name,))
            row = cur.fetchone()
            if not row:
                return None
            return _course_from_row(row, self._students(cur, row[0]))

    def list_courses(self) -> List[Course]:
        with self._cursor("list_courses") as cur:
            cur.execute(f"select {_COURSE_COLUMNS_SQL} from courses order by created_at, id")
            rows = cur.fetchall() or []
            return [_course_from_row(r, self._students(cur, r[0])) for r in rows]

    def save_course(self, course: Course) -> Course:
        with self._cursor("save_course") as cur:
            cur.execute(
                f"""
                insert into courses ({_COURSE_COLUMNS_SQL})
                values (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                on conflict (id) do update set
                    name = excluded.name,
                    description = excluded.description,
                    active = excluded.active,
                    enroll_type = excluded.enroll_type,
                    access_key = excluded.access_key,
                    course_admin_id = excluded.course_admin_id,
                    whitelist = excluded.whitelist,
                    teachers = excluded.teachers,
                    lectures = excluded.lectures,
                    updated_at = excluded.updated_at
                """,
                (
                    course.id,
                    course.name,
                    course.description,
                    course.active,
                    course.enroll_type,
                    course.access_key,
                    course.course_admin_id,
                    Jsonb([e.to_dict() for e in course.whitelist]),
                    Jsonb(list(course.teachers)),
                    Jsonb(list(course.lectures)),
                    course.created_at,
                    course.updated_at,
                ),
            )
            for user_id in course.students:
                cur.execute(
                    """
                    insert into course_students (course_id, user_id)
                    values (%s, %s)
                    on conflict do nothing
                    """,
                    (course.id, user_id),
                )
            course.students = self._students(cur, course.id)
        return course

    def remove_course(self, course_id: str) -> bool:
        with self._cursor("remove_course") as cur:
            cur.execute("delete from courses where id = %s", (course_id,))
            return cur.rowcount > 0

    def add_student_if_absent(self, course_id: str, user_id: str) -> bool:
        with self._cursor("add_student") as cur:
            cur.execute(
                """
                insert into course_students (course_id, user_id)
                values (%s, %s)
                on conflict do nothing
                """,
                (course_id, user_id),
            )
            inserted = cur.rowcount == 1
            if inserted:
                cur.execute(
                    "update courses set updated_at = to_char(now() at time zone 'utc', "
                    "'YYYY-MM-DD\"T\"HH24:MI:SS\"+00:00\"') where id = %s",
                    (course_id,),
                )
        return inserted

    def remove_student(self, course_id: str, user_id: str) -> bool:
        with self._cursor("remove_student") as cur:
            cur.execute(
                "delete from course_students where course_id = %s and user_id = %s",
                (course_id, user_id),
            )
            return cur.rowcount > 0

    # --- Users -------------------------------------------------------------------

    def find_user_by_id(self, user_id: str) -> Optional[User]:
        with self._cursor("find_user") as cur:
            cur.execute(
                "select id, uid, first_name, last_name, role, email from users where id = %s",
                (user_id,),
            )
            row = cur.fetchone()
        return _user_from_row(row) if row else None

    def list_users(self) -> List[User]:
        with self._cursor("list_users") as cur:
            cur.execute("select id, uid, first_name, last_name, role, email from users order by id")
            rows = cur.fetchall() or []
        return [_user_from_row(r) for r in rows]

    def save_user(self, user: User) -> User:
        with self._cursor("save_user") as cur:
            cur.execute(
                """
                insert into users (id, uid, first_name, last_name, role, email)
                values (%s, %s, %s, %s, %s, %s)
                on conflict (id) do update set
                    uid = excluded.uid,
                    first_name = excluded.first_name,
                    last_name = excluded.last_name,
                    role = excluded.role,
                    email = excluded.email
                """,
                (user.id, user.uid, user.first_name, user.last_name, user.role, user.email),
            )
        return user

    # --- Units & lectures --------------------------------------------------------

    def find_unit_by_id(self, unit_id: str) -> Optional[ContentUnit]:
        with self._cursor("find_unit") as cur:
            cur.execute("select doc from units where id = %s", (unit_id,))
            row = cur.fetchone()
        return unit_from_dict(row[0]) if row else None

    def save_unit(self, unit: ContentUnit) -> ContentUnit:
        with self._cursor("save_unit") as cur:
            cur.execute(
                """
                insert into units (id, course_id, type, doc)
                values (%s, %s, %s, %s)
                on conflict (id) do update set
                    course_id = excluded.course_id,
                    doc = excluded.doc
                """,
                (unit.id, unit.course_id, unit.type, Jsonb(unit_to_dict(unit))),
            )
        return unit

    def remove_unit(self, unit_id: str) -> bool:
        with self._cursor("remove_unit") as cur:
            cur.execute("delete from units where id = %s", (unit_id,))
            return cur.rowcount > 0

    def find_lecture_by_id(self, lecture_id: str) -> Optional[Lecture]:
        with self._cursor("find_lecture") as cur:
            cur.execute("select id, name, course_id, units from lectures where id = %s", (lecture_id,))
            row = cur.fetchone()
        return _lecture_from_row(row) if row else None

    def find_lecture_for_unit(self, unit_id: str) -> Optional[Lecture]:
        with self._cursor("find_lecture") as cur:
            cur.execute(
                """
                select id, name, course_id, units from lectures
                where units @> jsonb_build_array(%s::text)
                limit 1
                """,
                (unit_id,),
            )
            row = cur.fetchone()
        return _lecture_from_row(row) if row else None

    def save_lecture(self, lecture: Lecture) -> Lecture:
        with self._cursor("save_lecture") as cur:
            cur.execute(
                """
                insert into lectures (id, name, course_id, units)
                values (%s, %s, %s, %s)
                on conflict (id) do update set
                    name = excluded.name,
                    course_id = excluded.course_id,
                    units = excluded.units
                """,
                (lecture.id, lecture.name, lecture.course_id, Jsonb(list(lecture.units))),
            )
        return lecture


__all__ = ["DBCoursewareRepo"]
