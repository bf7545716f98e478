"""
In-memory repository for development and tests.

Records are deep-copied on the way in and out so callers never share state
with the store; a mutated-but-unsaved object stays invisible, as it would with
a database. A single lock serializes every operation, which makes the
membership methods atomic.
"""
from __future__ import annotations

import copy
import threading
from typing import Dict, List, Optional

from courseware.content.units import ContentUnit, Lecture
from courseware.enrollment.models import Course
from courseware.identity_access.domain import User


class InMemoryRepo:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.courses: Dict[str, Course] = {}
        self.users: Dict[str, User] = {}
        self.units: Dict[str, ContentUnit] = {}
        self.lectures: Dict[str, Lecture] = {}

    # --- Courses -----------------------------------------------------------------

    def find_course_by_id(self, course_id: str) -> Optional[Course]:
        with self._lock:
            return copy.deepcopy(self.courses.get(course_id))

    def find_course_by_name(self, name: str) -> Optional[Course]:
        with self._lock:
            for course in self.courses.values():
                if course.name == name:
                    return copy.deepcopy(course)
            return None

    def list_courses(self) -> List[Course]:
        with self._lock:
            return [copy.deepcopy(c) for c in self.courses.values()]

    def save_course(self, course: Course) -> Course:
        # Membership is only ever removed through remove_student.
        with self._lock:
            stored = copy.deepcopy(course)
            current = self.courses.get(course.id)
            if current is not None:
                students = list(current.students)
                students += [s for s in course.students if s not in students]
                stored.students = students
            self.courses[course.id] = stored
            return copy.deepcopy(stored)

    def remove_course(self, course_id: str) -> bool:
        with self._lock:
            return self.courses.pop(course_id, None) is not None

    def add_student_if_absent(self, course_id: str, user_id: str) -> bool:
        with self._lock:
            course = self.courses.get(course_id)
            if course is None:
                raise LookupError("course_not_found")
            if user_id in course.students:
                return False
            course.students.append(user_id)
            course.touch()
            return True

    def remove_student(self, course_id: str, user_id: str) -> bool:
        with self._lock:
            course = self.courses.get(course_id)
            if course is None:
                raise LookupError("course_not_found")
            before = len(course.students)
            course.students = [s for s in course.students if s != user_id]
            if len(course.students) == before:
                return False
            course.touch()
            return True

    # --- Users -------------------------------------------------------------------

    def find_user_by_id(self, user_id: str) -> Optional[User]:
        with self._lock:
            return copy.deepcopy(self.users.get(user_id))

    def list_users(self) -> List[User]:
        with self._lock:
            return [copy.deepcopy(u) for u in self.users.values()]

    def save_user(self, user: User) -> User:
        with self._lock:
            self.users[user.id] = copy.deepcopy(user)
            return copy.deepcopy(user)

    # --- Units & lectures --------------------------------------------------------

    def find_unit_by_id(self, unit_id: str) -> Optional[ContentUnit]:
        with self._lock:
            return copy.deepcopy(self.units.get(unit_id))

    def save_unit(self, unit: ContentUnit) -> ContentUnit:
        with self._lock:
            self.units[unit.id] = copy.deepcopy(unit)
            return copy.deepcopy(unit)

    def remove_unit(self, unit_id: str) -> bool:
        with self._lock:
            return self.units.pop(unit_id, None) is not None

    def find_lecture_by_id(self, lecture_id: str) -> Optional[Lecture]:
        with self._lock:
            return copy.deepcopy(self.lectures.get(lecture_id))

    def find_lecture_for_unit(self, unit_id: str) -> Optional[Lecture]:
        with self._lock:
            for lecture in self.lectures.values():
                if unit_id in lecture.units:
                    return copy.deepcopy(lecture)
            return None

    def save_lecture(self, lecture: Lecture) -> Lecture:
        with self._lock:
            self.lectures[lecture.id] = copy.deepcopy(lecture)
            return copy.deepcopy(lecture)


__all__ = ["InMemoryRepo"]
