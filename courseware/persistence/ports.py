"""Repository contract shared by the enrollment and content services."""
from __future__ import annotations

from typing import List, Optional, Protocol

from courseware.content.units import ContentUnit, Lecture
from courseware.enrollment.models import Course
from courseware.identity_access.domain import User


class CoursewareRepoProtocol(Protocol):
    """Persistence collaborator.

    Whole-record saves are last-writer-wins. Course membership changes go
    through `add_student_if_absent`/`remove_student`, which must be atomic so
    concurrent enrollments never duplicate or lose a member.
    """

    def find_course_by_id(self, course_id: str) -> Optional[Course]: ...

    def find_course_by_name(self, name: str) -> Optional[Course]: ...

    def list_courses(self) -> List[Course]: ...

    def save_course(self, course: Course) -> Course: ...

    def remove_course(self, course_id: str) -> bool: ...

    def find_user_by_id(self, user_id: str) -> Optional[User]: ...

    def list_users(self) -> List[User]: ...

    def save_user(self, user: User) -> User: ...

    def find_unit_by_id(self, unit_id: str) -> Optional[ContentUnit]: ...

    def save_unit(self, unit: ContentUnit) -> ContentUnit: ...

    def remove_unit(self, unit_id: str) -> bool: ...

    def find_lecture_by_id(self, lecture_id: str) -> Optional[Lecture]: ...

    def find_lecture_for_unit(self, unit_id: str) -> Optional[Lecture]: ...

    def save_lecture(self, lecture: Lecture) -> Lecture: ...

    def add_student_if_absent(self, course_id: str, user_id: str) -> bool:
        """Append `user_id` to the course's students unless present; True if added."""
        ...

    def remove_student(self, course_id: str, user_id: str) -> bool:
        """Remove every occurrence of `user_id`; True if anything was removed."""
        ...


__all__ = ["CoursewareRepoProtocol"]
