"""
Content unit use cases: create, replace, remove and read.

Ordering guarantees:
    - create: files are written first, then the record is saved and linked
      to its lecture. If saving or linking fails, files written by this call
      are released and the error propagates.
    - replace: the record is saved first; files dropped from the list are
      released afterwards.
    - remove: the unit is unlinked from its lecture first (a failure aborts
      the whole removal), then the record is deleted, then owned files are
      released.
File release is best-effort and reported through `CleanupReport`; it never
fails the record change that triggered it.
Files enter a unit only through an upload; a `files` list sent by a client
can keep or drop records the unit already owns, never add new ones.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace as dc_replace
from typing import Any, Mapping, Optional

from courseware.content.files import CleanupReport, FileAssetLifecycle, UploadedFile
from courseware.content.units import (
    CODE_KATA,
    ContentUnit,
    FilePayload,
    build_unit,
    merge_unit,
    unit_to_dict,
)
from courseware.errors import ForbiddenError, NotFoundError, ValidationError
from courseware.identity_access.domain import Identity
from courseware.persistence.ports import CoursewareRepoProtocol

logger = logging.getLogger("courseware.content")


@dataclass(frozen=True)
class UnitReplacement:
    unit: ContentUnit
    cleanup: CleanupReport = field(default_factory=CleanupReport)


@dataclass(frozen=True)
class UnitRemoval:
    unit_id: str
    cleanup: CleanupReport = field(default_factory=CleanupReport)


def _ensure_author(actor: Identity) -> None:
    if not actor.has_role("teacher", "admin"):
        raise ForbiddenError("forbidden")


@dataclass
class ContentUnitService:
    """Encapsulate content unit use cases independent of web adapters."""

    repo: CoursewareRepoProtocol
    files: FileAssetLifecycle

    def _unit(self, unit_id: str) -> ContentUnit:
        unit = self.repo.find_unit_by_id(unit_id)
        if unit is None:
            raise NotFoundError("unit_not_found")
        return unit

    def _attach(self, unit: ContentUnit, upload: Optional[UploadedFile]) -> ContentUnit:
        if upload is None:
            return unit
        if not isinstance(unit.payload, FilePayload):
            raise ValidationError("upload_not_allowed", {"file": "only file units accept uploads"})
        return dc_replace(unit, payload=self.files.attach(unit.payload, upload))

    @staticmethod
    def _keep_owned_files(owned, unit: ContentUnit) -> ContentUnit:
        """Resolve the unit's file list against the records it already owns.

        Files only enter a unit through an upload, so every listed record must
        name a file in `owned`; the stored record replaces the incoming one.
        """
        if not isinstance(unit.payload, FilePayload):
            return unit
        by_name = {f.name: f for f in owned}
        errors = {}
        kept = []
        seen = set()
        for idx, record in enumerate(unit.payload.files):
            stored = by_name.get(record.name)
            if stored is None:
                errors[f"files.{idx}"] = "unknown file"
            elif record.name in seen:
                errors[f"files.{idx}"] = "duplicate file"
            else:
                seen.add(record.name)
                kept.append(stored)
        if errors:
            raise ValidationError("invalid_unit", errors)
        return dc_replace(unit, payload=dc_replace(unit.payload, files=tuple(kept)))

    def _release_new(self, before: ContentUnit, after: ContentUnit) -> None:
        old = before.files
        report = self.files.release_all([f for f in after.files if f not in old])
        if report.attempted:
            logger.info("Released files after failed write unit=%s attempted=%s", after.id[-6:], report.attempted)

    def create(
        self,
        fields: Mapping[str, Any],
        *,
        lecture_id: str,
        actor: Identity,
        upload: Optional[UploadedFile] = None,
    ) -> ContentUnit:
        """Create a unit and append it to `lecture_id`.

        Raises:
            ForbiddenError: actor is neither teacher nor admin.
            ValidationError: invalid type or fields, or the lecture belongs
                to another course.
            NotFoundError: lecture or course does not exist.
        """
        _ensure_author(actor)
        if not isinstance(lecture_id, str) or not lecture_id.strip():
            raise ValidationError("invalid_unit", {"lecture_id": "required"})
        unit = self._keep_owned_files((), build_unit(fields))
        lecture = self.repo.find_lecture_by_id(lecture_id)
        if lecture is None:
            raise NotFoundError("lecture_not_found")
        if self.repo.find_course_by_id(unit.course_id) is None:
            raise NotFoundError("course_not_found")
        if lecture.course_id and lecture.course_id != unit.course_id:
            raise ValidationError("invalid_unit", {"lecture_id": "lecture belongs to another course"})
        built = unit
        unit = self._attach(built, upload)
        saved = None
        try:
            saved = self.repo.save_unit(unit)
            lecture.units.append(saved.id)
            self.repo.save_lecture(lecture)
        except Exception:
            self._release_new(built, unit)
            if saved is not None:
                try:
                    self.repo.remove_unit(saved.id)
                except Exception:
                    logger.warning("Unit rollback failed unit=%s", saved.id[-6:], exc_info=True)
            raise
        logger.info("Unit created unit=%s type=%s by=%s", saved.id[-6:], saved.type, actor.id[-6:])
        return saved

    def replace(
        self,
        unit_id: str,
        fields: Mapping[str, Any],
        *,
        actor: Identity,
        upload: Optional[UploadedFile] = None,
    ) -> UnitReplacement:
        """Merge present fields into the stored unit and save it.

        Absent keys keep their value; `id` and `type` are immutable. Files
        dropped from a file unit's list are released after the save.
        """
        _ensure_author(actor)
        current = self._unit(unit_id)
        merged = self._keep_owned_files(current.files, merge_unit(current, fields))
        updated = self._attach(merged, upload)
        try:
            saved = self.repo.save_unit(updated)
        except Exception:
            self._release_new(current, updated)
            raise
        cleanup = self.files.release_replaced(current.files, saved.files)
        return UnitReplacement(unit=saved, cleanup=cleanup)

    def remove(self, unit_id: str, *, actor: Identity) -> UnitRemoval:
        _ensure_author(actor)
        unit = self._unit(unit_id)
        lecture = self.repo.find_lecture_for_unit(unit.id)
        if lecture is not None:
            lecture.units = [u for u in lecture.units if u != unit.id]
            self.repo.save_lecture(lecture)
        self.repo.remove_unit(unit.id)
        cleanup = self.files.release_all(unit.files)
        logger.info(
            "Unit removed unit=%s by=%s files=%s failed=%s",
            unit.id[-6:],
            actor.id[-6:],
            cleanup.attempted,
            len(cleanup.failed),
        )
        return UnitRemoval(unit_id=unit.id, cleanup=cleanup)

    def get(self, unit_id: str, viewer: Identity) -> dict:
        return self.project_unit(self._unit(unit_id), viewer)

    @staticmethod
    def project_unit(unit: ContentUnit, viewer: Identity) -> dict:
        """Serialize a unit; students never see a code kata's solution code."""
        data = unit_to_dict(unit)
        if unit.type == CODE_KATA and viewer.has_role("student"):
            data["code"] = None
        return data


__all__ = ["ContentUnitService", "UnitRemoval", "UnitReplacement"]
