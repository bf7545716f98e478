"""
File asset lifecycle for `file` units.

Why:
    A file unit owns the binaries listed in its `files`. Writing happens before
    the unit record is saved; deleting happens after the record no longer
    references the file. Cleanup is best-effort: a missing or undeletable file
    is reported and logged, never raised, so it cannot fail the record change
    that triggered it.

Naming:
    Stored files get an unguessable name (`secrets.token_hex(16)` plus the
    lower-cased original extension). The original filename survives as the
    record's `alias`. Deletes address files by that storage `name`, resolved
    against the store's configured root; the recorded `path` is informational.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterable, List, Sequence

from courseware.content.units import FilePayload, FileRecord
from courseware.errors import ValidationError
from courseware.storage.keys import make_storage_name
from courseware.storage.ports import BinaryStoreProtocol

logger = logging.getLogger("courseware.content")


@dataclass
class FileSettings:
    """Configuration for unit file uploads."""

    upload_dir: Path = Path("uploads")
    max_size_bytes: int = 50 * 1024 * 1024


@dataclass(frozen=True)
class UploadedFile:
    """Raw upload as received by an adapter."""

    filename: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class CleanupReport:
    attempted: int = 0
    failed: List[str] = field(default_factory=list)

    @property
    def deleted(self) -> int:
        return self.attempted - len(self.failed)

    def merge(self, other: "CleanupReport") -> "CleanupReport":
        return CleanupReport(self.attempted + other.attempted, self.failed + other.failed)

    def to_dict(self) -> dict:
        return {"attempted": self.attempted, "deleted": self.deleted, "failed": list(self.failed)}


class FileAssetLifecycle:
    """Write and release the files owned by file units."""

    def __init__(self, store: BinaryStoreProtocol, settings: FileSettings | None = None):
        self._store = store
        self._settings = settings or FileSettings()

    @property
    def settings(self) -> FileSettings:
        return self._settings

    def attach(self, payload: FilePayload, upload: UploadedFile) -> FilePayload:
        """Store `upload` and return the payload with its record appended.

        Raises:
            ValidationError: `empty_file` or `size_exceeded` before anything is
                written.
        """
        size = upload.size
        if size <= 0:
            raise ValidationError("empty_file", {"file": "uploaded file is empty"})
        if size > self._settings.max_size_bytes:
            raise ValidationError(
                "size_exceeded",
                {"file": f"file exceeds {self._settings.max_size_bytes} bytes"},
            )
        name = make_storage_name(upload.filename)
        stored = self._store.write_file(name=name, body=upload.data)
        record = FileRecord(
            path=(self._settings.upload_dir / stored.path).as_posix(),
            name=name,
            alias=upload.filename or name,
            size=stored.size,
        )
        logger.info("Stored unit file name=%s size=%s", name, stored.size)
        return replace(payload, files=tuple(payload.files) + (record,))

    def release_replaced(self, old_files: Sequence[FileRecord], new_files: Sequence[FileRecord]) -> CleanupReport:
        """Delete every old file whose storage name is absent from the new list."""
        keep = {f.name for f in new_files}
        return self._release(f for f in old_files if f.name not in keep)

    def release_all(self, files: Sequence[FileRecord]) -> CleanupReport:
        return self._release(files)

    def _release(self, files: Iterable[FileRecord]) -> CleanupReport:
        report = CleanupReport()
        for record in files:
            report.attempted += 1
            try:
                ok = self._store.delete_file(record.name)
            except Exception as exc:
                logger.warning("File cleanup raised name=%s error=%s", record.name, type(exc).__name__)
                ok = False
            if not ok:
                report.failed.append(record.name)
        if report.failed:
            logger.warning("File cleanup incomplete attempted=%s failed=%s", report.attempted, len(report.failed))
        return report


__all__ = ["CleanupReport", "FileAssetLifecycle", "FileSettings", "UploadedFile"]
