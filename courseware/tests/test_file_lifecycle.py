"""
FileAssetLifecycle and LocalFileStore: naming, limits and best-effort cleanup.
"""
from __future__ import annotations

import re
from pathlib import Path

import pytest

from courseware.content.files import FileAssetLifecycle, FileSettings, UploadedFile
from courseware.content.units import FilePayload, FileRecord
from courseware.errors import ValidationError
from courseware.storage.keys import make_storage_name, sanitize_extension
from courseware.storage.local import LocalFileStore
from courseware.tests.utils.factories import RecordingStore


def _record(name: str) -> FileRecord:
    return FileRecord(path=f"uploads/{name}", name=name, alias=name, size=1)


def test_attach_writes_file_with_random_name_and_lowercased_extension():
    store = RecordingStore()
    lifecycle = FileAssetLifecycle(store, FileSettings(upload_dir=Path("uploads"), max_size_bytes=100))

    payload = lifecycle.attach(FilePayload(file_unit_type="file"), UploadedFile("Slides.PDF", b"%PDF"))

    (record,) = payload.files
    assert re.fullmatch(r"[0-9a-f]{32}\.pdf", record.name)
    assert record.alias == "Slides.PDF"
    assert record.size == 4
    assert record.path == f"uploads/{record.name}"
    assert store.files[record.name] == b"%PDF"


def test_attach_appends_to_existing_files():
    lifecycle = FileAssetLifecycle(RecordingStore())
    payload = FilePayload(file_unit_type="file", files=(_record("a.pdf"),))
    payload = lifecycle.attach(payload, UploadedFile("b.txt", b"x"))
    assert [f.alias for f in payload.files] == ["a.pdf", "b.txt"]


@pytest.mark.parametrize("data, code", [(b"", "empty_file"), (b"x" * 11, "size_exceeded")])
def test_attach_rejects_before_writing(data, code):
    store = RecordingStore()
    lifecycle = FileAssetLifecycle(store, FileSettings(max_size_bytes=10))
    with pytest.raises(ValidationError) as exc:
        lifecycle.attach(FilePayload(file_unit_type="file"), UploadedFile("a.bin", data))
    assert exc.value.code == code
    assert store.files == {}


def test_release_replaced_deletes_only_dropped_files_once():
    store = RecordingStore()
    lifecycle = FileAssetLifecycle(store)

    report = lifecycle.release_replaced([_record("a"), _record("b")], [_record("b")])

    assert store.deleted == ["a"]
    assert report.attempted == 1


def test_release_all_attempts_every_file():
    store = RecordingStore()
    lifecycle = FileAssetLifecycle(store)

    report = lifecycle.release_all([_record("a"), _record("b"), _record("c")])

    assert store.deleted == ["a", "b", "c"]
    assert report.attempted == 3


def test_cleanup_failures_are_reported_not_raised():
    store = RecordingStore(fail_deletes={"a"}, raise_deletes={"b"})
    store.files["c"] = b"1"
    lifecycle = FileAssetLifecycle(store)

    report = lifecycle.release_all([_record("a"), _record("b"), _record("c")])

    assert report.attempted == 3
    assert report.failed == ["a", "b"]
    assert report.deleted == 1


def test_storage_name_extension_is_sanitized():
    assert sanitize_extension("report.Tar.GZ") == ".gz"
    assert sanitize_extension("noext") == ""
    assert sanitize_extension("weird.p$d#f") == ".pdf"
    assert make_storage_name("x.PNG", token_hex="abc") == "abc.png"


def test_local_store_writes_and_deletes_under_root(tmp_path):
    store = LocalFileStore(tmp_path / "uploads")

    stored = store.write_file(name="abc.pdf", body=b"data")

    assert (tmp_path / "uploads" / "abc.pdf").read_bytes() == b"data"
    assert stored.size == 4
    assert store.exists("abc.pdf")
    assert store.delete_file("abc.pdf") is True
    assert not store.exists("abc.pdf")
    assert store.delete_file("abc.pdf") is False


@pytest.mark.parametrize("name", ["../escape.txt", "sub/dir.txt", "..", ""])
def test_local_store_refuses_names_outside_root(tmp_path, name):
    outside = tmp_path / "escape.txt"
    outside.write_bytes(b"keep")
    store = LocalFileStore(tmp_path / "uploads")

    assert store.delete_file(name) is False
    assert outside.exists()
    assert store.exists(name) is False
    with pytest.raises(ValueError):
        store.write_file(name=name, body=b"x")
