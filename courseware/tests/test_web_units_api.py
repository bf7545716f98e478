"""
Units API: JSON documents, raw-body file uploads and removal cleanup.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from courseware.tests.utils.factories import seed_course, seed_lecture, student, teacher
from courseware.web import deps, main

pytestmark = pytest.mark.anyio("asyncio")


def _client(identity) -> httpx.AsyncClient:
    client = httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test")
    sess = main.SESSION_STORE.create(identity=identity)
    client.cookies.set(main.SESSION_COOKIE_NAME, sess.session_id)
    return client


def _seed():
    repo = deps.get_repo()
    course = seed_course(repo)
    return course, seed_lecture(repo, course)


async def test_create_get_and_replace_unit():
    course, lecture = _seed()
    model = {"type": "code-kata", "name": "Kata", "course_id": course.id, "definition": "d", "code": "sol", "test": "t"}
    async with _client(teacher()) as client:
        created = await client.post("/api/units", json={"lecture_id": lecture.id, "model": model})
        unit_id = created.json()["id"]
        replaced = await client.put(f"/api/units/{unit_id}", json={"name": "Kata 2"})
    assert created.status_code == 201
    assert replaced.status_code == 200
    assert replaced.json()["name"] == "Kata 2"
    assert replaced.json()["code"] == "sol"

    async with _client(student()) as client:
        fetched = await client.get(f"/api/units/{unit_id}")
    assert fetched.status_code == 200
    assert fetched.json()["code"] is None


async def test_invalid_unit_returns_field_errors():
    course, lecture = _seed()
    async with _client(teacher()) as client:
        r = await client.post(
            "/api/units",
            json={"lecture_id": lecture.id, "model": {"type": "free-text", "course_id": course.id}},
        )
    assert r.status_code == 400
    assert set(r.json()["errors"]) == {"name", "text"}


async def test_students_cannot_create_units():
    course, lecture = _seed()
    async with _client(student()) as client:
        r = await client.post(
            "/api/units",
            json={"lecture_id": lecture.id, "model": {"type": "free-text", "name": "x", "course_id": course.id, "text": "t"}},
        )
    assert r.status_code == 403


async def test_upload_file_then_delete_unit_removes_file(tmp_path):
    course, lecture = _seed()
    model = {"type": "file", "name": "Slides", "course_id": course.id, "file_unit_type": "file"}
    async with _client(teacher()) as client:
        created = await client.post("/api/units", json={"lecture_id": lecture.id, "model": model})
        unit_id = created.json()["id"]
        uploaded = await client.post(
            f"/api/units/{unit_id}/files",
            params={"filename": "Slides.PDF"},
            content=b"%PDF-1.4",
        )
        (record,) = uploaded.json()["files"]
        stored = tmp_path / "uploads" / record["name"]
        assert stored.read_bytes() == b"%PDF-1.4"

        deleted = await client.delete(f"/api/units/{unit_id}")
        missing = await client.get(f"/api/units/{unit_id}")

    assert uploaded.status_code == 201
    assert record["alias"] == "Slides.PDF"
    assert record["name"].endswith(".pdf")
    assert deleted.json() == {"result": True, "files": {"attempted": 1, "deleted": 1, "failed": []}}
    assert not stored.exists()
    assert missing.status_code == 404


async def test_upload_to_non_file_unit_is_rejected():
    course, lecture = _seed()
    model = {"type": "free-text", "name": "x", "course_id": course.id, "text": "t"}
    async with _client(teacher()) as client:
        created = await client.post("/api/units", json={"lecture_id": lecture.id, "model": model})
        r = await client.post(f"/api/units/{created.json()['id']}/files", params={"filename": "a.pdf"}, content=b"1")
    assert r.status_code == 400
    assert r.json()["detail"] == "upload_not_allowed"


async def test_empty_upload_is_rejected():
    course, lecture = _seed()
    model = {"type": "file", "name": "Slides", "course_id": course.id, "file_unit_type": "video"}
    async with _client(teacher()) as client:
        created = await client.post("/api/units", json={"lecture_id": lecture.id, "model": model})
        r = await client.post(f"/api/units/{created.json()['id']}/files", params={"filename": "a.mp4"}, content=b"")
    assert r.status_code == 400
    assert r.json()["detail"] == "empty_file"


async def test_unknown_lecture_is_404():
    course, _ = _seed()
    model = {"type": "free-text", "name": "x", "course_id": course.id, "text": "t"}
    async with _client(teacher()) as client:
        r = await client.post("/api/units", json={"lecture_id": "missing", "model": model})
    assert r.status_code == 404
    assert r.json()["detail"] == "lecture_not_found"
