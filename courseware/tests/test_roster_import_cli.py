"""
Roster import CLI: dry run, persistence and error reporting.
"""
from __future__ import annotations

from click.testing import CliRunner

from courseware.persistence.memory import InMemoryRepo
from courseware.tests.utils.factories import entry, seed_course
from courseware.tools import roster_import


def _write(tmp_path, name="class.csv", text="firstName,lastName,uid\nAda,Lovelace,s1\nGrace,Hopper,s2\nbad\n"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def _patch_repo(monkeypatch, repo):
    captured = {}

    def _build(dsn):
        captured["dsn"] = dsn
        return repo

    monkeypatch.setattr(roster_import, "_build_repo", _build)
    return captured


def test_import_persists_and_reports_counts(tmp_path, monkeypatch):
    repo = InMemoryRepo()
    course = seed_course(repo, enroll_type="whitelist", whitelist=[entry("Ada", "Lovelace", "s1")])
    captured = _patch_repo(monkeypatch, repo)

    result = CliRunner().invoke(
        roster_import.cli,
        ["--course-id", course.id, "--roster", str(_write(tmp_path)), "--db-dsn", "postgresql://x"],
    )

    assert result.exit_code == 0, result.output
    assert "inserted=1, updated=0, unchanged=1, row_errors=1" in result.output
    assert "line 4: expected 3 columns, got 1" in result.output
    assert captured["dsn"] == "postgresql://x"
    assert [e.uid for e in repo.find_course_by_id(course.id).whitelist] == ["s1", "s2"]


def test_dry_run_does_not_persist(tmp_path, monkeypatch):
    repo = InMemoryRepo()
    course = seed_course(repo)
    _patch_repo(monkeypatch, repo)

    result = CliRunner().invoke(
        roster_import.cli,
        ["--course-id", course.id, "--roster", str(_write(tmp_path)), "--db-dsn", "postgresql://x", "--dry-run"],
    )

    assert result.exit_code == 0, result.output
    assert "Dry run: inserted=2" in result.output
    assert repo.find_course_by_id(course.id).whitelist == []


def test_dsn_falls_back_to_environment(tmp_path, monkeypatch):
    repo = InMemoryRepo()
    course = seed_course(repo)
    captured = _patch_repo(monkeypatch, repo)
    monkeypatch.setenv("COURSEWARE_DATABASE_URL", "postgresql://from-env")

    result = CliRunner().invoke(roster_import.cli, ["--course-id", course.id, "--roster", str(_write(tmp_path))])

    assert result.exit_code == 0, result.output
    assert captured["dsn"] == "postgresql://from-env"


def test_missing_dsn_is_an_error(tmp_path, monkeypatch):
    monkeypatch.delenv("COURSEWARE_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    result = CliRunner().invoke(roster_import.cli, ["--course-id", "c", "--roster", str(_write(tmp_path))])
    assert result.exit_code != 0
    assert "--db-dsn" in result.output


def test_unknown_course_and_bad_header_fail(tmp_path, monkeypatch):
    repo = InMemoryRepo()
    course = seed_course(repo)
    _patch_repo(monkeypatch, repo)
    runner = CliRunner()

    missing = runner.invoke(
        roster_import.cli,
        ["--course-id", "missing", "--roster", str(_write(tmp_path)), "--db-dsn", "postgresql://x"],
    )
    bad = runner.invoke(
        roster_import.cli,
        ["--course-id", course.id, "--roster", str(_write(tmp_path, text="name,uid\nAda,s1\n")), "--db-dsn", "postgresql://x"],
    )
    not_csv = runner.invoke(
        roster_import.cli,
        ["--course-id", course.id, "--roster", str(_write(tmp_path, name="class.txt")), "--db-dsn", "postgresql://x"],
    )

    assert missing.exit_code != 0 and "Course not found" in missing.output
    assert bad.exit_code != 0 and "invalid_roster_header" in bad.output
    assert not_csv.exit_code != 0 and "upload_not_csv" in not_csv.output
