"""
Whitelist merge: additive classification, idempotence and account matching.
"""
from __future__ import annotations

from courseware.enrollment.roster import parse_roster
from courseware.enrollment.whitelist import (
    MATCHED,
    NAME_MISMATCH,
    UNREGISTERED,
    apply_plan,
    check_against_users,
    entry_matches_identity,
    merge,
)
from courseware.identity_access.domain import User
from courseware.tests.utils.factories import entry, student


def _rows(text: str):
    return parse_roster(text.encode("utf-8")).rows


def test_new_changed_and_unchanged_rows_are_classified():
    existing = [entry("Ada", "Lovelace", "s1", email="ada@old.org"), entry("Grace", "Hopper", "s2", email="")]
    rows = _rows(
        "firstName,lastName,uid,email\n"
        "Ada,Lovelace,s1,ada@new.org\n"
        "Grace,Hopper,s2,\n"
        "Alan,Turing,s3,alan@example.org\n"
    )

    plan = merge(existing, rows)

    assert [e.uid for e in plan.to_insert] == ["s3"]
    assert [e.uid for e in plan.to_update] == ["s1"]
    assert [e.uid for e in plan.unchanged] == ["s2"]


def test_merge_never_removes_entries_missing_from_upload():
    existing = [entry("Ada", "Lovelace", "s1"), entry("Grace", "Hopper", "s2")]
    plan = merge(existing, _rows("firstName,lastName,uid\nAlan,Turing,s3\n"))

    merged = apply_plan(existing, plan)

    assert [e.uid for e in merged] == ["s1", "s2", "s3"]


def test_reapplying_same_upload_is_idempotent():
    rows = _rows("firstName,lastName,uid,email\nAda,Lovelace,s1,a@x\nAlan,Turing,s3,t@x\n")
    first = apply_plan([], merge([], rows))

    second_plan = merge(first, rows)

    assert not second_plan.changed
    assert second_plan.counts() == {"inserted": 0, "updated": 0, "unchanged": 2}
    assert apply_plan(first, second_plan) == first


def test_duplicate_keys_in_one_upload_collapse_to_last_row():
    rows = _rows(
        "firstName,lastName,uid,note\n"
        "Ada,Lovelace,s1,first\n"
        "ADA,lovelace,s1,second\n"
    )

    plan = merge([], rows)

    assert len(plan.to_insert) == 1
    assert plan.to_insert[0].extra == {"note": "second"}


def test_update_replaces_entry_in_place():
    existing = [entry("Ada", "Lovelace", "s1", email="old"), entry("Grace", "Hopper", "s2")]
    plan = merge(existing, _rows("firstName,lastName,uid,email\nAda,Lovelace,s1,new\n"))

    merged = apply_plan(existing, plan)

    assert [e.uid for e in merged] == ["s1", "s2"]
    assert merged[0].extra == {"email": "new"}


def test_uid_is_case_sensitive_for_matching():
    existing = [entry("Ada", "Lovelace", "S1")]
    plan = merge(existing, _rows("firstName,lastName,uid\nAda,Lovelace,s1\n"))
    assert [e.uid for e in plan.to_insert] == ["s1"]


def test_check_against_users_reports_match_status():
    users = [
        User(id="u1", uid="s1", first_name="Ada", last_name="Lovelace"),
        User(id="u2", uid="s2", first_name="Grace", last_name="Brewster"),
    ]
    rows = _rows(
        "firstName,lastName,uid\n"
        "ADA,lovelace,s1\n"
        "Grace,Hopper,s2\n"
        "Alan,Turing,s3\n"
    )

    matches = check_against_users(rows, users)

    assert [(m.row.uid, m.match_status, m.user_id) for m in matches] == [
        ("s1", MATCHED, "u1"),
        ("s2", NAME_MISMATCH, "u2"),
        ("s3", UNREGISTERED, None),
    ]
    assert matches[0].to_dict()["match_status"] == MATCHED


def test_identity_matching_normalizes_both_sides():
    stored = entry("  ada ", "LOVELACE", " s1001 ")
    assert entry_matches_identity(stored, student(first="Ada", last="Lovelace", uid="s1001"))
    assert not entry_matches_identity(stored, student(first="Ada", last="Lovelace", uid="S1001"))
