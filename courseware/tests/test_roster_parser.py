"""
Roster CSV parsing: header detection, normalization and per-row errors.
"""
from __future__ import annotations

import pytest

from courseware.enrollment.roster import ensure_csv_filename, parse_roster
from courseware.errors import ValidationError


def test_parses_rows_and_normalizes_names_but_not_uid():
    data = b"firstName,lastName,uid\n  Ada , LOVELACE ,  S1001 \nGrace,Hopper,s1002\n"

    result = parse_roster(data)

    assert result.errors == []
    assert [(r.first_name, r.last_name, r.uid) for r in result.rows] == [
        ("ada", "lovelace", "S1001"),
        ("grace", "hopper", "s1002"),
    ]
    assert [r.line for r in result.rows] == [2, 3]


def test_header_is_case_insensitive_and_order_independent_with_extra_columns():
    data = b"UID,Email,LASTNAME,first_name\ns1,ada@example.org,Lovelace,Ada\n"

    result = parse_roster(data)

    (row,) = result.rows
    assert (row.first_name, row.last_name, row.uid) == ("ada", "lovelace", "s1")
    assert row.extra == {"email": "ada@example.org"}


def test_missing_mandatory_header_rejects_whole_file():
    with pytest.raises(ValidationError) as exc:
        parse_roster(b"firstName,uid\nAda,s1\n")
    assert exc.value.code == "invalid_roster_header"
    assert "lastName" in exc.value.errors["header"]


def test_empty_file_is_invalid_header():
    with pytest.raises(ValidationError) as exc:
        parse_roster(b"\n\n")
    assert exc.value.code == "invalid_roster_header"


def test_header_only_yields_no_rows_and_no_errors():
    result = parse_roster(b"firstName,lastName,uid\n")
    assert result.rows == []
    assert result.errors == []


def test_malformed_rows_are_collected_with_line_numbers():
    data = (
        b"firstName,lastName,uid\n"
        b"Ada,Lovelace,s1\n"
        b"\n"
        b"Grace,Hopper\n"
        b"Alan,,s3\n"
        b"Edsger,Dijkstra,s4\n"
    )

    result = parse_roster(data)

    assert [r.uid for r in result.rows] == ["s1", "s4"]
    assert [(e.line, e.reason) for e in result.errors] == [
        (4, "expected 3 columns, got 2"),
        (5, "empty mandatory field: lastName"),
    ]
    # Every non-header, non-blank line is either a row or an error.
    assert len(result.rows) + len(result.errors) == 4


def test_utf8_bom_is_accepted():
    data = "\ufefffirstName,lastName,uid\nJürgen,Müller,s9\n".encode("utf-8")
    (row,) = parse_roster(data).rows
    assert (row.first_name, row.last_name) == ("jürgen", "müller")


def test_undecodable_bytes_raise_encoding_error():
    with pytest.raises(ValidationError) as exc:
        parse_roster(b"firstName,lastName,uid\n\xff\xfe\xfa,x,y\n")
    assert exc.value.code == "invalid_roster_encoding"


@pytest.mark.parametrize("name", ["roster.csv", "ROSTER.CSV", "dir/list.Csv"])
def test_csv_filenames_are_accepted(name):
    assert ensure_csv_filename(name).lower().endswith(".csv")


@pytest.mark.parametrize("name", ["roster.xlsx", "roster.csv.txt", "", None])
def test_non_csv_filenames_are_rejected(name):
    with pytest.raises(ValidationError) as exc:
        ensure_csv_filename(name)
    assert exc.value.code == "upload_not_csv"


def test_row_without_uid_is_reported_on_line_two():
    result = parse_roster(b"firstName,lastName,uid\nAda,Lovelace,\n")

    assert result.rows == []
    assert [e.line for e in result.errors] == [2]
    assert "uid" in result.errors[0].reason
