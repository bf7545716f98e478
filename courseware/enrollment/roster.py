"""
Roster CSV parsing for whitelist imports.

Why:
    Course staff upload spreadsheets exported from the institution's student
    records. The parser turns them into normalized candidate rows while
    collecting per-line problems, so one bad line never discards a whole
    class list.

Behavior:
    - The first non-blank line is the header. It must name firstName,
      lastName and uid (case-insensitive, any order, `first_name` spellings
      accepted); other columns are carried along as `extra`.
    - Each following non-blank line yields either a RosterRow or a RowError
      with its 1-based source line number.
    - Names are trimmed and lower-cased; uids are trimmed with case preserved.
"""
from __future__ import annotations

import csv
import io
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from courseware.errors import RowError, ValidationError
from courseware.identity_access.domain import IdentityKey, identity_key

_REQUIRED = {"firstname": "firstName", "lastname": "lastName", "uid": "uid"}


@dataclass(frozen=True)
class RosterRow:
    line: int
    first_name: str
    last_name: str
    uid: str
    extra: Dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> IdentityKey:
        return (self.first_name, self.last_name, self.uid)

    def to_dict(self) -> dict:
        return {
            "line": self.line,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "uid": self.uid,
            "extra": dict(self.extra),
        }


@dataclass
class RosterParseResult:
    rows: List[RosterRow] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)


def ensure_csv_filename(filename: Optional[str]) -> str:
    """Reject uploads whose name does not end in `.csv` before any parsing."""
    base = os.path.basename((filename or "").strip())
    if not base.lower().endswith(".csv"):
        raise ValidationError("upload_not_csv", {"file": "only .csv files are accepted"})
    return base


def _canonical_header(name: str) -> str:
    return name.strip().lower().replace("_", "").replace(" ", "")


def _is_blank(cells: List[str]) -> bool:
    return all(not (c or "").strip() for c in cells)


def _records(reader):
    # line_num is the source line where the record ends (1-based).
    try:
        for cells in reader:
            yield reader.line_num, cells
    except csv.Error as exc:
        raise ValidationError("invalid_roster_format", {"file": f"line {reader.line_num}: {exc}"}) from exc


def parse_roster(data: bytes, *, encoding: str = "utf-8-sig") -> RosterParseResult:
    """Parse roster bytes into normalized rows and collected row errors.

    Raises:
        ValidationError: `invalid_roster_encoding` when the bytes cannot be
            decoded, `invalid_roster_header` when no usable header exists.
    """
    try:
        text = data.decode(encoding)
    except UnicodeDecodeError as exc:
        raise ValidationError("invalid_roster_encoding", {"file": f"not valid {encoding} text"}) from exc

    reader = csv.reader(io.StringIO(text, newline=""))
    result = RosterParseResult()
    header: Optional[List[str]] = None
    positions: Dict[str, int] = {}

    for line, cells in _records(reader):
        if _is_blank(cells):
            continue
        if header is None:
            header = [_canonical_header(c) for c in cells]
            for idx, name in enumerate(header):
                positions.setdefault(name, idx)
            missing = [label for canon, label in _REQUIRED.items() if canon not in positions]
            if missing:
                raise ValidationError(
                    "invalid_roster_header",
                    {"header": "missing column(s): " + ", ".join(missing)},
                )
            continue
        if len(cells) != len(header):
            result.errors.append(RowError(line, f"expected {len(header)} columns, got {len(cells)}"))
            continue
        empty = [label for canon, label in _REQUIRED.items() if not cells[positions[canon]].strip()]
        if empty:
            result.errors.append(RowError(line, "empty mandatory field: " + ", ".join(empty)))
            continue
        first, last, uid = identity_key(
            cells[positions["firstname"]],
            cells[positions["lastname"]],
            cells[positions["uid"]],
        )
        extra = {
            name: cells[idx].strip()
            for idx, name in enumerate(header)
            if name and name not in _REQUIRED and positions.get(name) == idx
        }
        result.rows.append(RosterRow(line=line, first_name=first, last_name=last, uid=uid, extra=extra))

    if header is None:
        raise ValidationError("invalid_roster_header", {"header": "file is empty"})
    return result


__all__ = ["RosterParseResult", "RosterRow", "ensure_csv_filename", "parse_roster"]
