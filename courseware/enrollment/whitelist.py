"""
Whitelist reconciliation between roster rows, stored entries and accounts.

Why:
    Imports are additive: a partial upload must never silently revoke access
    from students missing from that particular file. The merge therefore only
    classifies rows as insert/update/unchanged; removals are a separate,
    explicit administrative action.

Matching key:
    The normalized (first name, last name, uid) triple. Names compare
    lower-cased, uids compare exactly. The same normalization applies to
    stored entries, roster rows and user accounts.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from courseware.enrollment.models import WhitelistEntry
from courseware.enrollment.roster import RosterRow
from courseware.identity_access.domain import Identity, IdentityKey, User, identity_key, normalize_uid

MATCHED = "matched"
NAME_MISMATCH = "name_mismatch"
UNREGISTERED = "unregistered"


@dataclass
class MergePlan:
    to_insert: List[WhitelistEntry] = field(default_factory=list)
    to_update: List[WhitelistEntry] = field(default_factory=list)
    unchanged: List[WhitelistEntry] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.to_insert or self.to_update)

    def counts(self) -> Dict[str, int]:
        return {
            "inserted": len(self.to_insert),
            "updated": len(self.to_update),
            "unchanged": len(self.unchanged),
        }


@dataclass(frozen=True)
class RowMatch:
    row: RosterRow
    match_status: str
    user_id: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.match_status == MATCHED

    def to_dict(self) -> dict:
        data = self.row.to_dict()
        data["match_status"] = self.match_status
        data["user_id"] = self.user_id
        return data


def _entry_from_row(row: RosterRow) -> WhitelistEntry:
    return WhitelistEntry.create(row.first_name, row.last_name, row.uid, row.extra)


def merge(existing: Sequence[WhitelistEntry], rows: Iterable[RosterRow]) -> MergePlan:
    """Classify roster rows against stored entries (pure function).

    Rows sharing a key within one upload collapse to the last occurrence.
    """
    stored: Dict[IdentityKey, WhitelistEntry] = {e.key: e for e in existing}
    incoming: Dict[IdentityKey, WhitelistEntry] = {}
    for row in rows:
        entry = _entry_from_row(row)
        incoming.pop(entry.key, None)
        incoming[entry.key] = entry
    plan = MergePlan()
    for key, entry in incoming.items():
        current = stored.get(key)
        if current is None:
            plan.to_insert.append(entry)
        elif current.extra != entry.extra:
            plan.to_update.append(entry)
        else:
            plan.unchanged.append(current)
    return plan


def apply_plan(existing: Sequence[WhitelistEntry], plan: MergePlan) -> List[WhitelistEntry]:
    """Return the merged whitelist: stored order kept, inserts appended."""
    updates = {e.key: e for e in plan.to_update}
    merged = [updates.get(e.key, e) for e in existing]
    known = {e.key for e in merged}
    for entry in plan.to_insert:
        if entry.key not in known:
            merged.append(entry)
            known.add(entry.key)
    return merged


def check_against_users(rows: Iterable[RosterRow], users: Iterable[User]) -> List[RowMatch]:
    """Annotate rows with whether a registered account has the same identity.

    `name_mismatch` flags rows whose uid belongs to an account registered
    under different names; such rows will not resolve during enrollment.
    Nothing is persisted.
    """
    by_key: Dict[IdentityKey, User] = {}
    by_uid: Dict[str, User] = {}
    for user in users:
        by_key.setdefault(user.key, user)
        by_uid.setdefault(normalize_uid(user.uid), user)
    result: List[RowMatch] = []
    for row in rows:
        hit = by_key.get(row.key)
        if hit is not None:
            result.append(RowMatch(row, MATCHED, hit.id))
        elif row.uid in by_uid:
            result.append(RowMatch(row, NAME_MISMATCH, by_uid[row.uid].id))
        else:
            result.append(RowMatch(row, UNREGISTERED))
    return result


def entry_matches_identity(entry: WhitelistEntry, identity: Identity) -> bool:
    return identity_key(entry.first_name, entry.last_name, entry.uid) == identity.key


def find_entry(entries: Iterable[WhitelistEntry], identity: Identity) -> Optional[WhitelistEntry]:
    for entry in entries:
        if entry_matches_identity(entry, identity):
            return entry
    return None


__all__ = [
    "MATCHED",
    "MergePlan",
    "NAME_MISMATCH",
    "RowMatch",
    "UNREGISTERED",
    "apply_plan",
    "check_against_users",
    "entry_matches_identity",
    "find_entry",
    "merge",
]
