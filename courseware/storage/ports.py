"""
Storage ports used by the content services.

Keep these small and framework-agnostic so tests can supply simple fakes.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class StoredFile:
    """Result of a successful write: the relative path and the byte count."""

    path: str
    size: int


class BinaryStoreProtocol(Protocol):
    """Minimal interface to write and delete binary objects by storage name.

    Intent:
        Let the file lifecycle persist uploads without depending on a specific
        filesystem layout or cloud SDK.

    Contract:
        - `write_file` raises on failure; callers treat that as fatal.
        - `delete_file` returns False (or raises) on failure; callers fold both
          into a cleanup report and never propagate.
    """

    def write_file(self, *, name: str, body: bytes) -> StoredFile: ...

    def delete_file(self, name: str) -> bool: ...


__all__ = ["BinaryStoreProtocol", "StoredFile"]
