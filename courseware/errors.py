"""
Error taxonomy shared by the enrollment and content services.

Why:
    Services raise the built-in exception families (LookupError, ValueError,
    PermissionError) so thin adapters can map them to status codes without
    importing domain modules. The subclasses below add the machine-readable
    `code`/`reason` and the per-field messages callers need.

Mapping used by the web adapter:
    NotFoundError -> 404, ForbiddenError -> 403, ValidationError -> 400,
    PersistenceError -> 503.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional


class NotFoundError(LookupError):
    """A referenced course, unit, lecture or user does not exist."""

    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.code = code


class ValidationError(ValueError):
    """Malformed or missing fields; carries one message per offending field."""

    def __init__(self, code: str, errors: Optional[Mapping[str, str]] = None) -> None:
        super().__init__(code)
        self.code = code
        self.errors: Dict[str, str] = dict(errors or {})

    def to_dict(self) -> dict:
        return {"error": "validation_error", "detail": self.code, "errors": dict(self.errors)}


class ForbiddenError(PermissionError):
    """Authorization or enrollment-policy rejection."""

    def __init__(self, reason: str = "forbidden", *, decision: object = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.decision = decision


class PersistenceError(RuntimeError):
    """Storage backend failure, wrapped at the repository boundary."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"persistence_failed:{operation}")
        self.operation = operation
        self.cause = cause


@dataclass(frozen=True)
class RowError:
    """Non-fatal roster parse error, collected instead of raised."""

    line: int
    reason: str

    def to_dict(self) -> dict:
        return {"line": self.line, "reason": self.reason}


__all__ = [
    "ForbiddenError",
    "NotFoundError",
    "PersistenceError",
    "RowError",
    "ValidationError",
]
