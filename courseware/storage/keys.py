"""
Helpers to generate storage names for uploaded unit files.

Why:
    Storage names must be unguessable and safe to join onto the upload root,
    while keeping the original extension so served files retain their type.

Conventions:
    - Storage name: {32 hex chars}{.ext}
    - The extension is lowercased and filtered to alphanumeric + dot.

Security:
    - Names never contain path separators; `is_safe_name` rejects anything
      that does not look like a generated name before a delete.
"""
from __future__ import annotations

import os
import re
import secrets

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def sanitize_extension(filename: str | None, default_ext: str = "") -> str:
    if not filename:
        ext = default_ext
    else:
        _, ext = os.path.splitext(os.path.basename(filename))
    ext = (ext or default_ext or "").lower()
    # keep only alnum and dots; collapse invalids
    ext = "".join(ch for ch in ext if ch.isalnum() or ch == ".")
    if ext and not ext.startswith("."):
        ext = f".{ext}"
    if ext == ".":
        return ""
    return ext


def make_storage_name(filename: str | None, *, token_hex: str | None = None) -> str:
    """Build a storage name for an uploaded file.

    Returns: {token}{.ext}, where token is 16 random bytes as hex unless given.
    """
    hexpart = (token_hex or "").strip() or secrets.token_hex(16)
    return f"{hexpart}{sanitize_extension(filename)}"


def is_safe_name(name: str) -> bool:
    return bool(name) and ".." not in name and bool(_NAME_RE.match(name))


__all__ = ["is_safe_name", "make_storage_name", "sanitize_extension"]
