"""
Filesystem-backed binary store for unit files.

Files live flat under a configured root directory and are addressed by their
generated storage name. The root is passed in at construction; nothing here
reads configuration or the process working directory on its own.

Security:
- Names are checked with `is_safe_name` and the resolved path must stay under
  the root, so a tampered record can never delete files elsewhere.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path

from .keys import is_safe_name
from .ports import BinaryStoreProtocol, StoredFile

logger = logging.getLogger("courseware.storage")


class LocalFileStore(BinaryStoreProtocol):
    """Store adapter writing below a single upload directory."""

    def __init__(self, root: Path | str):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    # --- Helpers -----------------------------------------------------------------

    def _resolve(self, name: str) -> Path:
        if not is_safe_name(name):
            raise ValueError("invalid_storage_name")
        root = self._root.resolve()
        target = (root / name).resolve()
        if target.parent != root:
            raise ValueError("invalid_storage_name")
        return target

    # --- Protocol methods --------------------------------------------------------

    def write_file(self, *, name: str, body: bytes) -> StoredFile:
        target = self._resolve(name)
        self._root.mkdir(parents=True, exist_ok=True)
        # Exclusive create: generated names never overwrite an existing file.
        with open(target, "xb") as fh:
            fh.write(body)
        return StoredFile(path=name, size=len(body))

    def delete_file(self, name: str) -> bool:
        try:
            target = self._resolve(name)
        except ValueError:
            logger.warning("Refusing to delete unsafe storage name=%s", name)
            return False
        try:
            os.remove(target)
        except FileNotFoundError:
            logger.warning("File already missing name=%s", name)
            return False
        except OSError as exc:
            logger.warning("File delete failed name=%s error=%s", name, type(exc).__name__)
            return False
        return True

    def exists(self, name: str) -> bool:
        try:
            return self._resolve(name).is_file()
        except ValueError:
            return False


__all__ = ["LocalFileStore"]
