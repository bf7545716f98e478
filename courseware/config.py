"""
Runtime configuration for courseware services.

Intent:
    Read every environment variable that influences file storage, upload
    limits and persistence in one place, validate it, and hand the result to
    services explicitly. Nothing downstream reads `os.environ` on its own, so
    tests can build settings directly without patching the environment.

Variables:
    COURSEWARE_ENV               dev (default) | test | prod | production | stage | staging
    COURSEWARE_UPLOAD_DIR        root directory for unit files (default: uploads)
    COURSEWARE_MAX_UPLOAD_BYTES  per-file cap for unit uploads (default/clamp 50 MiB)
    COURSEWARE_MAX_ROSTER_BYTES  cap for roster CSV uploads (default/clamp 1 MiB)
    COURSEWARE_DATABASE_URL      Postgres DSN (falls back to DATABASE_URL)
"""
from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Optional


UPLOAD_CONTRACT_MAX = 50 * 1024 * 1024
ROSTER_CONTRACT_MAX = 1 * 1024 * 1024


@dataclass(frozen=True)
class CoursewareSettings:
    environment: str
    upload_dir: Path
    max_upload_bytes: int
    max_roster_bytes: int
    database_url: Optional[str]

    @property
    def prod_like(self) -> bool:
        return _is_prod_like(self.environment)


def _is_prod_like(env: str) -> bool:
    return (env or "").lower() in {"prod", "production", "stage", "staging"}


def _int_env(name: str, default: int, *, contract_max: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got: {value}")
    return min(value, contract_max)


def load_settings() -> CoursewareSettings:
    """Parse and validate configuration from environment variables.

    Behavior:
        - Size limits are clamped to their contract maximum.
        - An empty upload directory value falls back to the default.
        - The DSN prefers COURSEWARE_DATABASE_URL over DATABASE_URL; both may
          be unset, in which case callers use the in-memory repository.
    """
    env = (os.getenv("COURSEWARE_ENV") or "dev").strip().lower()
    upload_dir = Path((os.getenv("COURSEWARE_UPLOAD_DIR") or "uploads").strip() or "uploads")
    max_upload = _int_env("COURSEWARE_MAX_UPLOAD_BYTES", UPLOAD_CONTRACT_MAX, contract_max=UPLOAD_CONTRACT_MAX)
    max_roster = _int_env("COURSEWARE_MAX_ROSTER_BYTES", ROSTER_CONTRACT_MAX, contract_max=ROSTER_CONTRACT_MAX)
    dsn = (os.getenv("COURSEWARE_DATABASE_URL") or os.getenv("DATABASE_URL") or "").strip() or None
    return CoursewareSettings(
        environment=env,
        upload_dir=upload_dir,
        max_upload_bytes=max_upload,
        max_roster_bytes=max_roster,
        database_url=dsn,
    )


def ensure_secure_config_on_startup(settings: CoursewareSettings | None = None) -> None:
    """Fail fast on unsafe production configuration.

    Checks (prod-like environments only):
    - The upload directory must be absolute so file cleanup never resolves
      against an unexpected working directory.
    - The database DSN must not explicitly disable TLS.
    """
    settings = settings or load_settings()
    if not settings.prod_like:
        return
    if not settings.upload_dir.is_absolute():
        raise SystemExit(
            "Refusing to start: COURSEWARE_UPLOAD_DIR must be an absolute path in production."
        )
    if settings.database_url and "sslmode=disable" in settings.database_url:
        raise SystemExit(
            "Refusing to start: database DSN contains sslmode=disable in production. Use sslmode=require."
        )


__all__ = [
    "CoursewareSettings",
    "ROSTER_CONTRACT_MAX",
    "UPLOAD_CONTRACT_MAX",
    "ensure_secure_config_on_startup",
    "load_settings",
]
