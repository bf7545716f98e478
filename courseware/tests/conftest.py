"""
Pytest configuration for courseware tests.

Why: Force AnyIO to use the asyncio backend, and give every test a fresh
in-memory repository, a temporary upload directory and an empty session store
so web tests never leak state into each other.
"""
import pytest

from courseware.persistence.memory import InMemoryRepo
from courseware.storage.local import LocalFileStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def repo():
    return InMemoryRepo()


@pytest.fixture(autouse=True)
def _reset_web_wiring(tmp_path):
    """Point the web adapter at in-memory state for every test.

    Behavior:
        - Repository: fresh InMemoryRepo (tests may replace it via set_repo).
        - Binary store: LocalFileStore under tmp_path/uploads.
        - Sessions: empty in-memory SessionStore.
    """
    from courseware.identity_access.stores import SessionStore
    from courseware.web import deps, main

    deps.set_repo(InMemoryRepo())
    deps.set_binary_store(LocalFileStore(tmp_path / "uploads"))
    main.SESSION_STORE = SessionStore()
    yield
