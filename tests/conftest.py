from __future__ import annotations

import os
import tempfile
from pathlib import Path
from uuid import uuid4

import pytest
import pytest_asyncio
from fastapi import Request
from httpx import ASGITransport, AsyncClient

TEST_DB_DIR = Path(tempfile.mkdtemp(prefix="twofactor-tests-"))
TEST_ENCRYPTION_KEY = "test-encryption-key-32-bytes-12"

os.environ["TWOFACTOR_DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_DIR / 'twofactor.db'}"
os.environ["TWOFACTOR_ENCRYPTION_KEY"] = TEST_ENCRYPTION_KEY
os.environ["TWOFACTOR_PENDING_SETUP_SWEEP_ENABLED"] = "false"

from twofactor.core.config.settings import get_settings  # noqa: E402
from twofactor.dependencies import get_current_user_id  # noqa: E402
from twofactor.main import create_app  # noqa: E402

TEST_USER_HEADER = "x-test-user"


@pytest.fixture(autouse=True)
def temp_database(monkeypatch):
    db_path = TEST_DB_DIR / f"twofactor-{uuid4().hex}.db"
    monkeypatch.setenv("TWOFACTOR_DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("TWOFACTOR_ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)
    get_settings.cache_clear()
    yield db_path
    get_settings.cache_clear()


@pytest.fixture
def app_instance():
    app = create_app()

    def _user_from_header(request: Request) -> str:
        return request.headers.get(TEST_USER_HEADER, "user-1")

    app.dependency_overrides[get_current_user_id] = _user_from_header
    return app


@pytest_asyncio.fixture
async def async_client(app_instance):
    async with app_instance.router.lifespan_context(app_instance):
        transport = ASGITransport(app=app_instance)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client
