"""
Pytest configuration and shared fixtures.
"""

import json
import os
import shlex
import sys
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from printbroker.api.main import create_app
from printbroker.broker import ClaimBroker
from printbroker.config import get_settings
from printbroker.db import close_db, connection, init_db
from printbroker.printing.spooler import CupsSpooler
from printbroker.storage import get_blob_store, get_url_signer, reset_storage

TEST_BASE_URL = "http://test"

# Stands in for lp: accepts jobs for registered destinations only
FAKE_LP = """
import json, pathlib, sys

state = pathlib.Path(sys.argv[1])
args = sys.argv[2:]
dest = args[args.index("-d") + 1]
data = sys.stdin.buffer.read()

with open(state / "lp_calls", "a") as f:
    f.write(json.dumps({"args": args, "size": len(data)}) + "\\n")

registered = state / "registered"
names = registered.read_text().split() if registered.exists() else []
if dest not in names:
    print("lp: The printer or class does not exist.", file=sys.stderr)
    sys.exit(1)

(state / "last_payload").write_bytes(data)
print(f"request id is {dest}-1 (1 file(s))")
"""

# Stands in for lpadmin: registers the destination unless told to fail
FAKE_LPADMIN = """
import json, pathlib, sys

state = pathlib.Path(sys.argv[1])
args = sys.argv[2:]

with open(state / "lpadmin_calls", "a") as f:
    f.write(json.dumps({"args": args}) + "\\n")

if (state / "lpadmin_fail").exists():
    print("lpadmin: Unable to connect to printer", file=sys.stderr)
    sys.exit(1)

with open(state / "registered", "a") as f:
    f.write(args[args.index("-p") + 1] + "\\n")
"""


class FakeCups:
    """Scripted lp/lpadmin pair sharing a state directory."""

    def __init__(self, root: Path):
        self.state = root / "cups"
        self.state.mkdir()
        self.lp_script = root / "fake_lp.py"
        self.lp_script.write_text(FAKE_LP)
        self.lpadmin_script = root / "fake_lpadmin.py"
        self.lpadmin_script.write_text(FAKE_LPADMIN)

    @property
    def lp_command(self) -> str:
        return shlex.join([sys.executable, str(self.lp_script), str(self.state)])

    @property
    def lpadmin_command(self) -> str:
        return shlex.join([sys.executable, str(self.lpadmin_script), str(self.state)])

    def spooler(self) -> CupsSpooler:
        return CupsSpooler(lp_command=self.lp_command, lpadmin_command=self.lpadmin_command)

    def register(self, destination: str) -> None:
        with open(self.state / "registered", "a") as f:
            f.write(destination + "\n")

    def fail_provisioning(self) -> None:
        (self.state / "lpadmin_fail").touch()

    def _calls(self, name: str) -> list[list[str]]:
        path = self.state / name
        if not path.exists():
            return []
        return [json.loads(line)["args"] for line in path.read_text().splitlines()]

    def lp_calls(self) -> list[list[str]]:
        return self._calls("lp_calls")

    def lpadmin_calls(self) -> list[list[str]]:
        return self._calls("lpadmin_calls")

    def last_payload(self) -> bytes | None:
        path = self.state / "last_payload"
        return path.read_bytes() if path.exists() else None


@pytest.fixture(autouse=True)
def test_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every setting at per-test locations."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("STORAGE_PATH", str(tmp_path / "blobs"))
    monkeypatch.setenv("PUBLIC_BASE_URL", TEST_BASE_URL)
    monkeypatch.setenv("STORAGE_SIGNING_KEY", "test-signing-key")
    monkeypatch.setenv("OTEL_ENABLED", "false")
    monkeypatch.setenv("LOG_FORMAT", "console")
    monkeypatch.setenv("WORKER_POLL_INTERVAL_SECONDS", "0.05")
    monkeypatch.setenv("WORKER_DRAIN_PAUSE_SECONDS", "0")
    monkeypatch.delenv("API_KEY", raising=False)
    for key in list(os.environ):
        if key.startswith("PRINTER_DRIVER_"):
            monkeypatch.delenv(key)

    get_settings.cache_clear()
    reset_storage()
    yield tmp_path
    get_settings.cache_clear()
    reset_storage()


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None]:
    """Create the schema in the per-test database."""
    await init_db()
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession]:
    """Create a database session for tests."""
    async with connection.AsyncSessionLocal() as session:
        yield session
        # Rollback any uncommitted changes
        await session.rollback()


@pytest.fixture
def broker(database) -> ClaimBroker:
    return ClaimBroker(get_url_signer())


@pytest.fixture
def blob_store():
    return get_blob_store()


@pytest.fixture
def fake_cups(tmp_path: Path) -> FakeCups:
    return FakeCups(tmp_path)


@pytest_asyncio.fixture
async def app(database) -> AsyncGenerator[FastAPI]:
    """Create a FastAPI app for testing with initialized database."""
    yield create_app()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=TEST_BASE_URL) as client:
        yield client
