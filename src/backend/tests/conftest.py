"""
Pytest fixtures for TrustChain backend tests.
"""

import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LEDGER_BACKEND", "memory")
os.environ.setdefault("LEDGER_ADMIN_ADDRESS", "0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266")
os.environ.setdefault("LEDGER_ADMIN_USERNAME", "admin")
os.environ.setdefault("LEDGER_ADMIN_PASSWORD", "admin123")
os.environ.setdefault("DISPLAY_TIMEZONE", "UTC")

from core.session import IdentityEpoch  # noqa: E402
from repositories.memory_ledger import InMemoryLedgerClient, LedgerState  # noqa: E402
from services.lifecycle_commander import LifecycleCommander  # noqa: E402
from services.read_model_store import ActionGuard, ReadModelStore  # noqa: E402

ADMIN_ADDRESS = "0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266"
VOTER_ADDRESSES = [
    "0x70997970c51812dc3a010c7d01b50e0d17dc79c8",
    "0x3c44cdddb6a900fa2b585dd299e03d12fa4293bc",
    "0x90f79bf6eb2c4f870365e785982e1f101e93b906",
]


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


# =============================================================================
# Ledger fixtures
# =============================================================================


@pytest.fixture
def ledger_state() -> LedgerState:
    """Fresh in-memory ledger owned by the admin address."""
    return LedgerState(owner=ADMIN_ADDRESS, admin_username="admin", admin_password="admin123")


@pytest.fixture
def admin_ledger(ledger_state: LedgerState) -> InMemoryLedgerClient:
    return ledger_state.client(ADMIN_ADDRESS)


@pytest.fixture
def voter_ledger(ledger_state: LedgerState) -> InMemoryLedgerClient:
    return ledger_state.client(VOTER_ADDRESSES[0])


@pytest.fixture
def commander(admin_ledger: InMemoryLedgerClient) -> LifecycleCommander:
    """Admin commander over a fresh read-model store."""
    return LifecycleCommander(ReadModelStore(admin_ledger, IdentityEpoch()), ActionGuard())


@pytest.fixture
def voting_window() -> tuple[datetime, datetime]:
    start = datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc)
    return start, start + timedelta(hours=8)


async def confirm(pending: Any) -> Any:
    """Await a pending ledger command's confirmation."""
    return await pending.wait()


async def register(state: LedgerState, address: str, username: str, authorize: bool = False) -> None:
    await confirm(await state.client(address).register_identity(username))
    if authorize:
        await confirm(await state.client(ADMIN_ADDRESS).authorize_voter(address))


async def open_post(state: LedgerState, post: str, candidates: list[tuple[str, str]]) -> None:
    """Create ``post``, add candidates and open voting."""
    admin = state.client(ADMIN_ADDRESS)
    await confirm(await admin.schedule_election(post, 1_767_000_000, 1_767_100_000))
    for name, party in candidates:
        await confirm(await admin.add_candidate(name, party, "", post))
    await confirm(await admin.start_election(post))


@pytest.fixture
def sample_candidates() -> list[tuple[str, str]]:
    return [("Alice Moreau", "Unity"), ("Bongani Dlamini", "Progress"), ("Chen Wei", "Independent")]


# =============================================================================
# API fixtures
# =============================================================================


@pytest.fixture
async def app() -> AsyncGenerator[Any, None]:
    """FastAPI application with its lifespan running (fresh ledger per test)."""
    from main import app as fastapi_app

    async with fastapi_app.router.lifespan_context(fastapi_app):
        yield fastapi_app


@pytest.fixture
async def client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
async def admin_headers(client: AsyncClient) -> dict[str, str]:
    """Session header for a logged-in admin."""
    response = await client.post(
        "/api/v1/session/login",
        json={"address": ADMIN_ADDRESS, "username": "admin", "password": "admin123"},
    )
    assert response.status_code == 200
    return {"X-Session-ID": response.json()["session_id"]}


@pytest.fixture
async def voter_headers(client: AsyncClient) -> dict[str, str]:
    """Session header for a logged-in (registered, unauthorized) voter."""
    response = await client.post(
        "/api/v1/session/login",
        json={"address": VOTER_ADDRESSES[0], "username": "amara", "password": "secret"},
    )
    assert response.status_code == 200
    return {"X-Session-ID": response.json()["session_id"]}
