"""
Tests for read-model publication and identity-epoch cancellation.
"""

import asyncio

import pytest

from core.exceptions import CommandInProgress, FetchFailure
from core.session import IdentityEpoch
from repositories.memory_ledger import InMemoryLedgerClient
from services.read_model_store import ActionGuard, ReadModelStore
from conftest import ADMIN_ADDRESS, VOTER_ADDRESSES, open_post, register


class GatedClient(InMemoryLedgerClient):
    """Client whose post enumeration waits until released."""

    def __init__(self, state, sender):
        super().__init__(state, sender)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def list_posts(self):
        self.entered.set()
        await self.release.wait()
        return await super().list_posts()


@pytest.mark.unit
class TestEpochDiscard:
    """Results fetched for a superseded identity are never applied."""

    async def test_result_after_identity_change_is_discarded(self, ledger_state, sample_candidates):
        await open_post(ledger_state, "President", sample_candidates)
        epoch = IdentityEpoch()
        gated = GatedClient(ledger_state, ADMIN_ADDRESS)
        store = ReadModelStore(gated, epoch)

        refresh = asyncio.create_task(store.refresh_elections())
        await gated.entered.wait()
        epoch.advance()
        gated.release.set()

        assert await refresh is None
        assert store.elections is None

    async def test_failure_after_identity_change_is_not_recorded(self, ledger_state):
        epoch = IdentityEpoch()
        client = ledger_state.client(ADMIN_ADDRESS)

        async def broken():
            epoch.advance()
            raise ConnectionError("refused")

        client.list_posts = broken
        store = ReadModelStore(client, epoch)

        with pytest.raises(FetchFailure):
            await store.refresh_elections()
        assert "elections" not in store.errors

    async def test_current_result_is_published(self, ledger_state, admin_ledger, sample_candidates):
        await open_post(ledger_state, "President", sample_candidates)
        store = ReadModelStore(admin_ledger, IdentityEpoch())

        board = await store.refresh_elections()

        assert board is store.elections
        assert board.posts == ["President"]


@pytest.mark.unit
class TestFallback:
    """A failed refresh keeps the previously published model."""

    async def test_load_falls_back_to_published(self, ledger_state, admin_ledger, sample_candidates):
        await open_post(ledger_state, "President", sample_candidates)
        store = ReadModelStore(admin_ledger, IdentityEpoch())
        published = await store.load_elections()

        async def broken():
            raise ConnectionError("refused")

        admin_ledger.list_posts = broken
        board = await store.load_elections()

        assert board is published
        assert "elections" in store.errors

    async def test_load_without_published_raises(self, admin_ledger):
        async def broken():
            raise ConnectionError("refused")

        admin_ledger.list_posts = broken
        with pytest.raises(FetchFailure):
            await ReadModelStore(admin_ledger, IdentityEpoch()).load_elections()

    async def test_rebind_drops_models(self, ledger_state, admin_ledger):
        await register(ledger_state, VOTER_ADDRESSES[0], "amara")
        store = ReadModelStore(admin_ledger, IdentityEpoch())
        await store.refresh_directories()
        assert len(store.registered_users) == 1

        store.rebind(ledger_state.client(VOTER_ADDRESSES[0]))
        assert store.registered_users is None
        assert store.ledger.sender == VOTER_ADDRESSES[0]


@pytest.mark.unit
class TestActionGuard:
    """Tests for the in-flight action registry."""

    async def test_hold_and_release(self):
        guard = ActionGuard()
        key = ActionGuard.key("start_election", "President")
        assert key == "start_election:President"

        async with guard.hold(key):
            assert guard.busy(key)
            with pytest.raises(CommandInProgress):
                async with guard.hold(key):
                    pass
        assert not guard.busy(key)

    async def test_released_on_error(self):
        guard = ActionGuard()
        with pytest.raises(RuntimeError):
            async with guard.hold("end_election:President"):
                raise RuntimeError("boom")
        assert guard.in_flight == frozenset()

    async def test_different_targets_are_independent(self):
        guard = ActionGuard()
        async with guard.hold(ActionGuard.key("start_election", "President")):
            async with guard.hold(ActionGuard.key("start_election", "Treasurer")):
                assert len(guard.in_flight) == 2

    def test_key_without_target(self):
        assert ActionGuard.key("set_capacity_limits") == "set_capacity_limits"
