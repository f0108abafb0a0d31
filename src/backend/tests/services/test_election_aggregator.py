"""
Tests for the election aggregator.

Covers candidate ranking, turnout and per-post failure isolation.
"""

import asyncio

import pytest

from core.exceptions import FetchFailure
from repositories.memory_ledger import InMemoryLedgerClient, LedgerState
from schemas.election import Candidate, ElectionState
from services.election_aggregator import ElectionAggregator, compute_turnout, rank_candidates
from conftest import ADMIN_ADDRESS, VOTER_ADDRESSES, confirm, open_post, register


class FlakyLedgerClient(InMemoryLedgerClient):
    """In-memory client whose window lookup fails for selected posts."""

    def __init__(self, state: LedgerState, sender: str, failing_posts: set[str]):
        super().__init__(state, sender)
        self.failing_posts = failing_posts

    async def get_election_info(self, post: str):
        if post in self.failing_posts:
            raise FetchFailure(f"election:{post}", ConnectionError("gateway timeout"))
        return await super().get_election_info(post)


def _candidate(cid: int, votes: int, post: str = "President") -> Candidate:
    return Candidate(id=cid, name=f"Candidate {cid}", post=post, vote_count=votes)


@pytest.mark.unit
class TestRanking:
    """Tests for rank_candidates."""

    def test_orders_by_votes_descending(self):
        """Candidates are ordered by vote count, highest first."""
        ranked = rank_candidates([_candidate(1, 2), _candidate(2, 7), _candidate(3, 4)])
        assert [c.id for c in ranked] == [2, 3, 1]

    def test_ties_keep_registration_order(self):
        """Equal vote counts preserve the input order."""
        ranked = rank_candidates([_candidate(1, 3), _candidate(2, 5), _candidate(3, 3), _candidate(4, 5)])
        assert [c.id for c in ranked] == [2, 4, 1, 3]

    def test_does_not_mutate_input(self):
        candidates = [_candidate(1, 0), _candidate(2, 1)]
        rank_candidates(candidates)
        assert [c.id for c in candidates] == [1, 2]


@pytest.mark.unit
class TestTurnout:
    """Tests for compute_turnout."""

    def test_zero_authorized_is_zero(self):
        """No authorized voters means zero turnout, not a division error."""
        assert compute_turnout(0, 0) == 0.0

    def test_ratio(self):
        assert compute_turnout(1, 4) == 0.25

    def test_bounded_by_one(self):
        assert compute_turnout(5, 4) == 1.0


@pytest.mark.unit
class TestElectionBoard:
    """Tests for ElectionAggregator.build_board against the in-memory ledger."""

    async def test_empty_ledger(self, admin_ledger):
        board = await ElectionAggregator(admin_ledger).build_board()
        assert board.views == []
        assert board.total_votes == 0
        assert board.open_count == 0

    async def test_board_aggregates_votes_and_turnout(self, ledger_state, admin_ledger, sample_candidates):
        """Votes, ranking and turnout are derived from ledger state."""
        await open_post(ledger_state, "President", sample_candidates)
        for address in VOTER_ADDRESSES:
            await register(ledger_state, address, address[-4:], authorize=True)

        await confirm(await ledger_state.client(VOTER_ADDRESSES[0]).cast_vote(2))
        await confirm(await ledger_state.client(VOTER_ADDRESSES[1]).cast_vote(2))

        board = await ElectionAggregator(admin_ledger).build_board()
        view = board.view_for("President")

        assert view is not None
        assert view.window.state == ElectionState.OPEN
        assert [c.name for c in view.candidates] == ["Bongani Dlamini", "Alice Moreau", "Chen Wei"]
        assert view.total_votes == 2
        assert view.voted_count == 2
        assert view.authorized_count == 3
        assert view.turnout_percent == 67
        assert view.leader.name == "Bongani Dlamini"
        assert board.open_count == 1
        assert board.candidate_count == 3

    async def test_failed_post_is_isolated(self, ledger_state, sample_candidates):
        """One post's failed fetch marks only that view degraded."""
        await open_post(ledger_state, "President", sample_candidates)
        await open_post(ledger_state, "Treasurer", [("Dana Okafor", "Unity")])
        await register(ledger_state, VOTER_ADDRESSES[0], "amara", authorize=True)
        await confirm(await ledger_state.client(VOTER_ADDRESSES[0]).cast_vote(1))
        await confirm(await ledger_state.client(VOTER_ADDRESSES[0]).cast_vote(4))

        flaky = FlakyLedgerClient(ledger_state, ADMIN_ADDRESS, failing_posts={"Treasurer"})
        board = await ElectionAggregator(flaky).build_board()

        president = board.view_for("President")
        treasurer = board.view_for("Treasurer")
        assert not president.degraded
        assert president.total_votes == 1
        assert treasurer.degraded
        assert treasurer.window is None
        assert treasurer.turnout == 0.0
        assert "Treasurer" in treasurer.error
        assert board.degraded_posts == ["Treasurer"]
        # Aggregates only cover healthy views
        assert board.total_votes == 1
        assert board.open_count == 1
        assert board.candidate_count == 3

    async def test_enumeration_failure_raises(self, admin_ledger):
        """If the posts cannot be listed the whole board fails."""

        async def broken() -> list[str]:
            raise ConnectionError("refused")

        admin_ledger.list_posts = broken
        with pytest.raises(FetchFailure):
            await ElectionAggregator(admin_ledger).build_board()

    async def test_fetches_posts_concurrently(self, ledger_state, sample_candidates):
        """Per-post fetches are in flight at the same time."""
        await open_post(ledger_state, "President", sample_candidates)
        await open_post(ledger_state, "Secretary", [("Eve Laurent", "Progress")])

        in_flight = 0
        peak = 0

        class SlowClient(InMemoryLedgerClient):
            async def get_election_info(self, post):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return await super().get_election_info(post)

        await ElectionAggregator(SlowClient(ledger_state, ADMIN_ADDRESS)).build_board()
        assert peak == 2


@pytest.mark.unit
class TestSingleView:
    """Tests for ElectionAggregator.build_view."""

    async def test_unknown_post(self, admin_ledger):
        with pytest.raises(FetchFailure):
            await ElectionAggregator(admin_ledger).build_view("Mayor")

    async def test_known_post(self, ledger_state, admin_ledger, sample_candidates):
        await open_post(ledger_state, "President", sample_candidates)
        view = await ElectionAggregator(admin_ledger).build_view("President")
        assert view.post == "President"
        assert len(view.candidates) == 3
        assert view.turnout == 0.0
