"""
Election Aggregator

Builds the per-post election read-model from scattered ledger reads:
- Enumerates posts and fetches the global candidate list once
- Fans out per-post window and vote-status fetches concurrently
- Ranks candidates and computes totals and turnout per post

A failing post is isolated: it is published as a degraded view while the
other posts render normally. Nothing is assembled until every per-post
fetch has resolved.
"""

import asyncio
from dataclasses import dataclass

import structlog

from core.exceptions import FetchFailure
from repositories.ledger import LedgerClientProtocol
from schemas.election import Candidate, ElectionBoard, ElectionState, ElectionView, ElectionWindow
from schemas.identity import IdentityRef, VoteStatus

logger = structlog.get_logger(__name__)


def rank_candidates(candidates: list[Candidate]) -> list[Candidate]:
    """
    Order candidates by descending vote count.

    The sort is stable, so candidates tied on votes keep their registration
    order.
    """
    return sorted(candidates, key=lambda c: c.vote_count, reverse=True)


def compute_turnout(voted: int, authorized: int) -> float:
    """Share of authorized identities that voted; 0 when nobody is authorized."""
    if authorized <= 0:
        return 0.0
    return min(voted / authorized, 1.0)


@dataclass
class _PostFetch:
    window: ElectionWindow
    statuses: list[VoteStatus]


class ElectionAggregator:
    """Produces ElectionBoard / ElectionView read-models from the ledger."""

    def __init__(self, ledger: LedgerClientProtocol):
        self.ledger = ledger

    async def _fetch_globals(self) -> tuple[list[str], list[Candidate], list[IdentityRef]]:
        try:
            posts, candidates, voters = await asyncio.gather(
                self.ledger.list_posts(),
                self.ledger.list_candidates(),
                self.ledger.list_authorized_voters(),
            )
        except FetchFailure:
            raise
        except Exception as e:
            raise FetchFailure("election overview", e) from e
        return posts, candidates, voters

    async def _fetch_post(self, post: str, voters: list[IdentityRef]) -> _PostFetch:
        window, *statuses = await asyncio.gather(
            self.ledger.get_election_info(post),
            *(self.ledger.get_vote_status(voter.address, post) for voter in voters),
        )
        return _PostFetch(window=window, statuses=list(statuses))

    @staticmethod
    def _build_view(
        post: str,
        candidates: list[Candidate],
        authorized_count: int,
        fetched: "_PostFetch | BaseException",
    ) -> ElectionView:
        ranked = rank_candidates([c for c in candidates if c.post == post])
        total_votes = sum(c.vote_count for c in ranked)

        if isinstance(fetched, BaseException):
            return ElectionView(
                post=post,
                candidates=ranked,
                total_votes=total_votes,
                authorized_count=authorized_count,
                degraded=True,
                error=str(FetchFailure(f"election:{post}", fetched)),
            )

        voted_count = sum(1 for status in fetched.statuses if status.has_voted)
        return ElectionView(
            post=post,
            window=fetched.window,
            candidates=ranked,
            total_votes=total_votes,
            voted_count=voted_count,
            authorized_count=authorized_count,
            turnout=compute_turnout(voted_count, authorized_count),
        )

    async def build_board(self) -> ElectionBoard:
        """
        Build views for every post.

        Raises:
            FetchFailure: If the post, candidate or voter enumeration fails.
        """
        posts, candidates, voters = await self._fetch_globals()

        results = await asyncio.gather(
            *(self._fetch_post(post, voters) for post in posts),
            return_exceptions=True,
        )

        views: list[ElectionView] = []
        for post, fetched in zip(posts, results):
            if isinstance(fetched, BaseException):
                if not isinstance(fetched, Exception):
                    raise fetched
                logger.warning("post_fetch_failed", post=post, error=str(fetched))
            views.append(self._build_view(post, candidates, len(voters), fetched))

        healthy = [view for view in views if not view.degraded]
        board = ElectionBoard(
            views=views,
            total_votes=sum(view.total_votes for view in healthy),
            open_count=sum(
                1 for view in healthy if view.window is not None and view.window.state == ElectionState.OPEN
            ),
            candidate_count=sum(len(view.candidates) for view in healthy),
            degraded_posts=[view.post for view in views if view.degraded],
        )
        logger.debug(
            "election_board_built",
            posts=len(posts),
            degraded=len(board.degraded_posts),
            total_votes=board.total_votes,
        )
        return board

    async def build_view(self, post: str) -> ElectionView:
        """Build the view for a single post."""
        posts, candidates, voters = await self._fetch_globals()
        if post not in posts:
            raise FetchFailure(f"election:{post}", LookupError(f"Unknown post '{post}'"))

        try:
            fetched: "_PostFetch | BaseException" = await self._fetch_post(post, voters)
        except Exception as e:
            logger.warning("post_fetch_failed", post=post, error=str(e))
            fetched = e
        return self._build_view(post, candidates, len(voters), fetched)
