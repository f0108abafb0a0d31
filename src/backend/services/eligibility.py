"""
Vote eligibility gate.

An identity may vote for a post only when it is authorized, the post's
window is Open, and it has not already voted for that post. The decision is
a pure function of a snapshot; callers fetch a fresh snapshot after every
mutation rather than reusing an earlier answer.
"""

import asyncio
from enum import Enum
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from repositories.ledger import LedgerClientProtocol
from schemas.election import ElectionState, ElectionWindow
from schemas.identity import Identity, VoteStatus

logger = structlog.get_logger(__name__)


class Ineligibility(str, Enum):
    """Why an identity may not vote for a post."""

    NOT_AUTHORIZED = "not_authorized"
    UNAVAILABLE = "unavailable"
    UNKNOWN_POST = "unknown_post"
    WINDOW_NOT_OPEN = "window_not_open"
    ALREADY_VOTED = "already_voted"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    Ineligibility.NOT_AUTHORIZED: "You are not authorized to vote",
    Ineligibility.UNAVAILABLE: "Election status is unavailable right now",
    Ineligibility.UNKNOWN_POST: "No election exists for this post",
    Ineligibility.WINDOW_NOT_OPEN: "Voting is not open for this post",
    Ineligibility.ALREADY_VOTED: "You have already voted for this post",
}


class EligibilitySnapshot(BaseModel):
    """Windows and vote records of one identity, fetched together."""

    address: str
    windows: dict[str, ElectionWindow] = Field(default_factory=dict)
    vote_status: dict[str, VoteStatus] = Field(default_factory=dict)
    unavailable: set[str] = Field(default_factory=set)

    def window(self, post: str) -> Optional[ElectionWindow]:
        return self.windows.get(post)

    def has_voted(self, post: str) -> bool:
        status = self.vote_status.get(post)
        return bool(status and status.has_voted)


def evaluate(identity: Identity, post: str, snapshot: EligibilitySnapshot) -> Optional[Ineligibility]:
    """Return the first reason the identity may not vote, or None if it may."""
    if not identity.is_authorized:
        return Ineligibility.NOT_AUTHORIZED
    if post in snapshot.unavailable:
        return Ineligibility.UNAVAILABLE
    window = snapshot.window(post)
    if window is None:
        return Ineligibility.UNKNOWN_POST
    if window.state != ElectionState.OPEN:
        return Ineligibility.WINDOW_NOT_OPEN
    if snapshot.has_voted(post):
        return Ineligibility.ALREADY_VOTED
    return None


def can_vote(identity: Identity, post: str, snapshot: EligibilitySnapshot) -> bool:
    return evaluate(identity, post, snapshot) is None


async def fetch_snapshot(ledger: LedgerClientProtocol, address: str) -> tuple[Identity, EligibilitySnapshot]:
    """
    Fetch the identity and a fresh eligibility snapshot for every post.

    A post whose window or vote status cannot be read is recorded as
    unavailable; the other posts are unaffected.

    Raises:
        FetchFailure: If the identity or the post list cannot be read.
    """
    identity, posts = await asyncio.gather(
        ledger.get_identity_info(address),
        ledger.list_posts(),
    )
    windows, statuses = await asyncio.gather(
        asyncio.gather(*(ledger.get_election_info(post) for post in posts), return_exceptions=True),
        asyncio.gather(*(ledger.get_vote_status(address, post) for post in posts), return_exceptions=True),
    )

    snapshot = EligibilitySnapshot(address=address)
    for post, window, status in zip(posts, windows, statuses):
        failure = next((r for r in (window, status) if isinstance(r, BaseException)), None)
        if failure is not None:
            if not isinstance(failure, Exception):
                raise failure
            logger.warning("eligibility_post_unavailable", post=post, error=str(failure))
            snapshot.unavailable.add(post)
            continue
        snapshot.windows[post] = window
        snapshot.vote_status[post] = status
    return identity, snapshot
