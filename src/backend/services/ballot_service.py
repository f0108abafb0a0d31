"""
Ballot Service

Voter-side operations and vote reporting:
- Casting a vote after a fresh eligibility check
- The connected identity's voting history across posts
- The admin breakdown of which identities voted for which candidate
"""

import asyncio
from typing import Optional

import structlog

from core.exceptions import ValidationError
from repositories.ledger import LedgerClientProtocol
from schemas.admin import CommandResult
from schemas.election import Candidate
from schemas.identity import CandidateVoters, VoteBreakdown, VoteHistoryEntry, VoteStatus, VoterRecord
from services.eligibility import evaluate, fetch_snapshot
from services.lifecycle_commander import ELECTIONS, LifecycleCommander

logger = structlog.get_logger(__name__)


class BallotService:
    """Ballot operations for one session."""

    def __init__(self, commander: LifecycleCommander):
        self.commander = commander

    @property
    def ledger(self) -> LedgerClientProtocol:
        return self.commander.ledger

    async def cast_vote(self, candidate_id: int) -> CommandResult:
        """
        Vote for a candidate as the connected identity.

        Eligibility is decided from a snapshot fetched for this call, never
        from an earlier answer.

        Raises:
            ValidationError: If the candidate is unknown or the identity may not vote.
            RejectedCommand: If the ledger refuses the vote.
        """
        ledger = self.ledger
        candidates = await ledger.list_candidates()
        candidate = next((c for c in candidates if c.id == candidate_id), None)
        if candidate is None:
            raise ValidationError(f"Candidate {candidate_id} does not exist", field="candidate_id")

        identity, snapshot = await fetch_snapshot(ledger, ledger.sender)
        reason = evaluate(identity, candidate.post, snapshot)
        if reason is not None:
            logger.info("vote_ineligible", post=candidate.post, reason=reason.value)
            raise ValidationError(reason.message, field="candidate_id")

        return await self.commander.execute(
            "cast_vote",
            candidate.post,
            lambda: ledger.cast_vote(candidate_id),
            f"Vote cast successfully for {candidate.post}!",
            refresh=(ELECTIONS,),
        )

    async def voting_history(self) -> list[VoteHistoryEntry]:
        """Whether the connected identity voted for each post, and for whom."""
        ledger = self.ledger
        posts, candidates = await asyncio.gather(ledger.list_posts(), ledger.list_candidates())
        statuses = await asyncio.gather(
            *(ledger.get_vote_status(ledger.sender, post) for post in posts),
            return_exceptions=True,
        )
        by_id = {candidate.id: candidate for candidate in candidates}

        history = []
        for post, status in zip(posts, statuses):
            if isinstance(status, BaseException):
                if not isinstance(status, Exception):
                    raise status
                logger.warning("vote_status_unavailable", address=ledger.sender, post=post, error=str(status))
                history.append(VoteHistoryEntry(post=post, unavailable=True))
                continue
            if not status.has_voted:
                history.append(VoteHistoryEntry(post=status.post, voted=False))
                continue
            candidate = by_id.get(status.candidate_id) if status.candidate_id is not None else None
            history.append(
                VoteHistoryEntry(
                    post=status.post,
                    voted=True,
                    candidate_id=status.candidate_id,
                    candidate_name=candidate.name if candidate else "Unknown",
                    candidate_party=candidate.party if candidate else "Unknown",
                    candidate_image=candidate.image_ref if candidate else None,
                )
            )
        return history

    async def vote_breakdown(self, post: Optional[str] = None) -> VoteBreakdown:
        """
        Group registered identities under the candidate they voted for.

        Vote-status lookups run concurrently; a failed lookup is counted as
        unavailable and does not abort the others.
        """
        ledger = self.ledger
        posts, candidates, users, authorized = await asyncio.gather(
            ledger.list_posts(),
            ledger.list_candidates(),
            ledger.list_registered_users(),
            ledger.list_authorized_voters(),
        )
        if post is not None:
            posts = [p for p in posts if p == post]
            candidates = [c for c in candidates if c.post == post]

        pairs = [(user, p) for user in users for p in posts]
        results = await asyncio.gather(
            *(ledger.get_vote_status(user.address, p) for user, p in pairs),
            return_exceptions=True,
        )

        groups: dict[int, CandidateVoters] = {
            candidate.id: CandidateVoters(candidate_id=candidate.id, candidate_name=candidate.name, post=candidate.post)
            for candidate in candidates
        }
        voted_addresses: set[str] = set()
        unavailable = 0
        for (user, p), result in zip(pairs, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                unavailable += 1
                logger.warning("vote_status_unavailable", address=user.address, post=p, error=str(result))
                continue
            status: VoteStatus = result
            if not status.has_voted:
                continue
            voted_addresses.add(user.address)
            group = groups.get(status.candidate_id) if status.candidate_id is not None else None
            if group is not None:
                group.voters.append(VoterRecord(address=user.address, username=user.username))

        return VoteBreakdown(
            candidates=list(groups.values()),
            voted_count=len(voted_addresses),
            authorized_count=len(authorized),
            unavailable_count=unavailable,
        )


def candidates_for_post(candidates: list[Candidate], post: str | None) -> list[Candidate]:
    """Candidates whose post contains ``post`` (case-insensitive); all when empty."""
    needle = (post or "").strip().lower()
    if not needle:
        return list(candidates)
    return [candidate for candidate in candidates if needle in candidate.post.lower()]


async def list_candidates(ledger: LedgerClientProtocol, post: str | None = None) -> list[Candidate]:
    return candidates_for_post(await ledger.list_candidates(), post)
