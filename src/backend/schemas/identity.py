"""
Identity and vote-record schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field


class IdentityRef(BaseModel):
    """An identity as enumerated by the ledger (before status lookup)."""

    address: str
    username: str = ""


class Identity(BaseModel):
    """An identity with its registration and authorization flags."""

    address: str
    username: str = ""
    is_registered: bool = False
    is_authorized: bool = False


class VoteStatus(BaseModel):
    """Vote record of one identity for one post."""

    post: str
    is_authorized: bool = False
    has_voted: bool = False
    candidate_id: Optional[int] = Field(None, description="Set only when has_voted is true")


class DirectoryEntry(BaseModel):
    """One row of a voter / registered-user directory."""

    address: str
    username: str = ""
    is_registered: bool = True
    is_authorized: bool = False
    degraded: bool = Field(False, description="Status lookup failed; flags are fallback values")


class DirectorySummary(BaseModel):
    """Totals shown above a directory listing."""

    total: int = 0
    authorized: int = 0
    degraded: int = 0


class VoteHistoryEntry(BaseModel):
    """Whether the connected identity voted for a post, and for whom."""

    post: str
    voted: bool = False
    candidate_id: Optional[int] = None
    candidate_name: Optional[str] = None
    candidate_party: Optional[str] = None
    candidate_image: Optional[str] = None
    unavailable: bool = Field(False, description="The vote status could not be read")


class VoterRecord(BaseModel):
    """A voter who cast a vote, as listed in the admin vote breakdown."""

    address: str
    username: str = ""


class CandidateVoters(BaseModel):
    """Voters grouped under the candidate they voted for."""

    candidate_id: int
    candidate_name: str
    post: str
    voters: list[VoterRecord] = Field(default_factory=list)


class VoteBreakdown(BaseModel):
    """Admin view of who voted for each candidate."""

    candidates: list[CandidateVoters] = Field(default_factory=list)
    voted_count: int = 0
    authorized_count: int = 0
    unavailable_count: int = Field(0, description="Vote-status lookups that failed")
