"""
Role-specific dashboard schemas.
"""

from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from schemas.admin import AdminContact, CapacityLimits
from schemas.election import ElectionBoard
from schemas.identity import DirectorySummary, Identity, VoteHistoryEntry


class PostEligibility(BaseModel):
    """Whether the connected identity may vote for one post."""

    post: str
    can_vote: bool
    reason: Optional[str] = Field(None, description="Why voting is not possible")


class AdminDashboard(BaseModel):
    role: Literal["admin"] = "admin"
    address: str
    board: ElectionBoard
    registered_users: DirectorySummary
    authorized_voters: DirectorySummary
    limits: Optional[CapacityLimits] = None
    in_flight: list[str] = Field(default_factory=list, description="Actions awaiting confirmation")


class VoterDashboard(BaseModel):
    role: Literal["voter"] = "voter"
    identity: Identity
    board: ElectionBoard
    eligibility: list[PostEligibility] = Field(default_factory=list)
    history: list[VoteHistoryEntry] = Field(default_factory=list)
    admin_contact: Optional[AdminContact] = None
    in_flight: list[str] = Field(default_factory=list, description="Actions awaiting confirmation")


Dashboard = Union[AdminDashboard, VoterDashboard]
