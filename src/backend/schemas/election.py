"""
Election-related Pydantic schemas.
"""

from datetime import datetime
from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


class ElectionState(IntEnum):
    """Per-post election state, numbered as the ledger reports it."""

    NOT_SCHEDULED = 0
    OPEN = 1
    CLOSED = 2

    @property
    def display_label(self) -> str:
        """Label used on dashboards."""
        return _DISPLAY_LABELS[self]

    @property
    def export_label(self) -> str:
        """Label used in exported reports."""
        return _EXPORT_LABELS[self]


_DISPLAY_LABELS = {
    ElectionState.NOT_SCHEDULED: "Not Scheduled",
    ElectionState.OPEN: "Voting Open",
    ElectionState.CLOSED: "Voting Closed",
}

_EXPORT_LABELS = {
    ElectionState.NOT_SCHEDULED: "Not Scheduled",
    ElectionState.OPEN: "Open",
    ElectionState.CLOSED: "Closed",
}


class ElectionWindow(BaseModel):
    """Scheduling state and time bounds of one post."""

    post: str
    state: ElectionState = ElectionState.NOT_SCHEDULED
    start_time: Optional[datetime] = Field(None, description="None when the ledger reports no start time")
    end_time: Optional[datetime] = Field(None, description="None when the ledger reports no end time")

    @property
    def is_scheduled(self) -> bool:
        return self.start_time is not None and self.end_time is not None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status_label(self) -> str:
        return self.state.display_label


class Candidate(BaseModel):
    """A candidate standing for exactly one post."""

    id: int
    name: str
    party: str = ""
    post: str
    image_ref: str = Field("", description="Image URL or data URL payload")
    vote_count: int = Field(0, ge=0)


class ElectionView(BaseModel):
    """Derived per-post view model. Never stored."""

    post: str
    window: Optional[ElectionWindow] = None
    candidates: list[Candidate] = Field(default_factory=list, description="Ranked by vote count")
    total_votes: int = 0
    voted_count: int = 0
    authorized_count: int = 0
    turnout: float = Field(0.0, ge=0.0, le=1.0)
    degraded: bool = False
    error: Optional[str] = Field(None, description="Why the view is degraded")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def turnout_percent(self) -> int:
        return round(self.turnout * 100)

    @property
    def leader(self) -> Optional[Candidate]:
        """Top-ranked candidate, if anyone has received a vote."""
        if self.candidates and self.candidates[0].vote_count > 0:
            return self.candidates[0]
        return None


class ElectionBoard(BaseModel):
    """All per-post views plus aggregates over the non-degraded ones."""

    views: list[ElectionView] = Field(default_factory=list)
    total_votes: int = 0
    open_count: int = 0
    candidate_count: int = 0
    degraded_posts: list[str] = Field(default_factory=list)

    @property
    def posts(self) -> list[str]:
        return [view.post for view in self.views]

    def view_for(self, post: str) -> Optional[ElectionView]:
        for view in self.views:
            if view.post == post:
                return view
        return None


# =============================================================================
# Requests
# =============================================================================


class ScheduleRequest(BaseModel):
    """Set the voting window of a post, creating the post if needed."""

    post: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class CandidateCreate(BaseModel):
    name: str
    party: str = ""
    post: str
    image_ref: str = Field("", description="Data URL from the image normalizer, or an image URL")


class VoteRequest(BaseModel):
    candidate_id: int


class NormalizedImageResponse(BaseModel):
    width: int
    height: int
    data_url: str
