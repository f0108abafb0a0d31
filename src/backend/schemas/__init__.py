"""Schemas module initialization."""

from schemas.admin import AdminContact, AdminCredentials, CapacityLimits, CommandReceipt, CommandResult
from schemas.dashboard import AdminDashboard, Dashboard, PostEligibility, VoterDashboard
from schemas.election import (
    Candidate,
    CandidateCreate,
    ElectionBoard,
    ElectionState,
    ElectionView,
    ElectionWindow,
    NormalizedImageResponse,
    ScheduleRequest,
    VoteRequest,
)
from schemas.export import ExportTable, ExportWorkbook
from schemas.session import LoginRequest, SessionResponse, SwitchIdentityRequest
from schemas.identity import (
    DirectoryEntry,
    DirectorySummary,
    Identity,
    IdentityRef,
    VoteBreakdown,
    VoteHistoryEntry,
    VoteStatus,
)

__all__ = [
    "AdminContact",
    "AdminCredentials",
    "CapacityLimits",
    "CommandReceipt",
    "CommandResult",
    "AdminDashboard",
    "Dashboard",
    "PostEligibility",
    "VoterDashboard",
    "Candidate",
    "CandidateCreate",
    "NormalizedImageResponse",
    "ScheduleRequest",
    "VoteRequest",
    "LoginRequest",
    "SessionResponse",
    "SwitchIdentityRequest",
    "ElectionBoard",
    "ElectionState",
    "ElectionView",
    "ElectionWindow",
    "ExportTable",
    "ExportWorkbook",
    "DirectoryEntry",
    "DirectorySummary",
    "Identity",
    "IdentityRef",
    "VoteBreakdown",
    "VoteHistoryEntry",
    "VoteStatus",
]
