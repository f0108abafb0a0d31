"""
Voter endpoints.

Directory listings and admin identity commands, plus the voter's own
ballot operations.
"""

from typing import Optional

from fastapi import APIRouter, Query

from api.deps import AdminWorkspace, CurrentWorkspace
from schemas.admin import CommandResult
from schemas.election import VoteRequest
from schemas.identity import DirectoryEntry, VoteBreakdown, VoteHistoryEntry
from services.directory_service import filter_entries

router = APIRouter()


@router.get("/registered", response_model=list[DirectoryEntry])
async def get_registered_users(
    workspace: AdminWorkspace,
    search: Optional[str] = Query(None, description="Case-insensitive match on username or address"),
) -> list[DirectoryEntry]:
    return filter_entries(await workspace.store.load_registered_users(), search)


@router.get("/authorized", response_model=list[DirectoryEntry])
async def get_authorized_voters(
    workspace: AdminWorkspace,
    search: Optional[str] = Query(None, description="Case-insensitive match on username or address"),
) -> list[DirectoryEntry]:
    return filter_entries(await workspace.store.load_authorized_voters(), search)


@router.get("/breakdown", response_model=VoteBreakdown)
async def get_vote_breakdown(
    workspace: AdminWorkspace,
    post: Optional[str] = Query(None),
) -> VoteBreakdown:
    """Which identities voted for which candidate."""
    return await workspace.ballot.vote_breakdown(post)


@router.post("/{address}/authorize", response_model=CommandResult)
async def authorize_voter(address: str, workspace: AdminWorkspace) -> CommandResult:
    return await workspace.commander.authorize_voter(address)


@router.delete("/{address}", response_model=CommandResult)
async def delete_identity(address: str, workspace: AdminWorkspace) -> CommandResult:
    return await workspace.commander.delete_identity(address)


@router.post("/vote", response_model=CommandResult)
async def cast_vote(request: VoteRequest, workspace: CurrentWorkspace) -> CommandResult:
    """Vote as the connected identity. Eligibility is checked against fresh ledger state."""
    return await workspace.ballot.cast_vote(request.candidate_id)


@router.get("/me/history", response_model=list[VoteHistoryEntry])
async def get_voting_history(workspace: CurrentWorkspace) -> list[VoteHistoryEntry]:
    return await workspace.ballot.voting_history()
