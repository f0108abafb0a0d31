"""
Election endpoints.

Reads serve the ranked election board; lifecycle commands are admin-only
and return once the ledger has confirmed them.
"""

from fastapi import APIRouter, HTTPException, status

from api.deps import AdminWorkspace, CurrentWorkspace
from schemas.admin import CommandResult
from schemas.dashboard import PostEligibility
from schemas.election import ElectionBoard, ElectionView, ScheduleRequest
from services.election_aggregator import ElectionAggregator
from services.eligibility import evaluate, fetch_snapshot

router = APIRouter()


async def _require_post(workspace: CurrentWorkspace, post: str) -> None:
    if post not in await workspace.ledger.list_posts():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No election exists for post '{post}'")


@router.get("", response_model=ElectionBoard)
async def get_board(workspace: CurrentWorkspace) -> ElectionBoard:
    """All elections with ranked candidates, turnout and aggregates."""
    return await workspace.store.load_elections()


@router.get("/{post}", response_model=ElectionView)
async def get_election(post: str, workspace: CurrentWorkspace) -> ElectionView:
    await _require_post(workspace, post)
    return await ElectionAggregator(workspace.ledger).build_view(post)


@router.get("/{post}/eligibility", response_model=PostEligibility)
async def get_eligibility(post: str, workspace: CurrentWorkspace) -> PostEligibility:
    """Whether the connected identity may vote for ``post`` right now."""
    ledger = workspace.ledger
    identity, snapshot = await fetch_snapshot(ledger, ledger.sender)
    reason = evaluate(identity, post, snapshot)
    return PostEligibility(post=post, can_vote=reason is None, reason=reason.message if reason else None)


@router.post("/schedule", response_model=CommandResult)
async def schedule_election(request: ScheduleRequest, workspace: AdminWorkspace) -> CommandResult:
    """Set the voting window of a post, creating the post if it does not exist."""
    return await workspace.commander.schedule_election(request.post, request.start_time, request.end_time)


@router.post("/{post}/start", response_model=CommandResult)
async def start_election(post: str, workspace: AdminWorkspace) -> CommandResult:
    return await workspace.commander.start_election(post)


@router.post("/{post}/end", response_model=CommandResult)
async def end_election(post: str, workspace: AdminWorkspace) -> CommandResult:
    return await workspace.commander.end_election(post)


@router.post("/{post}/reset", response_model=CommandResult)
async def reset_election(post: str, workspace: AdminWorkspace) -> CommandResult:
    """Reopen a closed election for scheduling. Votes are cleared, candidates kept."""
    return await workspace.commander.reset_election(post)


@router.delete("/{post}", response_model=CommandResult)
async def delete_election(post: str, workspace: AdminWorkspace) -> CommandResult:
    """Remove a post together with its candidates and votes."""
    return await workspace.commander.delete_election(post)
