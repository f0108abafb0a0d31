"""
Dashboard assembly.

One dispatcher keyed by Role builds the dashboard for the connected
identity. Optional panels (limits, admin contact) degrade to None when
their read fails; the election board and directories come from the
session's read-model store and fall back to the last published models.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from core.exceptions import FetchFailure
from core.session import Role
from schemas.dashboard import AdminDashboard, Dashboard, PostEligibility, VoterDashboard
from services.auth_service import SessionWorkspace
from services.directory_service import summarize
from services.eligibility import evaluate, fetch_snapshot

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def _optional(panel: str, loader: Callable[[], Awaitable[T]]) -> Optional[T]:
    try:
        return await loader()
    except FetchFailure as e:
        logger.warning("dashboard_panel_unavailable", panel=panel, error=e.message)
        return None


async def build_admin_dashboard(workspace: SessionWorkspace) -> AdminDashboard:
    store = workspace.store
    board, registered, authorized, limits = await asyncio.gather(
        store.load_elections(),
        store.load_registered_users(),
        store.load_authorized_voters(),
        _optional("limits", workspace.ledger.get_capacity_limits),
    )
    return AdminDashboard(
        address=workspace.session.address,
        board=board,
        registered_users=summarize(registered),
        authorized_voters=summarize(authorized),
        limits=limits,
        in_flight=sorted(workspace.guard.in_flight),
    )


async def build_voter_dashboard(workspace: SessionWorkspace) -> VoterDashboard:
    ledger = workspace.ledger
    board, (identity, snapshot), history, contact = await asyncio.gather(
        workspace.store.load_elections(),
        fetch_snapshot(ledger, ledger.sender),
        workspace.ballot.voting_history(),
        _optional("admin_contact", ledger.get_admin_contact),
    )

    eligibility = []
    for post in board.posts:
        reason = evaluate(identity, post, snapshot)
        eligibility.append(
            PostEligibility(post=post, can_vote=reason is None, reason=reason.message if reason else None)
        )

    return VoterDashboard(
        identity=identity,
        board=board,
        eligibility=eligibility,
        history=history,
        admin_contact=contact,
        in_flight=sorted(workspace.guard.in_flight),
    )


DASHBOARD_BUILDERS: dict[Role, Callable[[SessionWorkspace], Awaitable[Dashboard]]] = {
    Role.ADMIN: build_admin_dashboard,
    Role.VOTER: build_voter_dashboard,
}


async def build_dashboard(workspace: SessionWorkspace) -> Dashboard:
    """Build the dashboard for the session's role."""
    return await DASHBOARD_BUILDERS[workspace.session.role](workspace)
