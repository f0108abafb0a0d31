"""
Shared dependencies for API endpoints.

Includes:
- Session resolution from the X-Session-ID header
- Admin role enforcement
- Ledger provider and session registry access
"""

from typing import Annotated

import structlog
from fastapi import Depends, Header, HTTPException, Request, status

from repositories.provider import LedgerProvider
from services.auth_service import SessionRegistry, SessionWorkspace

logger = structlog.get_logger(__name__)

SESSION_HEADER = "X-Session-ID"


# =============================================================================
# Application State
# =============================================================================


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_ledger_provider(request: Request) -> LedgerProvider:
    return request.app.state.ledger_provider


# =============================================================================
# Session Authentication
# =============================================================================


async def get_current_workspace(
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
    session_id: Annotated[str | None, Header(alias=SESSION_HEADER)] = None,
) -> SessionWorkspace:
    """
    Resolve the caller's session.

    Raises:
        HTTPException: If the header is missing or the session is unknown or closed.
    """
    if not session_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session required",
        )

    workspace = registry.get(session_id)
    if workspace is None:
        logger.info("unknown_session", session_prefix=session_id[:6])
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired or unknown",
        )
    return workspace


async def get_current_admin(
    workspace: Annotated[SessionWorkspace, Depends(get_current_workspace)],
) -> SessionWorkspace:
    """
    Require the admin role.

    Raises:
        HTTPException: If the connected identity is not the admin.
    """
    if not workspace.session.is_admin:
        logger.warning("admin_access_denied", address=workspace.session.address)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return workspace


CurrentWorkspace = Annotated[SessionWorkspace, Depends(get_current_workspace)]
AdminWorkspace = Annotated[SessionWorkspace, Depends(get_current_admin)]
