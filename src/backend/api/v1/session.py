"""
Session endpoints.

Login derives the role from the ledger and returns a session id that the
client sends back in the X-Session-ID header.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import CurrentWorkspace, get_session_registry
from schemas.dashboard import AdminDashboard, VoterDashboard
from schemas.session import LoginRequest, SessionResponse, SwitchIdentityRequest
from services.auth_service import SessionRegistry, SessionWorkspace
from services.dashboard_service import build_dashboard

router = APIRouter()


def _session_response(workspace: SessionWorkspace, warnings: list[str] | None = None) -> SessionResponse:
    session = workspace.session
    return SessionResponse(
        session_id=session.session_id,
        address=session.address,
        role=session.role.value,
        username=session.username,
        epoch=session.epoch.current,
        warnings=warnings or [],
    )


@router.post("/login", response_model=SessionResponse)
async def login(
    request: LoginRequest,
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> SessionResponse:
    """
    Authenticate a connected address.

    Admin credentials open an admin session. Any other non-empty credentials
    open a voter session, registering the identity on first login.
    """
    result = await registry.open(request.address, request.username, request.password)
    return _session_response(result.workspace, result.warnings)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    workspace: CurrentWorkspace,
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> None:
    """Tear down the session."""
    registry.close(workspace.session.session_id)


@router.post("/identity", response_model=SessionResponse)
async def switch_identity(
    request: SwitchIdentityRequest,
    workspace: CurrentWorkspace,
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> SessionResponse:
    """Rebind the session to a newly connected address."""
    try:
        workspace = registry.switch_identity(workspace.session.session_id, request.address)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired or unknown")
    return _session_response(workspace)


@router.get("/dashboard", response_model=AdminDashboard | VoterDashboard)
async def dashboard(workspace: CurrentWorkspace) -> AdminDashboard | VoterDashboard:
    """Role-specific dashboard for the connected identity."""
    return await build_dashboard(workspace)
