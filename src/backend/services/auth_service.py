"""
Login and session management.

Login derives the role from the ledger: an identity whose credentials pass
admin verification is the admin; any other identity that supplies both a
username and a password is a voter, and is registered on the ledger if it
is not registered yet. A failed registration is reported as a warning and
does not block login.

Each open session gets a SessionWorkspace holding its ledger client,
read-model store, action guard and command services.
"""

from dataclasses import dataclass, field
from typing import Optional

import structlog

from core.exceptions import FetchFailure, RejectedCommand, ValidationError
from core.session import Role, SessionContext
from repositories.ledger import LedgerClientProtocol
from repositories.provider import LedgerProvider
from services.ballot_service import BallotService
from services.lifecycle_commander import LifecycleCommander
from services.read_model_store import ActionGuard, ReadModelStore

logger = structlog.get_logger(__name__)

ALREADY_REGISTERED = "User already registered"
REGISTRATION_WARNING = "Warning: Could not register username on the ledger. You can still vote if authorized."


@dataclass
class SessionWorkspace:
    """Everything bound to one connected identity."""

    session: SessionContext
    ledger: LedgerClientProtocol
    store: ReadModelStore
    guard: ActionGuard
    commander: LifecycleCommander
    ballot: BallotService

    @classmethod
    def create(cls, session: SessionContext, ledger: LedgerClientProtocol) -> "SessionWorkspace":
        store = ReadModelStore(ledger, session.epoch)
        guard = ActionGuard()
        commander = LifecycleCommander(store, guard)
        return cls(
            session=session,
            ledger=ledger,
            store=store,
            guard=guard,
            commander=commander,
            ballot=BallotService(commander),
        )


@dataclass
class LoginResult:
    """Outcome of a successful login."""

    workspace: SessionWorkspace
    warnings: list[str] = field(default_factory=list)

    @property
    def session(self) -> SessionContext:
        return self.workspace.session


class AuthService:
    """Derives the role for a connected address."""

    def __init__(self, provider: LedgerProvider):
        self.provider = provider

    async def _ensure_registered(self, ledger: LedgerClientProtocol, username: str) -> Optional[str]:
        """Register the sender if needed. Returns a warning when registration failed."""
        try:
            identity = await ledger.get_identity_info(ledger.sender)
            if identity.is_registered:
                logger.debug("identity_already_registered", address=ledger.sender)
                return None
            pending = await ledger.register_identity(username)
            await pending.wait()
        except RejectedCommand as e:
            if ALREADY_REGISTERED in e.reason:
                return None
            logger.warning("identity_registration_failed", address=ledger.sender, reason=e.reason)
            return f"{REGISTRATION_WARNING} Reason: {e.reason}"
        except FetchFailure as e:
            logger.warning("identity_registration_failed", address=ledger.sender, error=e.message)
            return f"{REGISTRATION_WARNING} Error: {e.message}"

        logger.info("identity_registered", address=ledger.sender, username=username)
        return None

    async def login(self, address: str, username: str, password: str) -> LoginResult:
        """
        Authenticate ``address`` and open a session workspace.

        Raises:
            ValidationError: If the address is missing, or the credentials are
                not admin credentials and either field is empty.
            FetchFailure: If admin verification cannot be read.
        """
        address = (address or "").strip()
        if not address:
            raise ValidationError("An identity address is required", field="address")
        username = (username or "").strip()

        ledger = self.provider.client_for(address)
        if await ledger.verify_admin_credentials(username, password or ""):
            session = SessionContext(address=ledger.sender, role=Role.ADMIN, username=username)
            logger.info("admin_login", address=session.address)
            return LoginResult(workspace=SessionWorkspace.create(session, ledger))

        if not username or not password:
            raise ValidationError("Invalid credentials or missing username/password.", field="username")

        warnings = []
        warning = await self._ensure_registered(ledger, username)
        if warning:
            warnings.append(warning)

        session = SessionContext(address=ledger.sender, role=Role.VOTER, username=username)
        logger.info("voter_login", address=session.address, registration_warning=bool(warning))
        return LoginResult(workspace=SessionWorkspace.create(session, ledger), warnings=warnings)


class SessionRegistry:
    """Open sessions keyed by session id."""

    def __init__(self, provider: LedgerProvider):
        self.provider = provider
        self.auth = AuthService(provider)
        self._workspaces: dict[str, SessionWorkspace] = {}

    def __len__(self) -> int:
        return len(self._workspaces)

    async def open(self, address: str, username: str, password: str) -> LoginResult:
        result = await self.auth.login(address, username, password)
        self._workspaces[result.session.session_id] = result.workspace
        return result

    def get(self, session_id: str) -> Optional[SessionWorkspace]:
        workspace = self._workspaces.get(session_id)
        if workspace is None or not workspace.session.active:
            return None
        return workspace

    def close(self, session_id: str) -> bool:
        """Tear down a session. Results still in flight for it are discarded."""
        workspace = self._workspaces.pop(session_id, None)
        if workspace is None:
            return False
        workspace.session.close()
        logger.info("session_closed", address=workspace.session.address, role=workspace.session.role.value)
        return True

    def switch_identity(self, session_id: str, address: str) -> SessionWorkspace:
        """
        Rebind a session to another connected address.

        The epoch advances before the store is rebound, so any refresh still
        running for the previous address is discarded when it completes. The
        role is kept; admin commands from a non-owner address are rejected
        by the ledger.

        Raises:
            KeyError: If the session is unknown.
            ValidationError: If the address is empty.
        """
        workspace = self.get(session_id)
        if workspace is None:
            raise KeyError(session_id)
        address = (address or "").strip()
        if not address:
            raise ValidationError("An identity address is required", field="address")

        ledger = self.provider.client_for(address)
        previous = workspace.session.address
        epoch = workspace.session.rebind(ledger.sender)
        workspace.ledger = ledger
        workspace.store.rebind(ledger)
        logger.info("identity_switched", previous=previous, address=ledger.sender, epoch=epoch)
        return workspace

    def close_all(self) -> None:
        for session_id in list(self._workspaces):
            self.close(session_id)
