"""
Read-model publication for one session.

Every refresh captures the session's identity epoch before it fans out and
checks it again after the join. If the connected identity changed in the
meantime the result is discarded, never applied. A failed refresh leaves
the previously published model in place.

ActionGuard tracks which triggering actions have a command awaiting
confirmation, so the same action cannot be submitted twice.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable, Optional, TypeVar

import structlog

from core.exceptions import CommandInProgress, FetchFailure, StaleIdentityDiscard
from core.session import IdentityEpoch
from repositories.ledger import LedgerClientProtocol
from schemas.election import ElectionBoard
from schemas.identity import DirectoryEntry
from services.directory_service import RegisteredUserDirectory, VoterDirectory
from services.election_aggregator import ElectionAggregator

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ActionGuard:
    """In-flight registry of action keys such as ``start_election:President``."""

    def __init__(self) -> None:
        self._in_flight: set[str] = set()

    @staticmethod
    def key(action: str, target: object = "") -> str:
        return f"{action}:{target}" if target != "" else action

    def busy(self, key: str) -> bool:
        return key in self._in_flight

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncGenerator[None, None]:
        """
        Hold ``key`` until the block exits.

        Raises:
            CommandInProgress: If the key is already held.
        """
        if key in self._in_flight:
            raise CommandInProgress(key)
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)


class ReadModelStore:
    """Latest confirmed read-models for one connected identity."""

    def __init__(self, ledger: LedgerClientProtocol, epoch: IdentityEpoch):
        self.ledger = ledger
        self._epoch = epoch
        self.elections: Optional[ElectionBoard] = None
        self.registered_users: Optional[list[DirectoryEntry]] = None
        self.authorized_voters: Optional[list[DirectoryEntry]] = None
        self.errors: dict[str, str] = {}

    def rebind(self, ledger: LedgerClientProtocol) -> None:
        """Switch to another identity's ledger client and drop its models."""
        self.ledger = ledger
        self.elections = None
        self.registered_users = None
        self.authorized_voters = None
        self.errors.clear()

    async def _refresh(self, name: str, loader: Callable[[], Awaitable[T]]) -> Optional[T]:
        token = self._epoch.token()
        try:
            result = await loader()
        except FetchFailure as e:
            if token.is_current():
                self.errors[name] = e.message
                logger.warning("read_model_refresh_failed", model=name, error=e.message)
            raise

        try:
            token.ensure_current()
        except StaleIdentityDiscard as e:
            logger.debug(
                "stale_result_discarded",
                model=name,
                captured_epoch=e.captured_epoch,
                current_epoch=e.current_epoch,
            )
            return None

        setattr(self, name, result)
        self.errors.pop(name, None)
        return result

    async def refresh_elections(self) -> Optional[ElectionBoard]:
        """Re-fetch the election board. Returns None if the result went stale."""
        ledger = self.ledger
        return await self._refresh("elections", lambda: ElectionAggregator(ledger).build_board())

    async def refresh_registered_users(self) -> Optional[list[DirectoryEntry]]:
        ledger = self.ledger
        return await self._refresh("registered_users", lambda: RegisteredUserDirectory(ledger).load())

    async def refresh_authorized_voters(self) -> Optional[list[DirectoryEntry]]:
        ledger = self.ledger
        return await self._refresh("authorized_voters", lambda: VoterDirectory(ledger).load())

    async def refresh_directories(self) -> None:
        await asyncio.gather(self.refresh_registered_users(), self.refresh_authorized_voters())

    async def load_elections(self) -> ElectionBoard:
        """
        Refresh the board, falling back to the last published one on failure.

        Raises:
            FetchFailure: If the refresh failed and nothing was published yet.
        """
        try:
            board = await self.refresh_elections()
        except FetchFailure:
            if self.elections is None:
                raise
            return self.elections
        return board if board is not None else (self.elections or ElectionBoard())

    async def load_registered_users(self) -> list[DirectoryEntry]:
        try:
            entries = await self.refresh_registered_users()
        except FetchFailure:
            if self.registered_users is None:
                raise
            return self.registered_users
        return entries if entries is not None else list(self.registered_users or [])

    async def load_authorized_voters(self) -> list[DirectoryEntry]:
        try:
            entries = await self.refresh_authorized_voters()
        except FetchFailure:
            if self.authorized_voters is None:
                raise
            return self.authorized_voters
        return entries if entries is not None else list(self.authorized_voters or [])
