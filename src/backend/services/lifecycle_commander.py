"""
Lifecycle Commander

Validates and issues election lifecycle, candidate, identity and admin
settings commands.

Per-post state machine:
    NotScheduled --schedule--> NotScheduled (window set)
    NotScheduled --start-->    Open
    Open         --end-->      Closed
    Closed       --reset-->    NotScheduled (candidates kept, votes cleared)
    any          --delete-->   removed

Preconditions are checked against a fresh ledger read before anything is
submitted; a failed check raises ValidationError and nothing reaches the
ledger. A submitted command is awaited until the ledger confirms it, and
only then are the affected read-models fully re-fetched. A rejection leaves
every published read-model untouched.
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Optional

import structlog

from core.exceptions import FetchFailure, RejectedCommand, ValidationError
from repositories.ledger import LedgerClientProtocol, PendingCommand, to_ledger_timestamp
from schemas.admin import AdminContact, CapacityLimits, CommandResult
from schemas.election import ElectionState, ElectionWindow
from services.read_model_store import ActionGuard, ReadModelStore

logger = structlog.get_logger(__name__)

# Which read-models a confirmed command invalidates
ELECTIONS = "elections"
DIRECTORIES = "directories"


class LifecycleCommander:
    """Issues admin commands on behalf of one session."""

    def __init__(self, store: ReadModelStore, guard: ActionGuard):
        self.store = store
        self.guard = guard

    @property
    def ledger(self) -> LedgerClientProtocol:
        return self.store.ledger

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute(
        self,
        action: str,
        target: object,
        submit: Callable[[], Awaitable[PendingCommand]],
        message: str,
        refresh: tuple[str, ...] = (),
    ) -> CommandResult:
        """
        Submit a command, await confirmation, then refresh read-models.

        Raises:
            CommandInProgress: If the same action is already awaiting confirmation.
            RejectedCommand: If the ledger refuses the command.
        """
        key = ActionGuard.key(action, target)
        async with self.guard.hold(key):
            logger.info("command_submitted", action=action, target=str(target))
            try:
                pending = await submit()
                receipt = await pending.wait()
            except RejectedCommand as e:
                e.command = e.command or action
                logger.warning("command_rejected", action=action, target=str(target), reason=e.reason)
                raise
            logger.info("command_confirmed", action=action, target=str(target), reference=receipt.reference)
            await self._refresh_after(action, refresh)

        return CommandResult(action=action, target=str(target), message=message, reference=receipt.reference)

    async def _refresh_after(self, action: str, refresh: tuple[str, ...]) -> None:
        tasks = []
        if ELECTIONS in refresh:
            tasks.append(self.store.refresh_elections())
        if DIRECTORIES in refresh:
            tasks.append(self.store.refresh_directories())

        for result in await asyncio.gather(*tasks, return_exceptions=True):
            if isinstance(result, FetchFailure):
                # The command is durable; the stale model stays until the next refresh
                logger.warning("post_command_refresh_failed", action=action, error=result.message)
            elif isinstance(result, BaseException):
                raise result

    async def _current_window(self, post: str) -> ElectionWindow:
        posts, window = await asyncio.gather(self.ledger.list_posts(), self.ledger.get_election_info(post))
        if post not in posts:
            raise ValidationError(f"No election exists for post '{post}'", field="post")
        return window

    @staticmethod
    def _require_post_name(post: str) -> str:
        post = (post or "").strip()
        if not post:
            raise ValidationError("Please enter a post name", field="post")
        return post

    @staticmethod
    def _require_state(window: ElectionWindow, expected: ElectionState, verb: str) -> None:
        if window.state != expected:
            raise ValidationError(
                f"Cannot {verb} election for {window.post}: it is {window.state.display_label}",
                field="state",
            )

    # =========================================================================
    # Election lifecycle
    # =========================================================================

    async def schedule_election(
        self, post: str, start: Optional[datetime], end: Optional[datetime]
    ) -> CommandResult:
        post = self._require_post_name(post)
        if start is None or end is None:
            raise ValidationError("Please select both start and end date/time", field="start")
        start_ts = to_ledger_timestamp(start)
        end_ts = to_ledger_timestamp(end)
        if end_ts <= start_ts:
            raise ValidationError("End time must be after start time", field="end")

        window = await self.ledger.get_election_info(post)
        if window.state == ElectionState.OPEN:
            raise ValidationError(f"Election for {post} is already open", field="state")

        return await self.execute(
            "schedule_election",
            post,
            lambda: self.ledger.schedule_election(post, start_ts, end_ts),
            f"Election scheduled for {post}!",
            refresh=(ELECTIONS,),
        )

    async def start_election(self, post: str) -> CommandResult:
        post = self._require_post_name(post)
        self._require_state(await self._current_window(post), ElectionState.NOT_SCHEDULED, "start")
        return await self.execute(
            "start_election",
            post,
            lambda: self.ledger.start_election(post),
            f"Election for {post} started!",
            refresh=(ELECTIONS,),
        )

    async def end_election(self, post: str) -> CommandResult:
        post = self._require_post_name(post)
        self._require_state(await self._current_window(post), ElectionState.OPEN, "end")
        return await self.execute(
            "end_election",
            post,
            lambda: self.ledger.end_election(post),
            f"Election for {post} ended!",
            refresh=(ELECTIONS,),
        )

    async def reset_election(self, post: str) -> CommandResult:
        post = self._require_post_name(post)
        self._require_state(await self._current_window(post), ElectionState.CLOSED, "reset")
        return await self.execute(
            "reset_election",
            post,
            lambda: self.ledger.reset_election(post),
            f"Election for {post} reset! Votes cleared.",
            refresh=(ELECTIONS,),
        )

    async def delete_election(self, post: str) -> CommandResult:
        post = self._require_post_name(post)
        return await self.execute(
            "delete_election",
            post,
            lambda: self.ledger.delete_election(post),
            f"Election for {post} entirely deleted!",
            refresh=(ELECTIONS,),
        )

    # =========================================================================
    # Candidates
    # =========================================================================

    async def add_candidate(self, name: str, party: str, post: str, image_ref: str = "") -> CommandResult:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Candidate name is required", field="name")
        post = (post or "").strip()
        if not post:
            raise ValidationError("Please enter a post name first", field="post")
        if post not in await self.ledger.list_posts():
            raise ValidationError(f"No election exists for post '{post}'", field="post")

        party = (party or "").strip()
        return await self.execute(
            "add_candidate",
            f"{post}/{name}",
            lambda: self.ledger.add_candidate(name, party, image_ref or "", post),
            f"Candidate added successfully to {post}!",
            refresh=(ELECTIONS,),
        )

    async def delete_candidate(self, candidate_id: int) -> CommandResult:
        if candidate_id < 0:
            raise ValidationError("Invalid candidate id", field="candidate_id")
        return await self.execute(
            "delete_candidate",
            candidate_id,
            lambda: self.ledger.delete_candidate(candidate_id),
            "Candidate deleted successfully!",
            refresh=(ELECTIONS,),
        )

    # =========================================================================
    # Identities
    # =========================================================================

    @staticmethod
    def _require_address(address: str) -> str:
        address = (address or "").strip()
        if not address:
            raise ValidationError("An identity address is required", field="address")
        return address

    async def authorize_voter(self, address: str) -> CommandResult:
        address = self._require_address(address)
        return await self.execute(
            "authorize_voter",
            address,
            lambda: self.ledger.authorize_voter(address),
            "Voter authorized successfully!",
            refresh=(DIRECTORIES, ELECTIONS),
        )

    async def delete_identity(self, address: str) -> CommandResult:
        address = self._require_address(address)
        return await self.execute(
            "delete_identity",
            address,
            lambda: self.ledger.delete_identity(address),
            f"User {address} deleted successfully!",
            refresh=(DIRECTORIES, ELECTIONS),
        )

    # =========================================================================
    # Admin settings
    # =========================================================================

    async def update_admin_credentials(self, username: str, password: str) -> CommandResult:
        username = (username or "").strip()
        if not username or not password:
            raise ValidationError("Username and password are required", field="username")
        return await self.execute(
            "update_admin_credentials",
            "",
            lambda: self.ledger.update_admin_credentials(username, password),
            "Admin credentials updated successfully!",
        )

    async def set_capacity_limits(self, limits: CapacityLimits) -> CommandResult:
        return await self.execute(
            "set_capacity_limits",
            "",
            lambda: self.ledger.set_capacity_limits(
                limits.max_candidates, limits.max_voters, limits.max_registered_users
            ),
            "Limits updated successfully!",
        )

    async def set_admin_contact(self, contact: AdminContact) -> CommandResult:
        email = contact.email.strip()
        if not email or "@" not in email:
            raise ValidationError("A valid contact email is required", field="email")
        phone = contact.phone.strip()
        return await self.execute(
            "set_admin_contact",
            "",
            lambda: self.ledger.set_admin_contact(email, phone),
            "Admin contact updated successfully!",
        )
