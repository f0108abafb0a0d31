"""
In-process ledger.

Holds the same rules the deployed ledger enforces so the client layer can be
exercised without a network: owner-only admin commands, the per-post election
state machine, one vote per identity per post, and capacity limits.

A LedgerState is shared; each connected identity gets its own
InMemoryLedgerClient bound to its sender address. Submitted writes are
applied only when the returned PendingCommand is awaited, mirroring the
submit/confirm split of the real ledger.
"""

import asyncio
import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from core.exceptions import RejectedCommand
from repositories.ledger import from_ledger_timestamp
from schemas.admin import AdminContact, CapacityLimits, CommandReceipt
from schemas.election import Candidate, ElectionState, ElectionWindow
from schemas.identity import Identity, IdentityRef, VoteStatus

logger = structlog.get_logger(__name__)

ONLY_ADMIN = "Only admin can perform this action"

DEFAULT_LIMITS = CapacityLimits(max_candidates=100, max_voters=1000, max_registered_users=1000)


def _hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


@dataclass
class _Window:
    state: ElectionState = ElectionState.NOT_SCHEDULED
    start: int = 0
    end: int = 0


@dataclass
class _User:
    address: str
    username: str
    is_registered: bool = True
    is_authorized: bool = False


class LedgerState:
    """Authoritative state shared by every in-memory client."""

    def __init__(
        self,
        owner: str,
        admin_username: str = "admin",
        admin_password: str = "admin",
        limits: CapacityLimits = DEFAULT_LIMITS,
    ):
        self.owner = owner.lower()
        self.admin_username = admin_username
        self._admin_password_hash = _hash_password(admin_password)
        self.contact = AdminContact()
        self.limits = limits.model_copy()

        self.posts: list[str] = []
        self.windows: dict[str, _Window] = {}
        self.candidates: dict[int, Candidate] = {}
        self.next_candidate_id = 1
        self.users: dict[str, _User] = {}
        self.authorized: list[str] = []
        self.votes: dict[tuple[str, str], int] = {}

        self._tx_counter = 0
        self.lock = asyncio.Lock()

    def client(self, sender: str) -> "InMemoryLedgerClient":
        return InMemoryLedgerClient(self, sender)

    def next_reference(self) -> str:
        self._tx_counter += 1
        return f"0x{self._tx_counter:064x}"

    def check_admin_password(self, username: str, password: str) -> bool:
        return hmac.compare_digest(username, self.admin_username) and hmac.compare_digest(
            _hash_password(password), self._admin_password_hash
        )

    def set_admin_password(self, password: str) -> None:
        self._admin_password_hash = _hash_password(password)


class _MemoryPendingCommand:
    """Pending write; the mutation runs when wait() is awaited."""

    def __init__(self, state: LedgerState, command: str, apply: Callable[[], None]):
        self._state = state
        self._apply = apply
        self._receipt: Optional[CommandReceipt] = None
        self.command = command
        self.reference = state.next_reference()

    async def wait(self) -> CommandReceipt:
        if self._receipt is not None:
            return self._receipt
        async with self._state.lock:
            try:
                self._apply()
            except RejectedCommand as e:
                e.command = self.command
                logger.info("memory_ledger_rejected", command=self.command, reason=e.reason)
                raise
        self._receipt = CommandReceipt(
            command=self.command,
            reference=self.reference,
            confirmed_at=datetime.now(timezone.utc),
        )
        return self._receipt


class InMemoryLedgerClient:
    """Ledger client bound to one sender address."""

    def __init__(self, state: LedgerState, sender: str):
        self._state = state
        self.sender = sender.lower()

    def _pending(self, command: str, apply: Callable[[], None]) -> _MemoryPendingCommand:
        return _MemoryPendingCommand(self._state, command, apply)

    def _require_admin(self) -> None:
        if self.sender != self._state.owner:
            raise RejectedCommand(ONLY_ADMIN)

    def _require_post(self, post: str) -> _Window:
        window = self._state.windows.get(post)
        if window is None:
            raise RejectedCommand("Post does not exist")
        return window

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_posts(self) -> list[str]:
        return list(self._state.posts)

    async def get_election_info(self, post: str) -> ElectionWindow:
        window = self._state.windows.get(post, _Window())
        return ElectionWindow(
            post=post,
            state=window.state,
            start_time=from_ledger_timestamp(window.start),
            end_time=from_ledger_timestamp(window.end),
        )

    async def list_candidates(self) -> list[Candidate]:
        return [candidate.model_copy() for candidate in self._state.candidates.values()]

    async def list_authorized_voters(self) -> list[IdentityRef]:
        return [
            IdentityRef(address=address, username=self._state.users[address].username)
            for address in self._state.authorized
            if address in self._state.users
        ]

    async def list_registered_users(self) -> list[IdentityRef]:
        return [IdentityRef(address=user.address, username=user.username) for user in self._state.users.values()]

    async def get_identity_info(self, address: str) -> Identity:
        user = self._state.users.get(address.lower())
        if user is None:
            return Identity(address=address)
        return Identity(
            address=user.address,
            username=user.username,
            is_registered=user.is_registered,
            is_authorized=user.is_authorized,
        )

    async def get_vote_status(self, address: str, post: str) -> VoteStatus:
        key = address.lower()
        user = self._state.users.get(key)
        candidate_id = self._state.votes.get((key, post))
        return VoteStatus(
            post=post,
            is_authorized=bool(user and user.is_authorized),
            has_voted=candidate_id is not None,
            candidate_id=candidate_id,
        )

    async def verify_admin_credentials(self, username: str, password: str) -> bool:
        return self._state.check_admin_password(username, password)

    async def get_admin_username(self) -> str:
        return self._state.admin_username

    async def get_admin_contact(self) -> AdminContact:
        return self._state.contact.model_copy()

    async def get_capacity_limits(self) -> CapacityLimits:
        return self._state.limits.model_copy()

    # =========================================================================
    # Election lifecycle
    # =========================================================================

    async def schedule_election(self, post: str, start: int, end: int) -> _MemoryPendingCommand:
        def apply() -> None:
            self._require_admin()
            if not post:
                raise RejectedCommand("Post name required")
            if end <= start:
                raise RejectedCommand("End time must be after start time")
            window = self._state.windows.get(post)
            if window is None:
                window = _Window()
                self._state.windows[post] = window
                self._state.posts.append(post)
            elif window.state == ElectionState.OPEN:
                raise RejectedCommand("Election already open")
            window.start = start
            window.end = end

        return self._pending("schedule_election", apply)

    async def start_election(self, post: str) -> _MemoryPendingCommand:
        def apply() -> None:
            self._require_admin()
            window = self._require_post(post)
            if window.state != ElectionState.NOT_SCHEDULED:
                raise RejectedCommand("Election cannot be started in its current state")
            window.state = ElectionState.OPEN

        return self._pending("start_election", apply)

    async def end_election(self, post: str) -> _MemoryPendingCommand:
        def apply() -> None:
            self._require_admin()
            window = self._require_post(post)
            if window.state != ElectionState.OPEN:
                raise RejectedCommand("Election is not open")
            window.state = ElectionState.CLOSED

        return self._pending("end_election", apply)

    async def reset_election(self, post: str) -> _MemoryPendingCommand:
        def apply() -> None:
            self._require_admin()
            window = self._require_post(post)
            if window.state != ElectionState.CLOSED:
                raise RejectedCommand("Election must be closed before reset")
            for candidate in self._state.candidates.values():
                if candidate.post == post:
                    candidate.vote_count = 0
            for key in [key for key in self._state.votes if key[1] == post]:
                del self._state.votes[key]
            window.state = ElectionState.NOT_SCHEDULED

        return self._pending("reset_election", apply)

    async def delete_election(self, post: str) -> _MemoryPendingCommand:
        def apply() -> None:
            self._require_admin()
            self._require_post(post)
            del self._state.windows[post]
            self._state.posts.remove(post)
            self._state.candidates = {
                cid: candidate for cid, candidate in self._state.candidates.items() if candidate.post != post
            }
            for key in [key for key in self._state.votes if key[1] == post]:
                del self._state.votes[key]

        return self._pending("delete_election", apply)

    # =========================================================================
    # Candidates
    # =========================================================================

    async def add_candidate(self, name: str, party: str, image_ref: str, post: str) -> _MemoryPendingCommand:
        def apply() -> None:
            self._require_admin()
            if not name:
                raise RejectedCommand("Candidate name required")
            self._require_post(post)
            if len(self._state.candidates) >= self._state.limits.max_candidates:
                raise RejectedCommand("Maximum candidates reached")
            candidate_id = self._state.next_candidate_id
            self._state.next_candidate_id += 1
            self._state.candidates[candidate_id] = Candidate(
                id=candidate_id, name=name, party=party, post=post, image_ref=image_ref
            )

        return self._pending("add_candidate", apply)

    async def delete_candidate(self, candidate_id: int) -> _MemoryPendingCommand:
        def apply() -> None:
            self._require_admin()
            if candidate_id not in self._state.candidates:
                raise RejectedCommand("Candidate does not exist")
            del self._state.candidates[candidate_id]

        return self._pending("delete_candidate", apply)

    # =========================================================================
    # Identities
    # =========================================================================

    async def register_identity(self, username: str) -> _MemoryPendingCommand:
        sender = self.sender

        def apply() -> None:
            if sender in self._state.users:
                raise RejectedCommand("User already registered")
            if not username:
                raise RejectedCommand("Username required")
            if len(self._state.users) >= self._state.limits.max_registered_users:
                raise RejectedCommand("Maximum registered users reached")
            self._state.users[sender] = _User(address=sender, username=username)

        return self._pending("register_identity", apply)

    async def authorize_voter(self, address: str) -> _MemoryPendingCommand:
        key = address.lower()

        def apply() -> None:
            self._require_admin()
            user = self._state.users.get(key)
            if user is None:
                raise RejectedCommand("User not registered")
            if user.is_authorized:
                raise RejectedCommand("Voter already authorized")
            if len(self._state.authorized) >= self._state.limits.max_voters:
                raise RejectedCommand("Maximum voters reached")
            user.is_authorized = True
            self._state.authorized.append(key)

        return self._pending("authorize_voter", apply)

    async def delete_identity(self, address: str) -> _MemoryPendingCommand:
        key = address.lower()

        def apply() -> None:
            self._require_admin()
            if key not in self._state.users:
                raise RejectedCommand("User not registered")
            del self._state.users[key]
            if key in self._state.authorized:
                self._state.authorized.remove(key)

        return self._pending("delete_identity", apply)

    # =========================================================================
    # Voting
    # =========================================================================

    async def cast_vote(self, candidate_id: int) -> _MemoryPendingCommand:
        sender = self.sender

        def apply() -> None:
            candidate = self._state.candidates.get(candidate_id)
            if candidate is None:
                raise RejectedCommand("Invalid candidate")
            user = self._state.users.get(sender)
            if user is None or not user.is_authorized:
                raise RejectedCommand("Not authorized to vote")
            window = self._state.windows.get(candidate.post)
            if window is None or window.state != ElectionState.OPEN:
                raise RejectedCommand("Voting is not open for this post")
            if (sender, candidate.post) in self._state.votes:
                raise RejectedCommand("Already voted for this post")
            candidate.vote_count += 1
            self._state.votes[(sender, candidate.post)] = candidate_id

        return self._pending("cast_vote", apply)

    # =========================================================================
    # Admin settings
    # =========================================================================

    async def update_admin_credentials(self, username: str, password: str) -> _MemoryPendingCommand:
        def apply() -> None:
            self._require_admin()
            if not username or not password:
                raise RejectedCommand("Username and password required")
            self._state.admin_username = username
            self._state.set_admin_password(password)

        return self._pending("update_admin_credentials", apply)

    async def set_capacity_limits(
        self, max_candidates: int, max_voters: int, max_registered_users: int
    ) -> _MemoryPendingCommand:
        def apply() -> None:
            self._require_admin()
            if min(max_candidates, max_voters, max_registered_users) < 0:
                raise RejectedCommand("Limits must be non-negative")
            self._state.limits = CapacityLimits(
                max_candidates=max_candidates,
                max_voters=max_voters,
                max_registered_users=max_registered_users,
            )

        return self._pending("set_capacity_limits", apply)

    async def set_admin_contact(self, email: str, phone: str) -> _MemoryPendingCommand:
        def apply() -> None:
            self._require_admin()
            self._state.contact = AdminContact(email=email, phone=phone)

        return self._pending("set_admin_contact", apply)
