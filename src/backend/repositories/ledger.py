"""
Ledger client interface.

The ledger is the sole source of truth for posts, candidates, identities and
votes. Clients are bound to one sender address (the connected identity); the
ledger decides what that sender may do.

Writes are two-phase: the submit call returns a PendingCommand, and the
command is only durable once ``await pending.wait()`` returns a receipt.
Either phase may raise RejectedCommand carrying the ledger's reason.
"""

from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable

from schemas.admin import AdminContact, CapacityLimits, CommandReceipt
from schemas.election import Candidate, ElectionWindow
from schemas.identity import Identity, IdentityRef, VoteStatus


def to_ledger_timestamp(value: datetime) -> int:
    """Convert a datetime to ledger seconds. Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def from_ledger_timestamp(value: int) -> Optional[datetime]:
    """Convert ledger seconds to an aware datetime; 0 means unset."""
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


@runtime_checkable
class PendingCommand(Protocol):
    """A submitted command awaiting ledger confirmation."""

    command: str
    reference: str

    async def wait(self) -> CommandReceipt: ...


@runtime_checkable
class LedgerClientProtocol(Protocol):
    """Protocol defining ledger reads and two-phase writes."""

    sender: str

    # Reads
    async def list_posts(self) -> list[str]: ...
    async def get_election_info(self, post: str) -> ElectionWindow: ...
    async def list_candidates(self) -> list[Candidate]: ...
    async def list_authorized_voters(self) -> list[IdentityRef]: ...
    async def list_registered_users(self) -> list[IdentityRef]: ...
    async def get_identity_info(self, address: str) -> Identity: ...
    async def get_vote_status(self, address: str, post: str) -> VoteStatus: ...
    async def verify_admin_credentials(self, username: str, password: str) -> bool: ...
    async def get_admin_username(self) -> str: ...
    async def get_admin_contact(self) -> AdminContact: ...
    async def get_capacity_limits(self) -> CapacityLimits: ...

    # Writes
    async def schedule_election(self, post: str, start: int, end: int) -> PendingCommand: ...
    async def start_election(self, post: str) -> PendingCommand: ...
    async def end_election(self, post: str) -> PendingCommand: ...
    async def reset_election(self, post: str) -> PendingCommand: ...
    async def delete_election(self, post: str) -> PendingCommand: ...
    async def add_candidate(self, name: str, party: str, image_ref: str, post: str) -> PendingCommand: ...
    async def delete_candidate(self, candidate_id: int) -> PendingCommand: ...
    async def register_identity(self, username: str) -> PendingCommand: ...
    async def authorize_voter(self, address: str) -> PendingCommand: ...
    async def delete_identity(self, address: str) -> PendingCommand: ...
    async def cast_vote(self, candidate_id: int) -> PendingCommand: ...
    async def update_admin_credentials(self, username: str, password: str) -> PendingCommand: ...
    async def set_capacity_limits(
        self, max_candidates: int, max_voters: int, max_registered_users: int
    ) -> PendingCommand: ...
    async def set_admin_contact(self, email: str, phone: str) -> PendingCommand: ...
