"""
Directory read-models for registered users and authorized voters.

Both directories enumerate identities from the ledger, then fetch each
identity's status concurrently. When a single lookup fails the entry is kept
with fallback flags (registered, not authorized) and marked degraded, so one
bad lookup never empties or aborts the listing.
"""

import asyncio
from abc import ABC, abstractmethod

import structlog

from core.exceptions import FetchFailure
from repositories.ledger import LedgerClientProtocol
from schemas.identity import DirectoryEntry, DirectorySummary, IdentityRef

logger = structlog.get_logger(__name__)


def filter_entries(entries: list[DirectoryEntry], term: str | None) -> list[DirectoryEntry]:
    """Case-insensitive substring match over username and address."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(entries)
    return [entry for entry in entries if needle in entry.username.lower() or needle in entry.address.lower()]


def summarize(entries: list[DirectoryEntry]) -> DirectorySummary:
    return DirectorySummary(
        total=len(entries),
        authorized=sum(1 for entry in entries if entry.is_authorized),
        degraded=sum(1 for entry in entries if entry.degraded),
    )


class IdentityDirectory(ABC):
    """Base directory: enumerate, then merge per-identity status."""

    name = "identities"

    def __init__(self, ledger: LedgerClientProtocol):
        self.ledger = ledger

    @abstractmethod
    async def enumerate(self) -> list[IdentityRef]:
        """List the identities this directory covers, in ledger order."""
        pass

    async def _lookup(self, ref: IdentityRef) -> DirectoryEntry:
        identity = await self.ledger.get_identity_info(ref.address)
        return DirectoryEntry(
            address=ref.address,
            username=identity.username or ref.username,
            is_registered=identity.is_registered,
            is_authorized=identity.is_authorized,
        )

    async def load(self) -> list[DirectoryEntry]:
        """
        Load the directory in enumeration order.

        Raises:
            FetchFailure: If the enumeration itself fails.
        """
        try:
            refs = await self.enumerate()
        except FetchFailure:
            raise
        except Exception as e:
            raise FetchFailure(self.name, e) from e

        results = await asyncio.gather(*(self._lookup(ref) for ref in refs), return_exceptions=True)

        entries: list[DirectoryEntry] = []
        for ref, result in zip(refs, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(
                    "directory_entry_degraded",
                    directory=self.name,
                    address=ref.address,
                    error=str(result),
                )
                entries.append(
                    DirectoryEntry(
                        address=ref.address,
                        username=ref.username,
                        is_registered=True,
                        is_authorized=False,
                        degraded=True,
                    )
                )
            else:
                entries.append(result)
        return entries


class RegisteredUserDirectory(IdentityDirectory):
    """Every identity that has registered with the ledger."""

    name = "registered_users"

    async def enumerate(self) -> list[IdentityRef]:
        return await self.ledger.list_registered_users()


class VoterDirectory(IdentityDirectory):
    """Identities the admin has authorized to vote."""

    name = "authorized_voters"

    async def enumerate(self) -> list[IdentityRef]:
        return await self.ledger.list_authorized_voters()
