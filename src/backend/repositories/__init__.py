"""Repository modules for ledger access."""

from repositories.http_ledger import HttpLedgerClient
from repositories.ledger import LedgerClientProtocol, PendingCommand
from repositories.memory_ledger import InMemoryLedgerClient, LedgerState
from repositories.provider import LedgerProvider

__all__ = [
    "HttpLedgerClient",
    "InMemoryLedgerClient",
    "LedgerClientProtocol",
    "LedgerProvider",
    "LedgerState",
    "PendingCommand",
]
