"""
Ledger provider for dependency injection.

Builds ledger clients bound to a connected identity, using either the
in-process ledger or the JSON-RPC gateway depending on configuration.
The provider owns the shared transport and must be closed on shutdown.

Usage:
    provider = LedgerProvider.from_settings(settings)
    ledger = provider.client_for(session.address)
    posts = await ledger.list_posts()
"""

from typing import Optional

import httpx
import structlog

from core.config import Settings
from repositories.http_ledger import HttpLedgerClient
from repositories.ledger import LedgerClientProtocol
from repositories.memory_ledger import LedgerState

logger = structlog.get_logger(__name__)


class LedgerProvider:
    """Creates per-identity ledger clients over one shared backend."""

    def __init__(
        self,
        memory_state: Optional[LedgerState] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        url: Optional[str] = None,
    ):
        if memory_state is None and (http_client is None or not url):
            raise ValueError("LedgerProvider needs either an in-memory state or an HTTP client and URL")
        self._memory_state = memory_state
        self._http_client = http_client
        self._url = url

    @classmethod
    def from_settings(cls, settings: Settings) -> "LedgerProvider":
        """Build the provider selected by LEDGER_BACKEND."""
        if settings.LEDGER_BACKEND == "http":
            logger.info("ledger_provider_init", backend="http", url=settings.LEDGER_URL)
            return cls(http_client=httpx.AsyncClient(), url=settings.LEDGER_URL)

        logger.info("ledger_provider_init", backend="memory", owner=settings.LEDGER_ADMIN_ADDRESS)
        return cls(
            memory_state=LedgerState(
                owner=settings.LEDGER_ADMIN_ADDRESS,
                admin_username=settings.LEDGER_ADMIN_USERNAME,
                admin_password=settings.LEDGER_ADMIN_PASSWORD,
            )
        )

    @property
    def backend(self) -> str:
        return "memory" if self._memory_state is not None else "http"

    def client_for(self, address: str) -> LedgerClientProtocol:
        """Get a ledger client that sends as ``address``."""
        if self._memory_state is not None:
            return self._memory_state.client(address)
        assert self._http_client is not None and self._url is not None
        return HttpLedgerClient(self._http_client, self._url, address)

    async def close(self) -> None:
        """Close the shared transport."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            logger.info("ledger_provider_closed")
