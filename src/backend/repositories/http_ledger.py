"""
JSON-RPC ledger client over httpx.

Talks to the ledger gateway with JSON-RPC 2.0 requests. The connected
identity is sent in the X-Ledger-Sender header so the gateway can sign and
authorize on its behalf.

Composite returns are positional arrays, decoded in the ledger's order:
    getElectionInfo -> [state, startTime, endTime]
    getUserInfo     -> [username, isRegistered, isAuthorized, hasVoted]
    getVoterStatus  -> [authorized, hasVoted, candidateId]

No retries and no timeouts beyond what the transport is configured with.
"""

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Any, Callable, Optional, TypeVar

import httpx
import structlog

from core.exceptions import FetchFailure, RejectedCommand
from repositories.ledger import from_ledger_timestamp
from schemas.admin import AdminContact, CapacityLimits, CommandReceipt
from schemas.election import Candidate, ElectionState, ElectionWindow
from schemas.identity import Identity, IdentityRef, VoteStatus

logger = structlog.get_logger(__name__)

SENDER_HEADER = "X-Ledger-Sender"
CONFIRM_METHOD = "ledger_waitForConfirmation"

T = TypeVar("T")

_request_ids = itertools.count(1)


class LedgerRpcError(Exception):
    """JSON-RPC error object returned by the gateway."""

    def __init__(self, code: int, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.reason = reason or message


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1")
    return bool(value)


def _decode_candidate(raw: dict[str, Any]) -> Candidate:
    return Candidate(
        id=int(raw["id"]),
        name=raw.get("name", ""),
        party=raw.get("party", ""),
        post=raw.get("post", ""),
        image_ref=raw.get("imageUrl", "") or "",
        vote_count=int(raw.get("voteCount", 0)),
    )


class HttpPendingCommand:
    """Submitted transaction; wait() blocks until the gateway confirms it."""

    def __init__(self, client: "HttpLedgerClient", command: str, reference: str):
        self._client = client
        self.command = command
        self.reference = reference

    async def wait(self) -> CommandReceipt:
        await self._client._write_call(self.command, CONFIRM_METHOD, [self.reference])
        return CommandReceipt(
            command=self.command,
            reference=self.reference,
            confirmed_at=datetime.now(timezone.utc),
        )


class HttpLedgerClient:
    """Ledger client bound to one sender, sharing the provider's transport."""

    def __init__(self, http: httpx.AsyncClient, url: str, sender: str):
        self._http = http
        self._url = url
        self.sender = sender

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(_request_ids),
            "method": method,
            "params": params,
        }
        response = await self._http.post(self._url, json=payload, headers={SENDER_HEADER: self.sender})
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError(f"Malformed JSON-RPC response for {method}")
        error = body.get("error")
        if error:
            data = error.get("data") or {}
            reason = data.get("reason") if isinstance(data, dict) else None
            raise LedgerRpcError(error.get("code", 0), error.get("message", "Ledger error"), reason)
        return body.get("result")

    async def _read(
        self,
        method: str,
        *params: Any,
        item: Optional[str] = None,
        decode: Optional[Callable[[Any], T]] = None,
    ) -> T:
        """Call a read method; transport, RPC and decoding errors become FetchFailure."""
        try:
            result = await self._call(method, list(params))
            return decode(result) if decode is not None else result
        except (httpx.HTTPError, LedgerRpcError, ValueError, TypeError, KeyError) as e:
            logger.warning("ledger_read_failed", method=method, error=str(e))
            raise FetchFailure(item or method, e) from e

    async def _write_call(self, command: str, method: str, params: list[Any]) -> Any:
        try:
            return await self._call(method, params)
        except LedgerRpcError as e:
            raise RejectedCommand(e.reason, command=command) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("ledger_write_transport_failed", command=command, error=str(e))
            raise RejectedCommand(f"Ledger unavailable: {e}", command=command) from e

    async def _submit(self, command: str, method: str, *params: Any) -> HttpPendingCommand:
        reference = await self._write_call(command, method, list(params))
        logger.debug("ledger_command_submitted", command=command, reference=reference)
        return HttpPendingCommand(self, command, str(reference))

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_posts(self) -> list[str]:
        return await self._read("getPostList", item="posts", decode=lambda posts: [str(post) for post in posts])

    async def get_election_info(self, post: str) -> ElectionWindow:
        def decode(raw: Any) -> ElectionWindow:
            state, start, end = raw
            return ElectionWindow(
                post=post,
                state=ElectionState(int(state)),
                start_time=from_ledger_timestamp(int(start)),
                end_time=from_ledger_timestamp(int(end)),
            )

        return await self._read("getElectionInfo", post, item=f"election:{post}", decode=decode)

    async def list_candidates(self) -> list[Candidate]:
        return await self._read(
            "getCandidates", item="candidates", decode=lambda rows: [_decode_candidate(raw) for raw in rows]
        )

    async def list_authorized_voters(self) -> list[IdentityRef]:
        return await self._read(
            "getAllVoters",
            item="voters",
            decode=lambda addresses: [IdentityRef(address=str(address)) for address in addresses],
        )

    async def list_registered_users(self) -> list[IdentityRef]:
        return await self._read(
            "getRegisteredUsers",
            item="registered_users",
            decode=lambda users: [
                IdentityRef(address=user["userAddress"], username=user.get("username", "")) for user in users
            ],
        )

    async def get_identity_info(self, address: str) -> Identity:
        def decode(raw: Any) -> Identity:
            username, is_registered, is_authorized, _has_voted = raw
            return Identity(
                address=address,
                username=username or "",
                is_registered=_as_bool(is_registered),
                is_authorized=_as_bool(is_authorized),
            )

        return await self._read("getUserInfo", address, item=f"identity:{address}", decode=decode)

    async def get_vote_status(self, address: str, post: str) -> VoteStatus:
        def decode(raw: Any) -> VoteStatus:
            authorized, has_voted, candidate_id = raw
            voted = _as_bool(has_voted)
            return VoteStatus(
                post=post,
                is_authorized=_as_bool(authorized),
                has_voted=voted,
                candidate_id=int(candidate_id) if voted else None,
            )

        return await self._read("getVoterStatus", address, post, item=f"vote_status:{address}:{post}", decode=decode)

    async def verify_admin_credentials(self, username: str, password: str) -> bool:
        return await self._read("verifyAdmin", username, password, item="admin_credentials", decode=_as_bool)

    async def get_admin_username(self) -> str:
        return await self._read("adminUsername", item="admin_username", decode=str)

    async def get_admin_contact(self) -> AdminContact:
        email, phone = await asyncio.gather(
            self._read("adminEmail", item="admin_email"),
            self._read("adminPhone", item="admin_phone"),
        )
        return AdminContact(email=email or "", phone=phone or "")

    async def get_capacity_limits(self) -> CapacityLimits:
        max_candidates, max_voters, max_registered = await asyncio.gather(
            self._read("maxCandidates", item="max_candidates", decode=int),
            self._read("maxVoters", item="max_voters", decode=int),
            self._read("maxRegisteredUsers", item="max_registered_users", decode=int),
        )
        return CapacityLimits(
            max_candidates=max_candidates,
            max_voters=max_voters,
            max_registered_users=max_registered,
        )

    # =========================================================================
    # Writes
    # =========================================================================

    async def schedule_election(self, post: str, start: int, end: int) -> HttpPendingCommand:
        return await self._submit("schedule_election", "setElectionTimes", post, start, end)

    async def start_election(self, post: str) -> HttpPendingCommand:
        return await self._submit("start_election", "startElection", post)

    async def end_election(self, post: str) -> HttpPendingCommand:
        return await self._submit("end_election", "endElection", post)

    async def reset_election(self, post: str) -> HttpPendingCommand:
        return await self._submit("reset_election", "resetElection", post)

    async def delete_election(self, post: str) -> HttpPendingCommand:
        return await self._submit("delete_election", "deleteElection", post)

    async def add_candidate(self, name: str, party: str, image_ref: str, post: str) -> HttpPendingCommand:
        return await self._submit("add_candidate", "addCandidate", name, party, image_ref, post)

    async def delete_candidate(self, candidate_id: int) -> HttpPendingCommand:
        return await self._submit("delete_candidate", "deleteCandidate", candidate_id)

    async def register_identity(self, username: str) -> HttpPendingCommand:
        return await self._submit("register_identity", "registerUser", username)

    async def authorize_voter(self, address: str) -> HttpPendingCommand:
        return await self._submit("authorize_voter", "authorizeVoter", address)

    async def delete_identity(self, address: str) -> HttpPendingCommand:
        return await self._submit("delete_identity", "deleteUser", address)

    async def cast_vote(self, candidate_id: int) -> HttpPendingCommand:
        return await self._submit("cast_vote", "vote", candidate_id)

    async def update_admin_credentials(self, username: str, password: str) -> HttpPendingCommand:
        return await self._submit("update_admin_credentials", "updateAdminCredentials", username, password)

    async def set_capacity_limits(
        self, max_candidates: int, max_voters: int, max_registered_users: int
    ) -> HttpPendingCommand:
        return await self._submit(
            "set_capacity_limits", "setLimits", max_candidates, max_voters, max_registered_users
        )

    async def set_admin_contact(self, email: str, phone: str) -> HttpPendingCommand:
        return await self._submit("set_admin_contact", "setAdminContact", email, phone)
