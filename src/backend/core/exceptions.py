"""
Error taxonomy for the election client.

- ValidationError: a local precondition failed; nothing was sent to the ledger.
- RejectedCommand: the ledger refused a write; the reason is surfaced verbatim.
- FetchFailure: a read for one item failed; siblings are unaffected.
- StaleIdentityDiscard: a result belongs to an identity epoch that has ended.
- CommandInProgress: the same action is already awaiting confirmation.
"""

from typing import Optional


class ElectionClientError(Exception):
    """Base class for all election client errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ElectionClientError):
    """Local precondition failed before any ledger call."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class RejectedCommand(ElectionClientError):
    """The ledger refused a mutating command."""

    def __init__(self, reason: str, command: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.command = command

    def __str__(self) -> str:
        if self.command:
            return f"{self.command} rejected: {self.reason}"
        return self.reason


class FetchFailure(ElectionClientError):
    """A ledger read for a single item failed."""

    def __init__(self, item: str, cause: Optional[BaseException] = None):
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "unavailable"
        super().__init__(f"Failed to fetch {item} ({detail})")
        self.item = item
        self.cause = cause


class StaleIdentityDiscard(ElectionClientError):
    """Raised internally when a result arrives for a superseded identity epoch."""

    def __init__(self, captured_epoch: int, current_epoch: int):
        super().__init__(f"Result from epoch {captured_epoch} discarded (current epoch {current_epoch})")
        self.captured_epoch = captured_epoch
        self.current_epoch = current_epoch


class CommandInProgress(ElectionClientError):
    """The triggering action already has a command awaiting confirmation."""

    def __init__(self, action_key: str):
        super().__init__(f"'{action_key}' is already awaiting confirmation")
        self.action_key = action_key
