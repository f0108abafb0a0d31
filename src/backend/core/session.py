"""
Session context for a connected identity.

A SessionContext is created on successful login and torn down on logout.
It is passed explicitly to the services that need it; there is no global
"current account".

Each session owns an IdentityEpoch. Every read captures an EpochToken before
it starts and checks it before its result is applied. Switching the
connected address or logging out advances the epoch, so results fetched for
the previous identity are discarded instead of applied.
"""

import secrets
from dataclasses import dataclass, field
from enum import Enum

from core.exceptions import StaleIdentityDiscard


class Role(str, Enum):
    """Role derived for the connected identity."""

    ADMIN = "admin"
    VOTER = "voter"


class IdentityEpoch:
    """Monotonic counter identifying the current identity generation."""

    def __init__(self) -> None:
        self._value = 0

    @property
    def current(self) -> int:
        return self._value

    def advance(self) -> int:
        """Invalidate every outstanding token."""
        self._value += 1
        return self._value

    def token(self) -> "EpochToken":
        return EpochToken(epoch=self, captured=self._value)


@dataclass(frozen=True)
class EpochToken:
    """Epoch value captured when a fetch was issued."""

    epoch: IdentityEpoch
    captured: int

    def is_current(self) -> bool:
        return self.captured == self.epoch.current

    def ensure_current(self) -> None:
        """Raise StaleIdentityDiscard if the identity changed since capture."""
        if not self.is_current():
            raise StaleIdentityDiscard(self.captured, self.epoch.current)


@dataclass
class SessionContext:
    """The connected identity and its role."""

    address: str
    role: Role
    session_id: str = field(default_factory=lambda: secrets.token_urlsafe(24))
    username: str = ""
    epoch: IdentityEpoch = field(default_factory=IdentityEpoch)
    active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def rebind(self, address: str) -> int:
        """Point the session at a different address and advance the epoch."""
        self.address = address
        return self.epoch.advance()

    def close(self) -> None:
        """Tear down the session; in-flight results become stale."""
        self.active = False
        self.epoch.advance()
