"""
Admin settings and command schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CapacityLimits(BaseModel):
    """Ledger-enforced capacity limits."""

    max_candidates: int = Field(..., ge=0)
    max_voters: int = Field(..., ge=0)
    max_registered_users: int = Field(..., ge=0)


class AdminContact(BaseModel):
    """Contact details shown to voters."""

    email: str = ""
    phone: str = ""


class AdminCredentials(BaseModel):
    """New admin login credentials."""

    username: str
    password: str


class CommandReceipt(BaseModel):
    """Ledger confirmation of a mutating command."""

    command: str
    reference: str
    confirmed_at: Optional[datetime] = None


class CommandResult(BaseModel):
    """Outcome of a confirmed command, returned to the caller."""

    action: str
    target: str = ""
    message: str
    reference: Optional[str] = None
