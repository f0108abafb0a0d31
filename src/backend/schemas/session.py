"""
Session request and response schemas.
"""

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Connect an identity address and authenticate."""

    address: str = Field(..., min_length=1, description="Connected identity address")
    username: str = ""
    password: str = ""


class SwitchIdentityRequest(BaseModel):
    """The connected address changed."""

    address: str = Field(..., min_length=1)


class SessionResponse(BaseModel):
    session_id: str
    address: str
    role: str
    username: str = ""
    epoch: int = 0
    warnings: list[str] = Field(default_factory=list)
