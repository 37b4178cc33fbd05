"""
Authentication module data models.
"""

from typing import Optional, Union

from pydantic import BaseModel, Field


class JWTPayload(BaseModel):
    """
    Decoded JWT payload.

    Only the claims this backend reads are modelled; anything else the
    identity provider adds is ignored.
    """

    model_config = {"extra": "ignore"}

    sub: str = Field(..., min_length=1, description="Subject (user ID)")
    email: Optional[str] = Field(None, description="User's email")
    email_verified: Optional[bool] = Field(None, description="Email verification flag")
    email_confirmed_at: Optional[str] = Field(None, description="Email confirmation time")
    exp: int = Field(..., description="Expiration timestamp")
    iat: Optional[int] = Field(None, description="Issued at timestamp")
    aud: Optional[Union[str, list[str]]] = Field(None, description="Audience")
    iss: Optional[str] = Field(None, description="Issuer")
    role: str = Field(default="authenticated", description="User role")
