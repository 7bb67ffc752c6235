"""
User Model - Verified identity handed to the core by the token verifier.
"""

from typing import Optional
from pydantic import BaseModel, EmailStr


class AuthenticatedUser(BaseModel):
    """Identity extracted from a verified bearer token."""
    user_id: str
    email: Optional[EmailStr] = None

    class Config:
        frozen = True


class TokenData(BaseModel):
    """Token payload data."""
    user_id: Optional[str] = None
    email: Optional[str] = None
