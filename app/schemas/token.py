"""
Token Schemas

Pydantic models for admin JWT handling.
"""

from pydantic import BaseModel, Field


class Token(BaseModel):
    """Schema for token response."""

    access_token: str
    token_type: str = "bearer"


class AdminLoginRequest(BaseModel):
    """Schema for admin login request."""

    username: str = Field(..., min_length=1, description="Admin username")
    password: str = Field(..., min_length=1, description="Admin password")
