"""Pydantic schemas for authentication endpoints."""
from __future__ import annotations

from pydantic import BaseModel, Field

from .users import AccountUser


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6, max_length=128)


class AuthResponse(BaseModel):
    token: str
    user: AccountUser


class StoredSession(BaseModel):
    token: str
    user: AccountUser | None = None


__all__ = ["AuthResponse", "LoginRequest", "SignupRequest", "StoredSession"]
