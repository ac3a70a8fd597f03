"""Domain models for the autocall administration service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional


@dataclass(frozen=True)
class User:
    """Represents a user account stored in the credential database."""

    id: str
    email: str
    password_hash: str = field(repr=False)
    name: Optional[str]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class TokenPayload:
    """Claims carried by a verified session token."""

    user_id: str
    email: str
    issued_at: datetime
    expires_at: datetime


def get_safe_user(user: User) -> Dict[str, object]:
    """Return the client-facing projection of ``user`` without the password hash."""

    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "createdAt": user.created_at.isoformat(),
        "updatedAt": user.updated_at.isoformat(),
    }


__all__ = ["TokenPayload", "User", "get_safe_user"]
