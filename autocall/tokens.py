"""Signed session tokens for the autocall administration API."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt

from .models import TokenPayload, User


ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL = timedelta(days=7)

logger = logging.getLogger("autocall.tokens")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issue and verify stateless HS256 bearer tokens.

    Tokens embed the user identifier and email. Nothing is recorded server
    side, so a token stays valid until its expiry no matter what happens to
    the session on the client.
    """

    def __init__(
        self,
        secret: str,
        *,
        ttl: timedelta = DEFAULT_TOKEN_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret:
            raise ValueError("A token signing secret must be provided")
        self._secret = secret
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def generate_token(self, user: User) -> str:
        # exp is derived from the whole-second iat so the lifetime is exactly ttl.
        issued_at = int(self._clock().timestamp())
        payload = {
            "userId": user.id,
            "email": user.email,
            "iat": issued_at,
            "exp": issued_at + math.ceil(self._ttl.total_seconds()),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify_token(self, token: str) -> Optional[TokenPayload]:
        """Return the embedded claims, or ``None`` if the token is unusable.

        Expiry is judged against the injected clock, not the wall clock.
        """

        if not token:
            return None

        # PyJWT compares exp with the wall clock; the leeway shifts that onto our clock.
        now = self._clock()
        leeway = _utcnow() - now
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                leeway=leeway,
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Rejected expired session token")
            return None
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected invalid session token: %s", exc)
            return None

        user_id = claims.get("userId")
        email = claims.get("email")
        if not isinstance(user_id, str) or not isinstance(email, str):
            logger.debug("Rejected session token without subject claims")
            return None

        return TokenPayload(
            user_id=user_id,
            email=email,
            issued_at=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )


__all__ = ["ALGORITHM", "DEFAULT_TOKEN_TTL", "TokenService"]
