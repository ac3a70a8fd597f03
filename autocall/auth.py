"""
Registration and login flows.

Combines the credential store and the token service: a successful login (or
registration, which logs the new user straight in) yields the stored user and
a freshly signed session token.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from .database import Database, check_password, hash_password
from .models import User
from .tokens import TokenService


logger = logging.getLogger("autocall.auth")

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password("autocall-unknown-user")


class InvalidCredentialsError(Exception):
    """Raised for any failed login, without saying which factor was wrong."""

    def __init__(self) -> None:
        super().__init__(INVALID_CREDENTIALS_MESSAGE)


@dataclass(frozen=True)
class AuthResult:
    user: User
    token: str


class AuthService:
    """User authentication manager."""

    def __init__(self, database: Database, tokens: TokenService) -> None:
        self._database = database
        self._tokens = tokens

    @property
    def tokens(self) -> TokenService:
        return self._tokens

    def authenticate_user(self, email: str, password: str) -> AuthResult:
        """
        Authenticate a user and issue a session token.

        Raises:
            InvalidCredentialsError: if the email is unknown or the password
                does not match. Both cases are indistinguishable to the caller.
        """
        user = self._database.get_user_by_email(email)
        if user is None:
            # Unknown emails cost one bcrypt verify, the same as a wrong password.
            check_password(password, _dummy_hash())
            logger.info("Rejected login attempt")
            raise InvalidCredentialsError()
        if not self._database.verify_password(user, password):
            logger.info("Rejected login attempt")
            raise InvalidCredentialsError()

        logger.info("User %s logged in", user.id)
        return AuthResult(user=user, token=self._tokens.generate_token(user))

    def register(self, email: str, password: str, name: Optional[str] = None) -> AuthResult:
        """
        Create an account and log it in.

        Raises:
            DuplicateUserError: if the email is already registered.
        """
        user = self._database.create_user(email, password, name)
        logger.info("Registered user %s", user.id)
        return self.authenticate_user(email, password)


__all__ = [
    "AuthResult",
    "AuthService",
    "INVALID_CREDENTIALS_MESSAGE",
    "InvalidCredentialsError",
]
