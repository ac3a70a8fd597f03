"""Bearer token gate protecting the administration API."""
from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from .models import TokenPayload
from .tokens import TokenService


UNAUTHORIZED_MESSAGE = "Unauthorized. Please login."

Handler = Callable[[TokenPayload, Request], Union[Any, Awaitable[Any]]]


def extract_bearer(request: Request) -> Optional[str]:
    """Return the bearer credential from the ``Authorization`` header, if well formed."""

    header = request.headers.get("authorization")
    if not header:
        return None
    parts = header.strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


class AuthGate:
    """Single enforcement point for every protected route."""

    def __init__(self, tokens: TokenService) -> None:
        self._tokens = tokens

    def authenticate(self, request: Request) -> Optional[TokenPayload]:
        token = extract_bearer(request)
        if token is None:
            return None
        return self._tokens.verify_token(token)

    async def with_auth(self, request: Request, handler: Handler) -> Any:
        """Invoke ``handler`` only when the request carries a valid token.

        The handler's result is returned unchanged. Requests without a usable
        token get a 401 response and the handler is never called.
        """

        payload = self.authenticate(request)
        if payload is None:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": UNAUTHORIZED_MESSAGE},
                headers={"WWW-Authenticate": "Bearer"},
            )

        result = handler(payload, request)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def require(self, request: Request) -> TokenPayload:
        """FastAPI dependency variant of :meth:`with_auth`."""

        payload = self.authenticate(request)
        if payload is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=UNAUTHORIZED_MESSAGE,
                headers={"WWW-Authenticate": "Bearer"},
            )
        return payload


__all__ = ["AuthGate", "UNAUTHORIZED_MESSAGE", "extract_bearer"]
