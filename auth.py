"""Request guard for the task and comment routes."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Header, Request

from errors import AuthError
from tokens import TokenService


@dataclass(frozen=True)
class Principal:
    """Identity resolved from a verified bearer token."""

    user_id: str


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_principal(request: Request, authorization: Optional[str] = Header(None)) -> Principal:
    """
    FastAPI dependency. No usable bearer header -> 401; a token the
    TokenService rejects -> 403 (InvalidToken propagates).
    """
    token = bearer_token(authorization)
    if token is None:
        raise AuthError("Access token required")
    tokens: TokenService = request.app.state.tokens
    return Principal(user_id=tokens.verify(token))
