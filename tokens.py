"""
Token service

Stateless HS256 JWTs carrying the user id in `sub`. There is no revocation
list: a token stays valid until it expires.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt

from errors import InvalidToken

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class TokenService:
    def __init__(
        self,
        secret: str,
        ttl: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        if not secret:
            raise ValueError("a signing secret is required")
        self._secret = secret
        self._ttl = ttl
        self._clock = clock

    def issue(self, identity: str) -> str:
        now = self._clock()
        claims = {"sub": identity, "iat": now, "exp": now + self._ttl}
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> str:
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            logger.info("Rejected expired token")
            raise InvalidToken("Invalid token") from e
        except jwt.InvalidTokenError as e:
            logger.info("Rejected token: %s", e)
            raise InvalidToken("Invalid token") from e
        return claims["sub"]
