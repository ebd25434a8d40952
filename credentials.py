"""
Credential store

Users are `{username, passwordHash}` documents. Passwords are hashed with
bcrypt; the plaintext is never stored, logged or returned.
"""

import logging
from typing import Optional

import bcrypt
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import ConflictError, StoreError, ValidationError
from repositories import store_errors
from schemas import User

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of its input.
MAX_PASSWORD_BYTES = 72


class CredentialStore:
    def __init__(self, collection: Collection, rounds: int = 10):
        self._users = collection
        self._rounds = rounds
        with store_errors("Failed to prepare users collection"):
            self._users.create_index("username", unique=True)

    def hash_password(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds)).decode("ascii")

    def register(self, username: str, password: str) -> str:
        if not username or not password:
            raise ValidationError("Username and password are required")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

        if self.find_by_username(username) is not None:
            raise ConflictError("Username already exists")

        user = User(username=username, passwordHash=self.hash_password(password))
        try:
            result = self._users.insert_one(user.model_dump(by_alias=True))
        except DuplicateKeyError as e:
            # lost a race with a concurrent registration of the same name
            raise ConflictError("Username already exists") from e
        except PyMongoError as e:
            raise StoreError("Failed to register user", detail=str(e)) from e
        logger.info("Registered user %r id=%s", username, result.inserted_id)
        return str(result.inserted_id)

    def find_by_username(self, username: str) -> Optional[dict]:
        with store_errors("Failed to look up user"):
            return self._users.find_one({"username": username})

    def verify_password(self, user: dict, candidate: Optional[str]) -> bool:
        stored = user.get("passwordHash")
        if not candidate or not stored:
            return False
        try:
            return bcrypt.checkpw(candidate.encode("utf-8"), stored.encode("ascii"))
        except ValueError:
            # malformed stored hash, or a candidate past bcrypt's length limit
            return False
