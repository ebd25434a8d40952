"""
Task and comment repositories

Thin CRUD over one MongoDB collection each. Every operation is a single
document-store call; the repositories add required-field checks, identifier
checks and timestamps, and translate driver failures into StoreError.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional, Tuple, Type

import pydantic
from bson import ObjectId
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from errors import InvalidId, NotFound, StoreError, ValidationError
from schemas import Comment, Task

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

MISSING_FIELDS = "All fields are required"


def utc_now() -> datetime:
    # BSON datetimes keep milliseconds only.
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


@contextmanager
def store_errors(message: str) -> Iterator[None]:
    try:
        yield
    except PyMongoError as e:
        raise StoreError(message, detail=str(e)) from e


class DocumentRepository:
    """
    Shared CRUD for a collection of documents addressed by ObjectId.

    Subclasses name the entity (used in messages), the fields an update must
    resupply, and the pydantic schema documents are built from.
    """

    entity: str = "document"
    plural: str = "documents"
    schema: Type[pydantic.BaseModel]
    required: Tuple[str, ...] = ()
    mutable: Tuple[str, ...] = ()

    def __init__(self, collection: Collection, clock: Clock = utc_now):
        self._collection = collection
        self._clock = clock

    # ---- helpers ----

    def object_id(self, raw: str) -> ObjectId:
        if not isinstance(raw, str) or not ObjectId.is_valid(raw):
            raise InvalidId(f"Invalid {self.entity} ID format")
        return ObjectId(raw)

    def require(self, fields: dict) -> None:
        missing = [name for name in self.required if not fields.get(name)]
        if missing:
            logger.debug("%s rejected, missing %s", self.entity, missing)
            raise ValidationError(MISSING_FIELDS)

    def build(self, fields: dict) -> dict:
        try:
            return self.schema.model_validate(fields).model_dump(by_alias=True)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid {self.entity} fields: {e.error_count()} error(s)") from e

    def not_found(self) -> NotFound:
        return NotFound(f"{self.entity.capitalize()} not found")

    # ---- operations ----

    def list(self) -> List[dict]:
        with store_errors(f"Failed to retrieve {self.plural}"):
            return list(self._collection.find())

    def get(self, raw_id: str) -> dict:
        oid = self.object_id(raw_id)
        with store_errors(f"Failed to retrieve {self.entity}"):
            doc = self._collection.find_one({"_id": oid})
        if not doc:
            raise self.not_found()
        return doc

    def new_document(self, fields: dict, now: datetime) -> dict:
        return self.build({**fields, "createdAt": now, "updatedAt": now})

    def create(self, fields: dict) -> str:
        self.require(fields)
        doc = self.new_document(fields, self._clock())
        with store_errors(f"Failed to create {self.entity}"):
            result = self._collection.insert_one(doc)
        logger.info("Created %s id=%s", self.entity, result.inserted_id)
        return str(result.inserted_id)

    def changes(self, fields: dict) -> dict:
        return {name: fields[name] for name in self.mutable if name in fields}

    def update(self, raw_id: str, fields: dict) -> None:
        oid = self.object_id(raw_id)
        self.require(fields)
        stage = {name: {"$literal": value} for name, value in self.changes(fields).items()}
        # at least one millisecond past the stored stamp, even if the clock has not moved
        stage["updatedAt"] = {"$max": [self._clock(), {"$add": ["$updatedAt", 1]}]}
        with store_errors(f"Failed to update {self.entity}"):
            result = self._collection.update_one({"_id": oid}, [{"$set": stage}])
        if result.matched_count == 0:
            raise self.not_found()
        logger.info("Updated %s id=%s", self.entity, oid)

    def delete(self, raw_id: str) -> None:
        oid = self.object_id(raw_id)
        with store_errors(f"Failed to delete {self.entity}"):
            result = self._collection.delete_one({"_id": oid})
        if result.deleted_count == 0:
            raise self.not_found()
        logger.info("Deleted %s id=%s", self.entity, oid)


class TaskRepository(DocumentRepository):
    entity = "task"
    plural = "tasks"
    schema = Task
    required = ("title", "description", "status", "assignedTo", "dueDate", "priority")
    # tags is replaced only when the client sends it
    mutable = required + ("tags",)

    def create(self, fields: dict, created_by: Optional[str] = None) -> str:
        if not fields.get("createdBy") and created_by:
            fields = {**fields, "createdBy": created_by}
        if not fields.get("createdBy"):
            raise ValidationError(MISSING_FIELDS)
        return super().create(fields)


class CommentRepository(DocumentRepository):
    entity = "comment"
    plural = "comments"
    schema = Comment
    required = ("taskId", "content")
    mutable = required
