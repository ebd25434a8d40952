"""
Document store handle

The MongoClient is created once at startup and the resulting Database is
passed explicitly to every repository. Nothing here is a module-level global.
"""

import logging
from datetime import datetime
from typing import List

from bson import ObjectId
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import Settings
from errors import StoreError

logger = logging.getLogger(__name__)

USERS = "users"
TASKS = "Tasks"
COMMENTS = "Comments"


def connect(settings: Settings) -> Database:
    """Open the client and make sure the server answers. Raises StoreError if not."""
    client = MongoClient(settings.database_url, tz_aware=True)
    try:
        client.admin.command("ping")
    except PyMongoError as e:
        client.close()
        logger.error("MongoDB unreachable at startup: %s", e)
        raise StoreError("Failed to connect to the database", detail=str(e)) from e
    db = client[settings.database_name]
    logger.info("Connected to MongoDB database=%s", db.name)
    return db


def ping(db) -> bool:
    try:
        db.command("ping")
    except PyMongoError as e:
        logger.warning("MongoDB ping failed: %s", e)
        return False
    return True


def list_collections(db) -> List[str]:
    try:
        return db.list_collection_names()[:10]
    except PyMongoError:
        return []


def serialize_doc(doc: dict) -> dict:
    if not doc:
        return doc
    d = {**doc}
    for k, v in list(d.items()):
        if isinstance(v, ObjectId):
            d[k] = str(v)
        # convert datetime to isoformat for timestamps
        elif isinstance(v, datetime):
            d[k] = v.isoformat()
    return d
