"""
MongoDB access for the Munch API.

Collections:
- users: registered users
- foodTrucks: food truck listings
- reviews: reviews of food trucks (in-app and scraped)

Documents are keyed by a random UUID string stored in _id.
"""
import logging
import os
import threading
import uuid
from datetime import timezone
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from errors import InternalError

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "munch")

USERS = "users"
FOOD_TRUCKS = "foodTrucks"
REVIEWS = "reviews"

_db: Optional[Database] = None
_db_lock = threading.Lock()


def get_db() -> Database:
    """
    Return a process-wide database handle so every request shares one client.
    """
    global _db
    if _db is not None:
        return _db

    with _db_lock:
        if _db is None:
            try:
                client = MongoClient(DATABASE_URL, tz_aware=True, tzinfo=timezone.utc)
                db = client[DATABASE_NAME]
                ensure_indexes(db)
            except PyMongoError:
                logger.exception("Could not connect to MongoDB database %s", DATABASE_NAME)
                raise InternalError("Database not available")
            logger.info("Connected to MongoDB database %s", DATABASE_NAME)
            _db = db
    return _db


def ensure_indexes(db: Database) -> None:
    # Email uniqueness is what turns a duplicate registration into a conflict.
    db[USERS].create_index([("email", ASCENDING)], unique=True)


def new_id() -> str:
    return str(uuid.uuid4())


def sanitize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def sanitize_all(docs) -> List[Dict[str, Any]]:
    return [sanitize(d) for d in docs]
