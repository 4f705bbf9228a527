"""
Registration, login and user profiles.
"""
import logging
from typing import Any, Dict

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from auth import Identity, create_access_token, hash_password, require_user, verify_password
from database import FOOD_TRUCKS, USERS, new_id, sanitize
from errors import AuthError, ConflictError, InternalError, NotFoundError, PermissionDeniedError
from schemas import LoginRequest, RegisterRequest, UpdateUserRequest, User

logger = logging.getLogger(__name__)

# Self view: everything but the password hash.
PROFILE_PROJECTION = {"passwordHash": 0}
# Public view of somebody else's account.
PUBLIC_PROJECTION = {
    "firstName": 1,
    "lastName": 1,
    "reviews": 1,
    "ownedFoodTrucks": 1,
}


def register(db: Database, payload: RegisterRequest) -> str:
    user_doc = User(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        password_hash=hash_password(payload.password),
        date_of_birth=payload.date_of_birth,
    ).to_document()
    user_doc["_id"] = new_id()
    try:
        db[USERS].insert_one(user_doc)
    except DuplicateKeyError:
        raise ConflictError("Email already registered")
    except PyMongoError:
        logger.exception("Failed to insert user")
        raise InternalError()
    logger.info("Registered user %s", user_doc["_id"])
    return user_doc["_id"]


def login(db: Database, payload: LoginRequest) -> str:
    try:
        user = db[USERS].find_one({"email": payload.email})
    except PyMongoError:
        logger.exception("Failed to look up user for login")
        raise InternalError()
    if not user or not verify_password(payload.password, user.get("passwordHash", "")):
        raise AuthError("Invalid email or password")
    return create_access_token(user["_id"])


def _find_user(db: Database, user_id: str, projection: Dict[str, int]):
    try:
        return db[USERS].find_one({"_id": user_id}, projection)
    except PyMongoError:
        logger.exception("Failed to load user %s", user_id)
        raise InternalError()


def get_profile(db: Database, identity: Identity) -> Dict[str, Any]:
    user_id = require_user(identity)
    user = _find_user(db, user_id, PROFILE_PROJECTION)
    if not user:
        # Valid token for an account that no longer exists.
        raise AuthError()
    return sanitize(user)


def get_user(db: Database, user_id: str) -> Dict[str, Any]:
    user = _find_user(db, user_id, PUBLIC_PROJECTION)
    if not user:
        raise NotFoundError("User not found")
    return sanitize(user)


def update_user(db: Database, identity: Identity, user_id: str, payload: UpdateUserRequest) -> None:
    """Apply the fields present in the request to the caller's own account."""
    if require_user(identity) != user_id:
        raise PermissionDeniedError("Users may only update their own account")
    update = payload.present_fields()
    try:
        if not update:
            matched = db[USERS].count_documents({"_id": user_id}, limit=1)
        else:
            matched = db[USERS].update_one({"_id": user_id}, {"$set": update}).matched_count
    except DuplicateKeyError:
        raise ConflictError("Email already registered")
    except PyMongoError:
        logger.exception("Failed to update user %s", user_id)
        raise InternalError()
    if not matched:
        raise NotFoundError("User not found")


def add_favorite(db: Database, identity: Identity, food_truck_id: str) -> Dict[str, Any]:
    user_id = require_user(identity)
    try:
        if not db[FOOD_TRUCKS].count_documents({"_id": food_truck_id}, limit=1):
            raise NotFoundError("Food truck not found")
        db[USERS].update_one({"_id": user_id}, {"$addToSet": {"favorites": food_truck_id}})
    except PyMongoError:
        logger.exception("Failed to add favorite for user %s", user_id)
        raise InternalError()
    return get_profile(db, identity)


def remove_favorite(db: Database, identity: Identity, food_truck_id: str) -> Dict[str, Any]:
    user_id = require_user(identity)
    try:
        db[USERS].update_one({"_id": user_id}, {"$pull": {"favorites": food_truck_id}})
    except PyMongoError:
        logger.exception("Failed to remove favorite for user %s", user_id)
        raise InternalError()
    return get_profile(db, identity)
