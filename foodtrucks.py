"""
Food truck listings.
"""
import logging
import re
from typing import Any, Dict, List

from pymongo.database import Database
from pymongo.errors import PyMongoError

from auth import Identity
from database import FOOD_TRUCKS, USERS, new_id, sanitize, sanitize_all
from errors import AuthError, InternalError, NotFoundError, PermissionDeniedError, ValidationError
from schemas import CreateFoodTruckRequest, FoodTruck, UpdateFoodTruckRequest

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7
TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$", re.ASCII)


def validate_hours(hours: List[List[str]]) -> None:
    """Reject anything but seven [open, close] pairs of HH:MM strings."""
    if not hours or len(hours) != DAYS_PER_WEEK:
        raise ValidationError("hours must have an entry for each day of the week")
    for day, pair in enumerate(hours):
        if len(pair) != 2:
            raise ValidationError(f"hours[{day}] must be an [open, close] pair")
        for value in pair:
            if not isinstance(value, str) or not TIME_PATTERN.fullmatch(value):
                raise ValidationError(f"hours[{day}] must use HH:MM times")


def _require_writer(identity: Identity) -> None:
    if identity.is_anonymous:
        raise AuthError()


def create_food_truck(db: Database, identity: Identity, payload: CreateFoodTruckRequest) -> str:
    _require_writer(identity)
    validate_hours(payload.hours)

    owner = identity.user_id or ""
    truck_doc = FoodTruck(
        name=payload.name,
        address=payload.address,
        location=payload.location,
        owner=owner,
        hours=payload.hours,
        photos=payload.photos,
        website=payload.website,
        phone_number=payload.phone_number,
        description=payload.description,
        tags=payload.tags or [],
    ).to_document()
    truck_doc["_id"] = new_id()

    try:
        db[FOOD_TRUCKS].insert_one(truck_doc)
        if owner:
            db[USERS].update_one({"_id": owner}, {"$push": {"ownedFoodTrucks": truck_doc["_id"]}})
    except PyMongoError:
        logger.exception("Failed to create food truck")
        raise InternalError()
    logger.info("Created food truck %s (owner=%r)", truck_doc["_id"], owner)
    return truck_doc["_id"]


def list_food_trucks(db: Database) -> List[Dict[str, Any]]:
    try:
        return sanitize_all(db[FOOD_TRUCKS].find({}))
    except PyMongoError:
        logger.exception("Failed to list food trucks")
        raise InternalError()


def find_food_truck(db: Database, food_truck_id: str) -> Dict[str, Any]:
    """Raw food truck document, or NotFoundError."""
    try:
        truck = db[FOOD_TRUCKS].find_one({"_id": food_truck_id})
    except PyMongoError:
        logger.exception("Failed to load food truck %s", food_truck_id)
        raise InternalError()
    if not truck:
        raise NotFoundError("Food truck not found")
    return truck


def get_food_truck(db: Database, food_truck_id: str) -> Dict[str, Any]:
    return sanitize(find_food_truck(db, food_truck_id))


def update_food_truck(
    db: Database, identity: Identity, food_truck_id: str, payload: UpdateFoodTruckRequest
) -> None:
    """Set the fields present in the request.

    Claimed trucks can only be edited by their owner or the scraper;
    unclaimed ones by any logged-in user.
    """
    _require_writer(identity)
    update = payload.present_fields()
    if "hours" in update:
        validate_hours(update["hours"])

    truck = find_food_truck(db, food_truck_id)
    owner = truck.get("owner") or ""
    if owner and not identity.trusted_agent and identity.user_id != owner:
        raise PermissionDeniedError("Only the owner may update this food truck")
    if not update:
        return

    try:
        res = db[FOOD_TRUCKS].update_one({"_id": food_truck_id}, {"$set": update})
    except PyMongoError:
        logger.exception("Failed to update food truck %s", food_truck_id)
        raise InternalError()
    if not res.matched_count:
        raise NotFoundError("Food truck not found")
