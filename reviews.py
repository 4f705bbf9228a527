"""
Review submission and the running average rating of each food truck.

A review is written once and then linked from its author and its food truck.
The food truck link also folds the rating into avgRating, so a truck's
average is always the mean of the ratings of the reviews in its list.
"""
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo.database import Database
from pymongo.errors import PyMongoError

from auth import Identity
from database import FOOD_TRUCKS, REVIEWS, USERS, new_id, sanitize, sanitize_all
from errors import InternalError, NotFoundError, ValidationError
from foodtrucks import find_food_truck
from schemas import DEFAULT_ORIGIN, Review, SubmitReviewRequest

logger = logging.getLogger(__name__)

REVIEW_UPDATE_MAX_RETRIES = int(os.getenv("REVIEW_UPDATE_MAX_RETRIES", 5))

# Bounds for reviews written in the app.
MIN_RATING = 1
MAX_RATING = 5


def running_average(current_avg: float, count: int, rating: float) -> float:
    """Average after adding one rating, from the previous average and count."""
    return (current_avg * count + rating) / (count + 1)


def review_date(value: Optional[datetime]) -> datetime:
    """UTC date at the millisecond precision MongoDB keeps; naive means UTC."""
    if value is None:
        value = datetime.now(timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def submit_review(db: Database, identity: Identity, payload: SubmitReviewRequest) -> Dict[str, Any]:
    reviewer = identity.user_id or ""
    reviewer_name = payload.reviewer_name.strip()
    origin = payload.origin or DEFAULT_ORIGIN
    if not reviewer and not reviewer_name:
        raise ValidationError("reviewerName is required when not logged in")
    if not payload.food_truck:
        raise ValidationError("foodTruck is required")
    if payload.rating is None:
        raise ValidationError("rating is required")
    # Scraped reviews keep the scale of the site they came from.
    if origin == DEFAULT_ORIGIN and not MIN_RATING <= payload.rating <= MAX_RATING:
        raise ValidationError(f"rating must be between {MIN_RATING} and {MAX_RATING}")

    # Fail before writing anything if the truck doesn't exist.
    find_food_truck(db, payload.food_truck)

    review_doc = Review(
        reviewer=reviewer,
        reviewer_name=reviewer_name,
        food_truck=payload.food_truck,
        comment=payload.comment,
        rating=payload.rating,
        date=review_date(payload.date),
        origin=origin,
    ).to_document()
    review_doc["_id"] = new_id()

    try:
        db[REVIEWS].insert_one(review_doc)
    except PyMongoError:
        logger.exception("Failed to insert review for food truck %s", payload.food_truck)
        raise InternalError()

    link_review(db, review_doc)
    logger.info("Review %s added to food truck %s", review_doc["_id"], payload.food_truck)
    return get_review(db, review_doc["_id"])


def link_review(db: Database, review_doc: Dict[str, Any]) -> float:
    """Attach a stored review to its author and food truck.

    Safe to call again for a review that is already (partly) linked, e.g. to
    repair one whose first attempt failed halfway. Returns the food truck's
    average rating afterwards.
    """
    review_id = review_doc["_id"]
    reviewer = review_doc.get("reviewer")
    try:
        if reviewer:
            db[USERS].update_one({"_id": reviewer}, {"$addToSet": {"reviews": review_id}})
    except PyMongoError:
        logger.exception("Failed to link review %s to user %s", review_id, reviewer)
        raise InternalError()
    return _add_rating(db, review_doc["foodTruck"], review_id, review_doc["rating"])


def _add_rating(db: Database, food_truck_id: str, review_id: str, rating: float) -> float:
    # Optimistic concurrency: the write only lands if nobody bumped the
    # version since we read the truck, otherwise re-read and recompute.
    for attempt in range(REVIEW_UPDATE_MAX_RETRIES):
        truck = find_food_truck(db, food_truck_id)
        linked = truck.get("reviews") or []
        if review_id in linked:
            return truck.get("avgRating", 0.0)

        new_avg = running_average(truck.get("avgRating") or 0.0, len(linked), rating)
        version = truck.get("version")
        query = {
            "_id": food_truck_id,
            "reviews": {"$ne": review_id},
            "version": version if version is not None else {"$exists": False},
        }
        update = {
            "$set": {"avgRating": new_avg},
            "$push": {"reviews": review_id},
            "$inc": {"version": 1},
        }
        try:
            res = db[FOOD_TRUCKS].update_one(query, update)
        except PyMongoError:
            logger.exception("Failed to link review %s to food truck %s", review_id, food_truck_id)
            raise InternalError()
        if res.modified_count:
            return new_avg
        logger.warning(
            "Food truck %s changed while adding review %s (attempt %d)",
            food_truck_id, review_id, attempt + 1,
        )

    logger.error("Gave up adding review %s to food truck %s", review_id, food_truck_id)
    raise InternalError("Food truck is busy, please retry")


def list_reviews_for_food_truck(db: Database, food_truck_id: str) -> List[Dict[str, Any]]:
    truck = find_food_truck(db, food_truck_id)
    review_ids = truck.get("reviews") or []
    if not review_ids:
        return []
    try:
        docs = list(db[REVIEWS].find({"_id": {"$in": review_ids}}))
    except PyMongoError:
        logger.exception("Failed to load reviews of food truck %s", food_truck_id)
        raise InternalError()
    position = {rid: i for i, rid in enumerate(review_ids)}
    docs.sort(key=lambda d: position[d["_id"]])
    return sanitize_all(docs)


def list_reviews(db: Database) -> List[Dict[str, Any]]:
    try:
        return sanitize_all(db[REVIEWS].find({}))
    except PyMongoError:
        logger.exception("Failed to list reviews")
        raise InternalError()


def get_review(db: Database, review_id: str) -> Dict[str, Any]:
    try:
        review = db[REVIEWS].find_one({"_id": review_id})
    except PyMongoError:
        logger.exception("Failed to load review %s", review_id)
        raise InternalError()
    if not review:
        raise NotFoundError("Review not found")
    return sanitize(review)
