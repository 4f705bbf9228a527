"""
Shared fixtures for the test suite: an in-memory MongoDB and sample payloads.
"""
import uuid

import mongomock

from database import ensure_indexes


def make_db():
    db = mongomock.MongoClient(tz_aware=True)[f"munch_test_{uuid.uuid4().hex}"]
    ensure_indexes(db)
    return db


def week_of(open_time="09:00", close_time="17:00"):
    return [[open_time, close_time] for _ in range(7)]


def register_payload(email="tester@example.com", password="password123"):
    return {
        "firstName": "some",
        "lastName": "tester",
        "email": email,
        "password": password,
        "dateOfBirth": "1969-04-20T05:00:00.000Z",
    }


def food_truck_payload(**overrides):
    payload = {
        "name": "Taco Town",
        "address": "1 Main St",
        "location": [40.0, -83.0],
        "hours": week_of(),
        "photos": ["https://example.com/taco.png"],
    }
    payload.update(overrides)
    return payload
