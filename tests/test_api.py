import unittest
from datetime import timedelta
from unittest.mock import patch

import mongomock
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

import database
from auth import create_access_token
from database import get_db
from errors import InternalError
from main import create_app
from tests.support import food_truck_payload, make_db, register_payload, week_of

SCRAPER_HEADERS = {"User-Agent": "MunchCritic/1.0"}


class ApiTests(unittest.TestCase):
    def setUp(self):
        self.db = make_db()
        app = create_app()
        app.dependency_overrides[get_db] = lambda: self.db
        self.client = TestClient(app)

    def register_and_login(self, email="a@example.com", password="pw-123456"):
        response = self.client.post("/register", json=register_payload(email=email, password=password))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"")
        response = self.client.post("/login", json={"email": email, "password": password})
        self.assertEqual(response.status_code, 200)
        return {"Authorization": f"Bearer {response.json()['token']}"}

    def create_truck(self, headers, **overrides):
        response = self.client.post("/foodtrucks", json=food_truck_payload(**overrides), headers=headers)
        self.assertEqual(response.status_code, 200)
        trucks = self.client.get("/foodtrucks").json()
        return trucks[-1]["id"]

    def test_review_scenario(self):
        auth = self.register_and_login()
        profile = self.client.get("/profile", headers=auth).json()
        truck_id = self.create_truck(auth)

        response = self.client.post("/reviews", json={"foodTruck": truck_id, "rating": 4.0}, headers=auth)
        self.assertEqual(response.status_code, 200)
        first = response.json()
        self.assertEqual(first["reviewer"], profile["id"])

        truck = self.client.get(f"/foodtrucks/{truck_id}").json()
        self.assertEqual(truck["avgRating"], 4.0)
        self.assertEqual(truck["reviews"], [first["id"]])

        response = self.client.post("/reviews", json={"foodTruck": truck_id, "rating": 2.0, "reviewerName": "bob"})
        self.assertEqual(response.status_code, 200)
        second = response.json()
        self.assertEqual(second["reviewer"], "")
        self.assertEqual(second["reviewerName"], "bob")

        truck = self.client.get(f"/foodtrucks/{truck_id}").json()
        self.assertAlmostEqual(truck["avgRating"], 3.0)
        self.assertEqual(truck["reviews"], [first["id"], second["id"]])

        profile = self.client.get("/profile", headers=auth).json()
        self.assertEqual(profile["reviews"], [first["id"]])
        self.assertEqual(profile["ownedFoodTrucks"], [truck_id])

        listed = self.client.get(f"/foodtrucks/{truck_id}/reviews").json()
        self.assertEqual([r["id"] for r in listed], [first["id"], second["id"]])
        self.assertEqual(self.client.get(f"/reviews/{second['id']}").json()["reviewerName"], "bob")
        self.assertEqual(len(self.client.get("/reviews").json()), 2)

    def test_register_validation_and_conflict(self):
        body = register_payload()
        del body["dateOfBirth"]
        self.assertEqual(self.client.post("/register", json=body).status_code, 400)
        self.assertEqual(self.client.post("/register", json=register_payload()).status_code, 200)
        response = self.client.post("/register", json=register_payload())
        self.assertEqual(response.status_code, 409)
        self.assertIn("detail", response.json())

    def test_login_failures(self):
        self.register_and_login()
        response = self.client.post("/login", json={"email": "a@example.com", "password": "wrong"})
        self.assertEqual(response.status_code, 401)
        response = self.client.post("/login", json={"email": "nobody@example.com", "password": "pw-123456"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.client.post("/login", json={"email": "a@example.com"}).status_code, 400)

    def test_profile_requires_valid_token(self):
        self.assertEqual(self.client.get("/profile").status_code, 401)
        expired = create_access_token("whoever", expires_delta=timedelta(minutes=-5))
        response = self.client.get("/profile", headers={"Authorization": f"Bearer {expired}"})
        self.assertEqual(response.status_code, 401)

    def test_stale_token_counts_as_no_token(self):
        stale = {"Authorization": f"Bearer {create_access_token('whoever', expires_delta=timedelta(minutes=-5))}"}
        truck_id = self.create_truck({**SCRAPER_HEADERS, **stale})
        self.assertEqual(self.client.get(f"/foodtrucks/{truck_id}").json()["owner"], "")

        response = self.client.post("/reviews", json={"foodTruck": truck_id, "rating": 4, "reviewerName": "bob"}, headers=stale)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["reviewer"], "")
        self.assertEqual(response.json()["reviewerName"], "bob")

        response = self.client.post("/reviews", json={"foodTruck": truck_id, "rating": 4}, headers=stale)
        self.assertEqual(response.status_code, 400)

    def test_review_reads_back_as_created(self):
        truck_id = self.create_truck(SCRAPER_HEADERS)
        created = self.client.post("/reviews", json={"foodTruck": truck_id, "rating": 5, "reviewerName": "bob"}).json()
        fetched = self.client.get(f"/reviews/{created['id']}").json()
        self.assertEqual(created, fetched)
        self.assertEqual(self.client.get(f"/foodtrucks/{truck_id}/reviews").json(), [created])

    def test_public_user_view(self):
        auth = self.register_and_login()
        user_id = self.client.get("/profile", headers=auth).json()["id"]
        public = self.client.get(f"/users/{user_id}").json()
        self.assertEqual(public["firstName"], "some")
        self.assertNotIn("passwordHash", public)
        self.assertEqual(self.client.get("/users/missing").status_code, 404)

    def test_update_user(self):
        auth = self.register_and_login()
        user_id = self.client.get("/profile", headers=auth).json()["id"]
        response = self.client.put(f"/users/{user_id}", json={"city": "Columbus"}, headers=auth)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get("/profile", headers=auth).json()["city"], "Columbus")
        response = self.client.put(f"/users/{user_id}", json={"passwordHash": "x"}, headers=auth)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.put(f"/users/{user_id}", json={"city": "X"}).status_code, 401)

    def test_food_truck_auth_and_validation(self):
        self.assertEqual(self.client.post("/foodtrucks", json=food_truck_payload()).status_code, 401)
        hours = week_of()
        hours[4] = ["25", "17:00"]
        response = self.client.post("/foodtrucks", json=food_truck_payload(hours=hours), headers=SCRAPER_HEADERS)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get("/foodtrucks").json(), [])

        body = food_truck_payload()
        del body["photos"]
        self.assertEqual(self.client.post("/foodtrucks", json=body, headers=SCRAPER_HEADERS).status_code, 400)

        truck_id = self.create_truck(SCRAPER_HEADERS)
        self.assertEqual(self.client.get(f"/foodtrucks/{truck_id}").json()["owner"], "")

    def test_update_food_truck(self):
        auth = self.register_and_login()
        truck_id = self.create_truck(auth)
        response = self.client.put(f"/foodtrucks/{truck_id}", json={"status": True, "tags": ["bbq"]}, headers=auth)
        self.assertEqual(response.status_code, 200)
        truck = self.client.get(f"/foodtrucks/{truck_id}").json()
        self.assertIs(truck["status"], True)
        self.assertEqual(truck["tags"], ["bbq"])

        response = self.client.put(f"/foodtrucks/{truck_id}", json={"avgRating": 5.0}, headers=auth)
        self.assertEqual(response.status_code, 400)
        response = self.client.put("/foodtrucks/missing", json={"name": "X"}, headers=auth)
        self.assertEqual(response.status_code, 404)

        other = self.register_and_login(email="b@example.com")
        response = self.client.put(f"/foodtrucks/{truck_id}", json={"name": "X"}, headers=other)
        self.assertEqual(response.status_code, 403)

    def test_review_errors(self):
        truck_id = self.create_truck(SCRAPER_HEADERS)
        self.assertEqual(self.client.post("/reviews", json={"foodTruck": truck_id, "rating": 4}).status_code, 400)
        response = self.client.post("/reviews", json={"foodTruck": "missing", "rating": 4, "reviewerName": "bob"})
        self.assertEqual(response.status_code, 404)
        response = self.client.post("/reviews", json={"foodTruck": truck_id, "rating": 9, "reviewerName": "bob"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get("/foodtrucks/missing/reviews").status_code, 404)
        self.assertEqual(self.client.get("/reviews/missing").status_code, 404)

    def test_favorites(self):
        auth = self.register_and_login()
        truck_id = self.create_truck(SCRAPER_HEADERS)
        response = self.client.put(f"/profile/favorites/{truck_id}", headers=auth)
        self.assertEqual(response.json()["favorites"], [truck_id])
        response = self.client.delete(f"/profile/favorites/{truck_id}", headers=auth)
        self.assertEqual(response.json()["favorites"], [])
        self.assertEqual(self.client.put(f"/profile/favorites/{truck_id}").status_code, 401)


class ErrorDetailTests(unittest.TestCase):
    def test_default_and_explicit_detail(self):
        self.assertEqual(InternalError().detail, "Internal server error")
        self.assertEqual(str(InternalError()), "Internal server error")
        self.assertEqual(InternalError("Database not available").detail, "Database not available")


class DatabaseUnavailableTests(unittest.TestCase):
    def setUp(self):
        self.addCleanup(setattr, database, "_db", database._db)
        database._db = None

    def test_unreachable_database_is_json_500(self):
        with patch("database.MongoClient", return_value=mongomock.MongoClient()), patch(
            "database.ensure_indexes", side_effect=ServerSelectionTimeoutError("no servers")
        ):
            with self.assertRaises(InternalError):
                database.get_db()
            self.assertIsNone(database._db)
            response = TestClient(create_app()).get("/foodtrucks")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"detail": "Database not available"})

    def test_client_is_created_once(self):
        with patch("database.MongoClient", return_value=mongomock.MongoClient()) as client_cls, patch(
            "database.ensure_indexes"
        ):
            first = database.get_db()
            second = database.get_db()
        self.assertIs(first, second)
        self.assertEqual(client_cls.call_count, 1)


if __name__ == "__main__":
    unittest.main()
