import logging
import os
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database

import foodtrucks
import reviews
import users
from auth import Identity, get_identity
from database import get_db
from errors import MunchError
from schemas import (
    CreateFoodTruckRequest,
    LoginRequest,
    RegisterRequest,
    SubmitReviewRequest,
    TokenResponse,
    UpdateFoodTruckRequest,
    UpdateUserRequest,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title="Munch API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(MunchError)
    async def munch_error_handler(request: Request, exc: MunchError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        # Malformed bodies are plain bad requests for this API.
        fields = [".".join(str(part) for part in err["loc"]) for err in exc.errors()]
        logger.info("Rejected %s %s: invalid %s", request.method, request.url.path, fields)
        return JSONResponse(status_code=400, content={"detail": "Invalid request body"})

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    # Users
    @app.post("/register")
    def register(payload: RegisterRequest, db: Database = Depends(get_db)):
        users.register(db, payload)
        return Response(status_code=200)

    @app.post("/login", response_model=TokenResponse)
    def login(payload: LoginRequest, db: Database = Depends(get_db)):
        return TokenResponse(token=users.login(db, payload))

    @app.get("/profile")
    def profile(identity: Identity = Depends(get_identity), db: Database = Depends(get_db)) -> Dict[str, Any]:
        return users.get_profile(db, identity)

    @app.put("/profile/favorites/{food_truck_id}")
    def add_favorite(food_truck_id: str, identity: Identity = Depends(get_identity), db: Database = Depends(get_db)):
        return users.add_favorite(db, identity, food_truck_id)

    @app.delete("/profile/favorites/{food_truck_id}")
    def remove_favorite(food_truck_id: str, identity: Identity = Depends(get_identity), db: Database = Depends(get_db)):
        return users.remove_favorite(db, identity, food_truck_id)

    @app.get("/users/{user_id}")
    def get_user(user_id: str, db: Database = Depends(get_db)) -> Dict[str, Any]:
        return users.get_user(db, user_id)

    @app.put("/users/{user_id}")
    def update_user(
        user_id: str,
        payload: UpdateUserRequest,
        identity: Identity = Depends(get_identity),
        db: Database = Depends(get_db),
    ):
        users.update_user(db, identity, user_id, payload)
        return Response(status_code=200)

    # Food trucks
    @app.post("/foodtrucks")
    def create_food_truck(
        payload: CreateFoodTruckRequest,
        identity: Identity = Depends(get_identity),
        db: Database = Depends(get_db),
    ):
        foodtrucks.create_food_truck(db, identity, payload)
        return Response(status_code=200)

    @app.get("/foodtrucks")
    def list_food_trucks(db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
        return foodtrucks.list_food_trucks(db)

    @app.get("/foodtrucks/{food_truck_id}")
    def get_food_truck(food_truck_id: str, db: Database = Depends(get_db)) -> Dict[str, Any]:
        return foodtrucks.get_food_truck(db, food_truck_id)

    @app.put("/foodtrucks/{food_truck_id}")
    def update_food_truck(
        food_truck_id: str,
        payload: UpdateFoodTruckRequest,
        identity: Identity = Depends(get_identity),
        db: Database = Depends(get_db),
    ):
        foodtrucks.update_food_truck(db, identity, food_truck_id, payload)
        return Response(status_code=200)

    @app.get("/foodtrucks/{food_truck_id}/reviews")
    def list_food_truck_reviews(food_truck_id: str, db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
        return reviews.list_reviews_for_food_truck(db, food_truck_id)

    # Reviews
    @app.post("/reviews")
    def submit_review(
        payload: SubmitReviewRequest,
        identity: Identity = Depends(get_identity),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        return reviews.submit_review(db, identity, payload)

    @app.get("/reviews")
    def list_reviews(db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
        return reviews.list_reviews(db)

    @app.get("/reviews/{review_id}")
    def get_review(review_id: str, db: Database = Depends(get_db)) -> Dict[str, Any]:
        return reviews.get_review(db, review_id)

    # Utility endpoints
    @app.get("/")
    def root():
        return {"message": "Munch API running"}

    @app.get("/health")
    def health(db: Database = Depends(get_db)):
        try:
            collections = db.list_collection_names()
            return {"backend": "ok", "database": "ok", "collections": collections}
        except Exception as e:
            logger.warning("Health check could not reach the database: %s", e)
            return {"backend": "ok", "database": f"error: {e}"}


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
