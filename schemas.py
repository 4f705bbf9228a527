"""
Database Schemas for the Munch food truck platform

MongoDB collections are defined below using Pydantic models. Field names are
stored and sent over the wire in camelCase (first_name -> "firstName").

We will use these collections:
- users: registered users and their relationship id lists
- foodTrucks: food truck listings with a running average rating
- reviews: immutable reviews, in-app or scraped
"""

from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

DEFAULT_ORIGIN = "munchapp"

# [open, close] for a single day, e.g. ["09:00", "17:30"]
HoursPair = Annotated[List[str], Field(min_length=2, max_length=2)]
WeeklyHours = Annotated[List[HoursPair], Field(min_length=7, max_length=7)]
# [latitude, longitude]
Location = Annotated[List[float], Field(min_length=2, max_length=2)]


class MunchModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class RequestModel(MunchModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    def present_fields(self) -> dict:
        """Fields the client actually sent, keyed by their stored name.

        An explicit null counts as not sent, so a false or empty value can
        still be told apart from an absent one.
        """
        data = self.model_dump(by_alias=True, exclude_unset=True)
        return {k: v for k, v in data.items() if v is not None}


# -------------------------
# Collections
# -------------------------

class User(MunchModel):
    """Users collection schema
    Collection name: "users"
    """
    first_name: str
    last_name: str
    email: EmailStr
    password_hash: str = Field(..., description="BCrypt hash of password")
    date_of_birth: datetime
    phone_number: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    reviews: List[str] = Field(default_factory=list, description="Authored review ids")
    owned_food_trucks: List[str] = Field(default_factory=list, description="Owned food truck ids")
    favorites: List[str] = Field(default_factory=list, description="Favorite food truck ids")


class FoodTruck(MunchModel):
    """Food trucks collection schema
    Collection name: "foodTrucks"
    """
    name: str
    address: str
    location: Optional[Location] = None
    owner: str = Field("", description="Owning user id, empty when unclaimed")
    status: bool = False
    avg_rating: float = Field(0.0, description="Mean of the ratings of all reviews")
    hours: WeeklyHours
    reviews: List[str] = Field(default_factory=list, description="Review ids in submission order")
    photos: List[str] = Field(default_factory=list)
    website: str = ""
    phone_number: str = ""
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    version: int = Field(0, description="Bumped on every review aggregate update")


class Review(MunchModel):
    """Reviews collection schema
    Collection name: "reviews"
    """
    reviewer: str = Field("", description="Reviewing user id, empty when anonymous")
    reviewer_name: str = ""
    food_truck: str
    comment: str = ""
    rating: float
    date: datetime
    origin: str = DEFAULT_ORIGIN


# -------------------------
# Requests / Responses
# -------------------------

class RegisterRequest(RequestModel):
    first_name: str
    last_name: str
    email: EmailStr
    password: str = Field(..., min_length=1)
    date_of_birth: datetime


class LoginRequest(RequestModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    token: str


class UpdateUserRequest(RequestModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    favorites: Optional[List[str]] = None


class CreateFoodTruckRequest(RequestModel):
    name: str
    address: str
    location: Optional[Location] = None
    hours: WeeklyHours
    photos: List[str]
    website: str = ""
    phone_number: str = ""
    description: str = ""
    tags: Optional[List[str]] = None


class UpdateFoodTruckRequest(RequestModel):
    name: Optional[str] = None
    address: Optional[str] = None
    location: Optional[Location] = None
    status: Optional[bool] = None
    hours: Optional[WeeklyHours] = None
    photos: Optional[List[str]] = None
    website: Optional[str] = None
    phone_number: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None


class SubmitReviewRequest(RequestModel):
    reviewer_name: str = ""
    food_truck: Optional[str] = None
    comment: str = ""
    rating: Optional[float] = None
    date: Optional[datetime] = None
    origin: Optional[str] = None
