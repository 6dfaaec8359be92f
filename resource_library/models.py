from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serialises field names as camelCase and accepts either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Domain records ───────────────────────────────────────────────────────


class Resource(CamelModel):
    id: str
    title: str
    subject: str | None = None
    grade: int | None = None
    type: str | None = None
    created_at: datetime
    average_rating: float = Field(default=0.0, ge=0.0, le=5.0)
    review_count: int = Field(default=0, ge=0)
    # Running total behind average_rating; internal to the aggregator.
    rating_sum: Decimal = Field(default=Decimal(0), exclude=True)


class Review(CamelModel):
    id: str
    resource_id: str
    reviewer_id: str
    rating: float = Field(..., ge=1.0, le=5.0)
    comment: str | None = None
    is_recommended: bool = True
    created_at: datetime
    updated_at: datetime


# ── Requests ─────────────────────────────────────────────────────────────


class LoginRequest(BaseModel):
    username: str
    password: str


class ReviewSubmit(CamelModel):
    resource_id: str = Field(..., min_length=1)
    rating: float = Field(..., ge=1.0, le=5.0)
    comment: str | None = None
    is_recommended: bool | None = None


# ── Responses ────────────────────────────────────────────────────────────


class ReviewStats(CamelModel):
    count: int
    average_rating: float


class ReviewListResponse(CamelModel):
    reviews: list[Review]
    stats: ReviewStats


class ReviewSubmitResponse(CamelModel):
    message: str
    review: Review


class MessageResponse(CamelModel):
    message: str


class RecommendedResponse(CamelModel):
    recommended_resources: list[Resource]
    count: int


class UserPreferences(CamelModel):
    favorite_subject: str | None = None
    favorite_type: str | None = None
    favorite_grade: int | None = None


class PersonalizedResponse(CamelModel):
    personalized_resources: list[Resource]
    count: int
    user_preferences: UserPreferences


class ScoredResource(CamelModel):
    resource: Resource
    score: float


class CollaborativeResponse(CamelModel):
    collaborative_resources: list[ScoredResource]
    count: int
