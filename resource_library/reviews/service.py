from __future__ import annotations

import logging
from decimal import Decimal

from ..analytics.store import EventStore
from ..catalog.store import ResourceCatalog, round_rating, to_decimal
from ..errors import ValidationError
from ..models import Review, ReviewListResponse, ReviewStats, ReviewSubmit
from ..recommendations.cache import RecommendationCache
from .aggregator import RatingAggregator
from .store import ReviewStore

MIN_RATING = 1.0
MAX_RATING = 5.0


def review_stats(reviews: list[Review]) -> ReviewStats:
    if not reviews:
        return ReviewStats(count=0, average_rating=0.0)
    total = sum((to_decimal(r.rating) for r in reviews), Decimal(0))
    return ReviewStats(count=len(reviews), average_rating=round_rating(total, len(reviews)))


class ReviewService:
    """Review create/update/delete path.

    Each write is persisted first, then handed to the ``RatingAggregator``.
    The review is the durable fact, so an aggregate failure never undoes it.
    """

    def __init__(
        self,
        review_store: ReviewStore,
        catalog: ResourceCatalog,
        aggregator: RatingAggregator,
        cache: RecommendationCache | None = None,
        events: EventStore | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._reviews = review_store
        self._catalog = catalog
        self._aggregator = aggregator
        self._cache = cache
        self._events = events if events is not None else EventStore()
        self._logger = logger or logging.getLogger(__name__)

    def get(self, review_id: str) -> Review:
        return self._reviews.get(review_id)

    def list_for_resource(self, resource_id: str) -> ReviewListResponse:
        reviews = self._reviews.find_by_resource(resource_id)
        return ReviewListResponse(reviews=reviews, stats=review_stats(reviews))

    def submit(self, reviewer_id: str, body: ReviewSubmit) -> tuple[Review, bool]:
        """Create or update *reviewer_id*'s review. Returns ``(review, created)``.

        Raises ``ValidationError`` for an out-of-range rating and
        ``NotFoundError`` when the resource is not in the catalog.
        """
        if not body.resource_id:
            raise ValidationError("resourceId is required")
        if not MIN_RATING <= body.rating <= MAX_RATING:
            raise ValidationError(
                f"rating must be between {MIN_RATING:g} and {MAX_RATING:g}, got {body.rating:g}"
            )
        self._catalog.get(body.resource_id)

        saved, previous = self._reviews.upsert(
            body.resource_id,
            reviewer_id,
            body.rating,
            comment=body.comment,
            is_recommended=body.is_recommended,
        )
        created = previous is None
        self._aggregator.on_review_written(saved, is_new=created, previous=previous)
        self._invalidate()

        self._logger.info(
            "User %s %s review of resource %s",
            reviewer_id,
            "submitted a" if created else "updated their",
            body.resource_id,
        )
        self._events.record("review_created" if created else "review_updated", {
            "resource_id": body.resource_id,
            "rating": body.rating,
        })
        return saved, created

    def remove(self, review_id: str) -> Review:
        """Delete a review and drop it from its resource's aggregate."""
        removed = self._reviews.remove(review_id)
        self._aggregator.on_review_removed(removed)
        self._invalidate()

        self._logger.info("Review %s of resource %s removed", review_id, removed.resource_id)
        self._events.record("review_removed", {"resource_id": removed.resource_id})
        return removed

    def _invalidate(self) -> None:
        if self._cache is not None:
            self._cache.clear()
