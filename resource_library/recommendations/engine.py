from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Iterable

import pandas as pd

from ..analytics.store import EventStore
from ..catalog.query import ResourceQuery
from ..catalog.store import ResourceCatalog, round_rating, to_decimal
from ..config import DEFAULT_RECOMMENDATION_CONFIG, RecommendationConfig
from ..errors import ValidationError
from ..models import (
    CollaborativeResponse,
    PersonalizedResponse,
    RecommendedResponse,
    Resource,
    Review,
    ScoredResource,
    UserPreferences,
)
from ..reviews.store import ReviewStore
from .cache import RecommendationCache
from .collaborative import hybrid_scores

PREFERENCE_DIMENSIONS = ("subject", "type", "grade")
STATS_COLUMNS = [
    "resource_id", "rating_total", "average_rating", "review_count", "recommend_count",
]


def favorite_value(tally: dict) -> str | int | None:
    """Value with the highest accumulated weight.

    Ties go to the lexicographically smallest value (compared as strings).
    """
    if not tally:
        return None
    return min(tally.items(), key=lambda kv: (-round(kv[1], 9), str(kv[0])))[0]


def build_preferences(reviews: Iterable[Review], resources: Iterable[Resource]) -> UserPreferences:
    """Weight each review's resource by ``rating / 5`` per dimension and pick favorites.

    Every review adds its own weight; reviews of resources missing from
    *resources* add nothing.
    """
    by_id = {r.id: r for r in resources}
    tallies: dict[str, dict] = {dim: {} for dim in PREFERENCE_DIMENSIONS}

    for review in reviews:
        resource = by_id.get(review.resource_id)
        if resource is None:
            continue
        weight = review.rating / 5
        for dim, tally in tallies.items():
            value = getattr(resource, dim)
            if value is not None:
                tally[value] = tally.get(value, 0.0) + weight

    return UserPreferences(
        favorite_subject=favorite_value(tallies["subject"]),
        favorite_type=favorite_value(tallies["type"]),
        favorite_grade=favorite_value(tallies["grade"]),
    )


class RecommendationEngine:
    """Global, personalized and collaborative resource recommendations.

    Reads the review history and the catalog on demand; never writes either.
    """

    def __init__(
        self,
        review_store: ReviewStore,
        catalog: ResourceCatalog,
        config: RecommendationConfig = DEFAULT_RECOMMENDATION_CONFIG,
        cache: RecommendationCache | None = None,
        events: EventStore | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._reviews = review_store
        self._catalog = catalog
        self._config = config
        self._cache = cache
        self._events = events if events is not None else EventStore()
        self._logger = logger or logging.getLogger(__name__)

    # ── Global ───────────────────────────────────────────────────────────

    def recommend_global(
        self,
        subject: str | None = None,
        grade: int | None = None,
        limit: int | None = None,
    ) -> RecommendedResponse:
        start_time = time.time()
        limit = self._limit(limit)

        response = self._global(subject, grade, limit)

        self._record("global", start_time, subject, grade, response.count)
        return response

    def _global(self, subject: str | None, grade: int | None, limit: int) -> RecommendedResponse:
        request_dict = {"kind": "global", "subject": subject, "grade": grade, "limit": limit}
        generation = None
        if self._cache is not None:
            generation = self._cache.generation
            cached = self._cache.get(request_dict)
            if cached is not None:
                return cached

        selected = self._top_rated(subject, grade, limit)
        quality_count = len(selected)

        # --- Backfill with the newest matching resources ---
        if len(selected) < limit:
            backfill = ResourceQuery(subject=subject, grade=grade).excluding(r.id for r in selected)
            selected += self._catalog.find(backfill, limit=limit - len(selected))

        self._logger.info(
            "Global recommendations: %d top rated, %d backfilled (subject=%s grade=%s limit=%d)",
            quality_count,
            len(selected) - quality_count,
            subject,
            grade,
            limit,
        )
        response = RecommendedResponse(recommended_resources=selected, count=len(selected))
        # A review written while computing bumps the generation; don't cache then.
        if self._cache is not None and not self._cache.set(request_dict, response, generation):
            self._logger.debug("Review write during computation, result not cached")
        return response

    def rating_stats(self) -> pd.DataFrame:
        """Per-resource rating total, exact mean rating, review count and recommend count.

        ``rating_total`` and ``average_rating`` hold ``Decimal`` values so the
        quality floor and the displayed rounding see the exact mean.
        """
        frame = self._reviews.to_frame()
        if frame.empty:
            return pd.DataFrame(columns=STATS_COLUMNS)
        stats = (
            frame.groupby("resource_id")
            .agg(
                review_count=("rating", "size"),
                recommend_count=("is_recommended", "sum"),
            )
            .reset_index()
        )
        totals: dict[str, Decimal] = {}
        for resource_id, rating in zip(frame["resource_id"], frame["rating"]):
            totals[resource_id] = totals.get(resource_id, Decimal(0)) + to_decimal(rating)
        stats["rating_total"] = stats["resource_id"].map(totals)
        stats["average_rating"] = [
            total / int(count)
            for total, count in zip(stats["rating_total"], stats["review_count"])
        ]
        return stats[STATS_COLUMNS]

    def _top_rated(self, subject: str | None, grade: int | None, limit: int) -> list[Resource]:
        stats = self.rating_stats()
        if stats.empty:
            return []

        floor = to_decimal(self._config.min_average_rating)
        qualified = stats[
            (stats["average_rating"] >= floor)
            & (stats["review_count"] >= self._config.min_review_count)
        ]
        # Decimal means sort exactly in Python; ties by recommend count, then id.
        ranked = sorted(
            qualified.itertuples(index=False),
            key=lambda s: (-s.average_rating, -s.recommend_count, s.resource_id),
        )[:limit]
        if not ranked:
            return []

        rank = {s.resource_id: i for i, s in enumerate(ranked)}
        by_id = {s.resource_id: s for s in ranked}

        found = self._catalog.find(
            ResourceQuery(subject=subject, grade=grade, ids=frozenset(rank)),
            newest_first=False,
        )
        items = [
            r.model_copy(update={
                "average_rating": round_rating(
                    by_id[r.id].rating_total, int(by_id[r.id].review_count)
                ),
                "review_count": int(by_id[r.id].review_count),
            })
            for r in found
        ]
        # Filtering may drop ranks; restore rank order, then sort by rating.
        items.sort(key=lambda r: rank[r.id])
        items.sort(key=lambda r: r.average_rating, reverse=True)
        return items

    # ── Personalized ─────────────────────────────────────────────────────

    def recommend_personalized(
        self,
        user_id: str,
        subject: str | None = None,
        grade: int | None = None,
        limit: int | None = None,
    ) -> PersonalizedResponse | RecommendedResponse:
        """Recommend from the user's own review history.

        A user without reviews gets the global recommendations for the same
        filters, returned as a ``RecommendedResponse``.
        """
        start_time = time.time()
        limit = self._limit(limit)

        user_reviews = self._reviews.find_by_reviewer(user_id)
        if not user_reviews:
            self._logger.info("User %s has no reviews, using global recommendations", user_id)
            fallback = self._global(subject, grade, limit)
            self._record("personalized", start_time, subject, grade, fallback.count, fallback=True)
            return fallback

        reviewed_ids = frozenset(r.resource_id for r in user_reviews)
        reviewed = self._catalog.get_many(sorted(reviewed_ids))
        preferences = build_preferences(user_reviews, reviewed)

        strict = ResourceQuery(
            subject=subject if subject is not None else preferences.favorite_subject,
            grade=grade if grade is not None else preferences.favorite_grade,
            type=preferences.favorite_type,
            exclude_ids=reviewed_ids,
        )
        picked: list[Resource] = []
        if strict.has_attribute_constraints:
            picked = self._catalog.find(strict, limit=limit)

        # --- Relaxation: explicit filters only ---
        if len(picked) < limit:
            relaxed = ResourceQuery(subject=subject, grade=grade, exclude_ids=reviewed_ids)
            relaxed = relaxed.excluding(r.id for r in picked)
            picked += self._catalog.find(relaxed, limit=limit - len(picked))

        self._logger.info(
            "Personalized recommendations for user %s: %d resources (%s)",
            user_id,
            len(picked),
            preferences.model_dump(),
        )
        self._record("personalized", start_time, subject, grade, len(picked))
        return PersonalizedResponse(
            personalized_resources=picked,
            count=len(picked),
            user_preferences=preferences,
        )

    # ── Collaborative ────────────────────────────────────────────────────

    def recommend_collaborative(
        self,
        user_id: str,
        subject: str | None = None,
        grade: int | None = None,
        type: str | None = None,
        limit: int | None = None,
    ) -> CollaborativeResponse:
        start_time = time.time()
        limit = self._limit(limit)

        scores = hybrid_scores(
            self._reviews.to_frame(),
            user_id,
            threshold=self._config.similarity_threshold,
            user_weight=self._config.user_weight,
            item_weight=self._config.item_weight,
        )
        found = self._catalog.find(
            ResourceQuery(subject=subject, grade=grade, type=type, ids=frozenset(scores)),
            newest_first=False,
        )
        found.sort(key=lambda r: r.id)
        found.sort(key=lambda r: scores[r.id], reverse=True)

        items = [
            ScoredResource(resource=r, score=round(scores[r.id], 4)) for r in found[:limit]
        ]
        self._logger.info(
            "Collaborative recommendations for user %s: %d of %d scored resources",
            user_id,
            len(items),
            len(scores),
        )
        self._record("collaborative", start_time, subject, grade, len(items))
        return CollaborativeResponse(collaborative_resources=items, count=len(items))

    # ── Helpers ──────────────────────────────────────────────────────────

    def _limit(self, limit: int | None) -> int:
        if limit is None:
            return self._config.default_limit
        if limit < 1:
            raise ValidationError(f"limit must be at least 1, got {limit}")
        if limit > self._config.max_limit:
            raise ValidationError(f"limit must be at most {self._config.max_limit}, got {limit}")
        return limit

    def _record(
        self,
        kind: str,
        start_time: float,
        subject: str | None,
        grade: int | None,
        results: int,
        fallback: bool = False,
    ) -> None:
        self._events.record("recommendation", {
            "kind": kind,
            "subject": subject,
            "grade": grade,
            "fallback": fallback,
            "results_returned": results,
            "response_time_ms": round((time.time() - start_time) * 1000, 1),
        })
