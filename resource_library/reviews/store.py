from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Iterable

import pandas as pd

from ..errors import NotFoundError
from ..models import Review

FRAME_COLUMNS = ["id", "resource_id", "reviewer_id", "rating", "is_recommended", "created_at"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ReviewStore:
    """Thread-safe in-memory review records keyed by review id."""

    def __init__(self, reviews: Iterable[Review] = ()) -> None:
        self._lock = threading.Lock()
        self._reviews: dict[str, Review] = {r.id: r for r in reviews}

    def __len__(self) -> int:
        with self._lock:
            return len(self._reviews)

    def get(self, review_id: str) -> Review:
        with self._lock:
            review = self._reviews.get(review_id)
        if review is None:
            raise NotFoundError(f"Review {review_id} not found")
        return review

    def all(self) -> list[Review]:
        with self._lock:
            return list(self._reviews.values())

    def find_by_resource(self, resource_id: str) -> list[Review]:
        """Reviews of *resource_id*, newest first."""
        with self._lock:
            found = [r for r in self._reviews.values() if r.resource_id == resource_id]
        return sorted(found, key=lambda r: r.created_at, reverse=True)

    def find_by_reviewer(self, reviewer_id: str) -> list[Review]:
        with self._lock:
            return [r for r in self._reviews.values() if r.reviewer_id == reviewer_id]

    def find_one(self, resource_id: str, reviewer_id: str) -> Review | None:
        with self._lock:
            return self._find_one(resource_id, reviewer_id)

    def _find_one(self, resource_id: str, reviewer_id: str) -> Review | None:
        for review in self._reviews.values():
            if review.resource_id == resource_id and review.reviewer_id == reviewer_id:
                return review
        return None

    def add(self, review: Review) -> None:
        with self._lock:
            self._reviews[review.id] = review

    def upsert(
        self,
        resource_id: str,
        reviewer_id: str,
        rating: float,
        comment: str | None = None,
        is_recommended: bool | None = None,
    ) -> tuple[Review, Review | None]:
        """Create the reviewer's review of a resource, or update the existing one.

        The lookup and the write happen under one lock, so two identical
        submissions never produce two records. Returns ``(saved, previous)``
        where ``previous`` is ``None`` for a newly created review. A ``None``
        comment or recommend flag keeps the stored value on update.
        """
        with self._lock:
            existing = self._find_one(resource_id, reviewer_id)
            now = _now()
            if existing is None:
                saved = Review(
                    id=uuid.uuid4().hex,
                    resource_id=resource_id,
                    reviewer_id=reviewer_id,
                    rating=rating,
                    comment=comment,
                    is_recommended=True if is_recommended is None else is_recommended,
                    created_at=now,
                    updated_at=now,
                )
            else:
                saved = existing.model_copy(update={
                    "rating": rating,
                    "comment": existing.comment if comment is None else comment,
                    "is_recommended": (
                        existing.is_recommended if is_recommended is None else is_recommended
                    ),
                    "updated_at": now,
                })
            self._reviews[saved.id] = saved
            return saved, existing

    def remove(self, review_id: str) -> Review:
        with self._lock:
            review = self._reviews.pop(review_id, None)
        if review is None:
            raise NotFoundError(f"Review {review_id} not found")
        return review

    def to_frame(self) -> pd.DataFrame:
        """All reviews as a DataFrame with ``FRAME_COLUMNS``."""
        rows = [
            {
                "id": r.id,
                "resource_id": r.resource_id,
                "reviewer_id": r.reviewer_id,
                "rating": float(r.rating),
                "is_recommended": bool(r.is_recommended),
                "created_at": r.created_at,
            }
            for r in self.all()
        ]
        return pd.DataFrame(rows, columns=FRAME_COLUMNS)
