from __future__ import annotations

import logging
import threading
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Iterable

import pandas as pd

from ..errors import NotFoundError, UpstreamStoreError
from ..models import Resource
from .query import ResourceQuery

logger = logging.getLogger(__name__)

_CSV_COLUMNS = ["id", "title", "subject", "grade", "type", "created_at"]


def to_decimal(rating) -> Decimal:
    """Exact decimal form of a rating as written (1.1 stays 1.1, not its binary float)."""
    if isinstance(rating, Decimal):
        return rating
    return Decimal(str(rating))


def round_rating(total, count: int = 1) -> float:
    """Mean of ``total`` over ``count`` to one decimal, halves away from zero.

    The division happens in ``Decimal``, so ratings 1.1 and 4.6 average to
    2.85 and round to 2.9. A zero count yields 0.0.
    """
    if not count:
        return 0.0
    mean = to_decimal(total) / count
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _optional(value):
    return value if pd.notna(value) else None


def load_resources(path: Path) -> list[Resource]:
    try:
        df = pd.read_csv(path, dtype={"id": str, "title": str, "subject": str, "type": str})
    except (OSError, pd.errors.ParserError) as exc:
        raise UpstreamStoreError(f"Could not load resource catalog from {path}") from exc

    missing = [c for c in _CSV_COLUMNS if c not in df.columns]
    if missing:
        raise UpstreamStoreError(f"Resource catalog {path} lacks columns {missing}")

    df["created_at"] = pd.to_datetime(df["created_at"], utc=True)

    resources: list[Resource] = []
    for _, row in df.iterrows():
        grade = _optional(row["grade"])
        resources.append(Resource(
            id=row["id"],
            title=row["title"],
            subject=_optional(row["subject"]),
            grade=int(grade) if grade is not None else None,
            type=_optional(row["type"]),
            created_at=row["created_at"].to_pydatetime(),
        ))
    return resources


class ResourceCatalog:
    """Thread-safe in-memory resource store.

    Metadata is owned by the catalog; ``average_rating``/``review_count`` are
    only changed through ``set_aggregate`` and ``apply_rating_delta``, each of
    which is a single atomic update.
    """

    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        self._lock = threading.Lock()
        self._resources: dict[str, Resource] = {r.id: r for r in resources}

    @classmethod
    def from_csv(cls, path: Path) -> ResourceCatalog:
        resources = load_resources(path)
        logger.info("Loaded %d resources from %s", len(resources), path)
        return cls(resources)

    def __len__(self) -> int:
        with self._lock:
            return len(self._resources)

    def __contains__(self, resource_id: str) -> bool:
        with self._lock:
            return resource_id in self._resources

    # ── Reads ─────────────────────────────────────────────────────────────

    def get(self, resource_id: str) -> Resource:
        with self._lock:
            return self._get(resource_id)

    def _get(self, resource_id: str) -> Resource:
        # Caller holds self._lock.
        resource = self._resources.get(resource_id)
        if resource is None:
            raise NotFoundError(f"Resource {resource_id} not found")
        return resource

    def get_many(self, resource_ids: Iterable[str]) -> list[Resource]:
        """Return the known resources among *resource_ids*, silently skipping unknown ids."""
        with self._lock:
            return [self._resources[rid] for rid in resource_ids if rid in self._resources]

    def all(self) -> list[Resource]:
        with self._lock:
            return list(self._resources.values())

    def find(
        self,
        query: ResourceQuery,
        limit: int | None = None,
        newest_first: bool = True,
    ) -> list[Resource]:
        with self._lock:
            matches = [r for r in self._resources.values() if query.matches(r)]

        # Id order first so equal timestamps come back in a stable order.
        matches.sort(key=lambda r: r.id)
        if newest_first:
            matches.sort(key=lambda r: r.created_at, reverse=True)

        if limit is not None:
            return matches[:max(limit, 0)]
        return matches

    # ── Writes ────────────────────────────────────────────────────────────

    def add(self, resource: Resource) -> None:
        with self._lock:
            self._resources[resource.id] = resource

    def remove(self, resource_id: str) -> None:
        with self._lock:
            if self._resources.pop(resource_id, None) is None:
                raise NotFoundError(f"Resource {resource_id} not found")

    def set_aggregate(self, resource_id: str, rating_sum, review_count: int) -> Resource:
        """Overwrite the aggregate with a freshly computed sum and count."""
        with self._lock:
            resource = self._get(resource_id)
            updated = self._with_aggregate(resource, to_decimal(rating_sum), review_count)
            self._resources[resource_id] = updated
            return updated

    def apply_rating_delta(self, resource_id: str, delta_sum, delta_count: int) -> Resource:
        """Add ``delta_sum``/``delta_count`` to the stored aggregate in one step."""
        with self._lock:
            resource = self._get(resource_id)
            new_count = resource.review_count + delta_count
            if new_count < 0:
                raise ValueError(
                    f"Review count for resource {resource_id} would drop below zero"
                )
            new_sum = resource.rating_sum + to_decimal(delta_sum)
            updated = self._with_aggregate(resource, new_sum, new_count)
            self._resources[resource_id] = updated
            return updated

    @staticmethod
    def _with_aggregate(resource: Resource, rating_sum: Decimal, review_count: int) -> Resource:
        if review_count == 0:
            return resource.model_copy(
                update={"rating_sum": Decimal(0), "review_count": 0, "average_rating": 0.0}
            )
        return resource.model_copy(update={
            "rating_sum": rating_sum,
            "review_count": review_count,
            "average_rating": round_rating(rating_sum, review_count),
        })
