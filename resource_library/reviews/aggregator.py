"""
Rating aggregate maintenance.

``RatingAggregator`` keeps ``Resource.average_rating``/``review_count`` equal
to the aggregate of the resource's current reviews. The review write path calls
it explicitly after every create, update and delete.

Two strategies are supported:

* ``incremental`` (default): apply ``Δsum``/``Δcount`` to the stored running
  sum in one atomic catalog update.
* ``recompute``: re-read every review of the resource and overwrite the
  aggregate.

Every pass for a resource runs under that resource's lock, so concurrent
writes cannot overwrite each other's result. A failed pass never fails the
review write: it is logged, and the resource is marked stale so its next pass
recomputes from the full review set.
"""
from __future__ import annotations

import logging
import threading
from decimal import Decimal
from typing import Callable, Iterable

from ..catalog.store import ResourceCatalog, to_decimal
from ..config import DEFAULT_AGGREGATION_CONFIG, AggregationConfig
from ..errors import AggregationFailure
from ..models import Resource, Review
from .store import ReviewStore


class RatingAggregator:
    def __init__(
        self,
        review_store: ReviewStore,
        catalog: ResourceCatalog,
        config: AggregationConfig = DEFAULT_AGGREGATION_CONFIG,
        logger: logging.Logger | None = None,
    ) -> None:
        self._reviews = review_store
        self._catalog = catalog
        self._config = config
        self._logger = logger or logging.getLogger(__name__)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._stale: set[str] = set()

    @property
    def stale_resources(self) -> frozenset[str]:
        return frozenset(self._stale)

    # ── Review write path ────────────────────────────────────────────────

    def on_review_written(
        self,
        review: Review,
        is_new: bool,
        previous: Review | None = None,
    ) -> Resource | None:
        """Fold a created (``is_new``) or updated review into its resource's aggregate.

        ``previous`` is the stored review before an update; without it an
        update falls back to a full recompute. Returns the updated resource,
        or ``None`` when the aggregate could not be written.
        """
        resource_id = review.resource_id

        def update() -> Resource:
            if self._can_apply_delta(resource_id) and (is_new or previous is not None):
                delta_sum = to_decimal(review.rating)
                if not is_new:
                    delta_sum -= to_decimal(previous.rating)
                return self._catalog.apply_rating_delta(resource_id, delta_sum, 1 if is_new else 0)
            current = {r.id: r for r in self._reviews.find_by_resource(resource_id)}
            current[review.id] = review
            return self._write_full(resource_id, current.values())

        return self._run_logged(resource_id, update)

    def on_review_removed(self, review: Review) -> Resource | None:
        """Drop a deleted review from its resource's aggregate."""
        resource_id = review.resource_id

        def update() -> Resource:
            if self._can_apply_delta(resource_id):
                return self._catalog.apply_rating_delta(
                    resource_id, -to_decimal(review.rating), -1
                )
            remaining = [
                r for r in self._reviews.find_by_resource(resource_id) if r.id != review.id
            ]
            return self._write_full(resource_id, remaining)

        return self._run_logged(resource_id, update)

    # ── Maintenance ──────────────────────────────────────────────────────

    def recompute(self, resource_id: str) -> Resource:
        """Rebuild one aggregate from the full review set.

        Raises ``AggregationFailure`` if the catalog rejects the write.
        """
        return self._run(
            resource_id,
            lambda: self._write_full(resource_id, self._reviews.find_by_resource(resource_id)),
        )

    def reconcile(self) -> int:
        """Recompute every catalog resource that has, or had, reviews.

        Returns the number of aggregates rewritten.
        """
        candidates = {r.resource_id for r in self._reviews.all()}
        candidates |= {r.id for r in self._catalog.all() if r.review_count}
        candidates |= self._stale

        rewritten = 0
        for resource_id in sorted(candidates):
            if resource_id not in self._catalog:
                continue
            try:
                self.recompute(resource_id)
            except AggregationFailure:
                self._logger.warning("Reconcile skipped resource %s", resource_id, exc_info=True)
                continue
            rewritten += 1
        self._logger.info("Reconciled %d resource aggregates", rewritten)
        return rewritten

    # ── Internals ────────────────────────────────────────────────────────

    def _lock_for(self, resource_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(resource_id)
            if lock is None:
                lock = self._locks[resource_id] = threading.Lock()
            return lock

    def _can_apply_delta(self, resource_id: str) -> bool:
        return self._config.strategy == "incremental" and resource_id not in self._stale

    def _write_full(self, resource_id: str, reviews: Iterable[Review]) -> Resource:
        ratings = [to_decimal(r.rating) for r in reviews]
        return self._catalog.set_aggregate(resource_id, sum(ratings, Decimal(0)), len(ratings))

    def _run(self, resource_id: str, update: Callable[[], Resource]) -> Resource:
        with self._lock_for(resource_id):
            try:
                resource = update()
            except Exception as exc:
                self._stale.add(resource_id)
                raise AggregationFailure(resource_id, str(exc)) from exc
            self._stale.discard(resource_id)
            return resource

    def _run_logged(self, resource_id: str, update: Callable[[], Resource]) -> Resource | None:
        try:
            resource = self._run(resource_id, update)
        except AggregationFailure:
            self._logger.warning(
                "Rating aggregate for resource %s left stale; the review write is kept",
                resource_id,
                exc_info=True,
            )
            return None
        self._logger.debug(
            "Resource %s aggregate: average=%.1f count=%d",
            resource_id,
            resource.average_rating,
            resource.review_count,
        )
        return resource
