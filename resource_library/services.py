"""
Process-wide service wiring.

Builds the catalog, review store, event log, aggregator, review service and
recommendation engine once, passing each its collaborators explicitly. The
API resolves them with ``Depends``; tests call ``configure`` to swap in a
fixed catalog.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from .analytics.store import EventStore
from .catalog.store import ResourceCatalog
from .config import (
    DEFAULT_AGGREGATION_CONFIG,
    DEFAULT_APP_CONFIG,
    DEFAULT_RECOMMENDATION_CONFIG,
    AggregationConfig,
    RecommendationConfig,
)
from .recommendations.cache import RecommendationCache
from .recommendations.engine import RecommendationEngine
from .reviews.aggregator import RatingAggregator
from .reviews.service import ReviewService
from .reviews.store import ReviewStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    catalog: ResourceCatalog
    reviews: ReviewStore
    cache: RecommendationCache
    events: EventStore
    aggregator: RatingAggregator
    review_service: ReviewService
    engine: RecommendationEngine


_services: Services | None = None
_lock = threading.Lock()


def build_services(
    catalog: ResourceCatalog,
    reviews: ReviewStore | None = None,
    aggregation_config: AggregationConfig = DEFAULT_AGGREGATION_CONFIG,
    recommendation_config: RecommendationConfig = DEFAULT_RECOMMENDATION_CONFIG,
) -> Services:
    reviews = reviews if reviews is not None else ReviewStore()
    cache = RecommendationCache(ttl=recommendation_config.cache_ttl)
    events = EventStore(max_events=DEFAULT_APP_CONFIG.event_log_size)
    aggregator = RatingAggregator(
        reviews,
        catalog,
        config=aggregation_config,
        logger=logging.getLogger("resource_library.reviews.aggregator"),
    )
    return Services(
        catalog=catalog,
        reviews=reviews,
        cache=cache,
        events=events,
        aggregator=aggregator,
        review_service=ReviewService(
            reviews,
            catalog,
            aggregator,
            cache=cache,
            events=events,
            logger=logging.getLogger("resource_library.reviews.service"),
        ),
        engine=RecommendationEngine(
            reviews,
            catalog,
            config=recommendation_config,
            cache=cache,
            events=events,
            logger=logging.getLogger("resource_library.recommendations.engine"),
        ),
    )


def configure(
    catalog: ResourceCatalog,
    reviews: ReviewStore | None = None,
    aggregation_config: AggregationConfig = DEFAULT_AGGREGATION_CONFIG,
    recommendation_config: RecommendationConfig = DEFAULT_RECOMMENDATION_CONFIG,
) -> Services:
    """Replace the process-wide services."""
    global _services
    with _lock:
        _services = build_services(catalog, reviews, aggregation_config, recommendation_config)
        return _services


def get_services() -> Services:
    """Return the process-wide services, loading the seed catalog on first call."""
    global _services
    with _lock:
        if _services is None:
            catalog = ResourceCatalog.from_csv(DEFAULT_APP_CONFIG.catalog_path)
            _services = build_services(catalog)
            logger.info("Services initialised with %d catalog resources", len(catalog))
        return _services


def get_catalog() -> ResourceCatalog:
    return get_services().catalog


def get_review_service() -> ReviewService:
    return get_services().review_service


def get_engine() -> RecommendationEngine:
    return get_services().engine


def get_aggregator() -> RatingAggregator:
    return get_services().aggregator


def get_cache() -> RecommendationCache:
    return get_services().cache


def get_event_store() -> EventStore:
    return get_services().events
