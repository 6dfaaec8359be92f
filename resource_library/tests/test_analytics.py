from __future__ import annotations

from fastapi.testclient import TestClient

from resource_library import services
from resource_library.analytics.aggregator import compute_analytics
from resource_library.analytics.store import EventStore
from resource_library.app import app
from resource_library.catalog.store import ResourceCatalog
from resource_library.models import ReviewSubmit
from resource_library.recommendations.engine import RecommendationEngine
from resource_library.reviews.aggregator import RatingAggregator
from resource_library.reviews.service import ReviewService
from resource_library.reviews.store import ReviewStore

client = TestClient(app)


def _login_user(c):
    c.post("/auth/login", json={"username": "alice", "password": "alice123"})


def _login_admin(c):
    c.post("/auth/login", json={"username": "admin", "password": "admin123"})


def test_analytics_returns_empty_initially():
    _login_admin(client)
    resp = client.get("/analytics")
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_recommendation_requests"] == 0
    assert body["avg_response_time_ms"] == 0.0
    assert body["reviews"] == {"created": 0, "updated": 0, "removed": 0}


def test_analytics_tracks_review_writes():
    _login_user(client)
    client.post("/reviews", json={"resourceId": "res-001", "rating": 4})
    review_id = client.post(
        "/reviews", json={"resourceId": "res-001", "rating": 5}
    ).json()["review"]["id"]
    client.delete(f"/reviews/{review_id}")
    _login_admin(client)
    body = client.get("/analytics").json()
    assert body["reviews"] == {"created": 1, "updated": 1, "removed": 1}


def test_analytics_tracks_recommendation_kinds():
    _login_user(client)
    client.get("/recommended", params={"subject": "Math"})
    client.get("/personalized", params={"subject": "Math", "grade": 3})
    client.get("/collaborative")
    _login_admin(client)
    body = client.get("/analytics").json()
    assert body["total_recommendation_requests"] == 3
    assert body["requests_by_kind"] == {"global": 1, "personalized": 1, "collaborative": 1}
    # alice has no reviews yet, so the personalized request fell back
    assert body["personalized_fallback_rate"] == 100.0
    assert body["top_subjects"] == [{"name": "Math", "count": 2}]
    assert body["top_grades"] == [{"grade": 3, "count": 1}]


def test_event_filter_by_type():
    events = EventStore()
    events.record("review_created", {"resource_id": "res-001"})
    events.record("recommendation", {"kind": "global", "results_returned": 0})
    assert len(events.events()) == 2
    assert [e["type"] for e in events.events("recommendation")] == ["recommendation"]


def test_event_log_keeps_only_newest_events():
    events = EventStore(max_events=3)
    for i in range(5):
        events.record("review_created", {"resource_id": f"res-{i}"})
    assert len(events) == 3
    assert [e["resource_id"] for e in events.events()] == ["res-2", "res-3", "res-4"]


def test_services_share_the_injected_event_log(make_resource):
    events = EventStore()
    catalog = ResourceCatalog([make_resource("r1", subject="Math")])
    reviews = ReviewStore()
    aggregator = RatingAggregator(reviews, catalog)
    service = ReviewService(reviews, catalog, aggregator, events=events)
    engine = RecommendationEngine(reviews, catalog, events=events)

    service.submit("alice", ReviewSubmit(resource_id="r1", rating=4))
    engine.recommend_global(limit=1)

    assert [e["type"] for e in events.events()] == ["review_created", "recommendation"]


def test_each_service_build_gets_its_own_event_log(seeded_services):
    seeded_services.events.record("review_created", {"resource_id": "res-001"})
    rebuilt = services.configure(seeded_services.catalog)
    assert rebuilt.events is not seeded_services.events
    assert rebuilt.events.events() == []


def test_compute_analytics_empty_result_rate():
    events = [
        {"type": "recommendation", "kind": "global", "results_returned": 0},
        {"type": "recommendation", "kind": "global", "results_returned": 4},
    ]
    assert compute_analytics(events)["empty_result_rate"] == 50.0
