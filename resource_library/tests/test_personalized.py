from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from resource_library.app import app
from resource_library.catalog.store import ResourceCatalog
from resource_library.models import PersonalizedResponse, RecommendedResponse
from resource_library.recommendations.engine import (
    RecommendationEngine,
    build_preferences,
    favorite_value,
)
from resource_library.reviews.store import ReviewStore


@pytest.fixture
def catalog(make_resource):
    return ResourceCatalog([
        make_resource("m1", subject="Math", grade=3, type="video", day=1),
        make_resource("a1", subject="Art", grade=2, type="image", day=2),
        make_resource("m2", subject="Math", grade=3, type="video", day=3),
        make_resource("m3", subject="Math", grade=3, type="exercise", day=4),
        make_resource("m4", subject="Math", grade=3, type="video", day=5),
        make_resource("e1", subject="English", grade=3, type="video", day=6),
        make_resource("a2", subject="Art", grade=2, type="video", day=7),
        make_resource("x1", type="other", day=8),
    ])


@pytest.fixture
def engine_for(catalog, make_review):
    def _build(ratings):
        reviews = ReviewStore([make_review(*r) for r in ratings])
        return RecommendationEngine(reviews, catalog)

    return _build


def test_preferences_weight_by_rating(catalog, make_review):
    reviews = [make_review("m1", "u", 5), make_review("a1", "u", 1)]
    prefs = build_preferences(reviews, catalog.get_many(["m1", "a1"]))
    assert prefs.favorite_subject == "Math"
    assert prefs.favorite_type == "video"
    assert prefs.favorite_grade == 3


def test_preferences_accumulate_across_resources(catalog, make_review):
    # Two Art reviews at 3 (0.6 + 0.6) outweigh one Math review at 5 (1.0).
    reviews = [
        make_review("m1", "u", 5),
        make_review("a1", "u", 3),
        make_review("a2", "u", 3),
    ]
    prefs = build_preferences(reviews, catalog.get_many(["m1", "a1", "a2"]))
    assert prefs.favorite_subject == "Art"
    assert prefs.favorite_grade == 2


def test_every_review_of_a_resource_adds_its_weight(catalog, make_review):
    # Two reviews of a1 at 3 (0.6 + 0.6) outweigh one Math review at 5 (1.0).
    reviews = [
        make_review("m1", "u", 5),
        make_review("a1", "u", 3),
        make_review("a1", "u", 3),
    ]
    prefs = build_preferences(reviews, catalog.get_many(["m1", "a1"]))
    assert prefs.favorite_subject == "Art"
    assert prefs.favorite_type == "image"


def test_reviews_of_unlisted_resources_are_ignored(catalog, make_review):
    reviews = [make_review("m1", "u", 2), make_review("gone", "u", 5)]
    prefs = build_preferences(reviews, catalog.get_many(["m1", "gone"]))
    assert prefs.favorite_subject == "Math"


def test_resource_without_dimension_contributes_nothing(catalog, make_review):
    prefs = build_preferences([make_review("x1", "u", 5)], catalog.get_many(["x1"]))
    assert prefs.favorite_subject is None
    assert prefs.favorite_grade is None
    assert prefs.favorite_type == "other"


def test_favorite_tie_breaks_lexicographically():
    assert favorite_value({"Math": 0.6, "Art": 0.6, "Music": 0.2}) == "Art"
    assert favorite_value({"Music": 0.2 + 0.4, "Chinese": 0.6}) == "Chinese"
    assert favorite_value({}) is None


def test_no_history_falls_back_to_global(engine_for, make_review):
    engine = engine_for([
        ("m1", "someone", 5), ("m1", "other", 5), ("m1", "third", 4),
    ])
    personalized = engine.recommend_personalized("newcomer", subject="Math", limit=5)
    expected = engine.recommend_global(subject="Math", limit=5)
    assert isinstance(personalized, RecommendedResponse)
    assert [r.id for r in personalized.recommended_resources] == [
        r.id for r in expected.recommended_resources
    ]


def test_strict_query_uses_favorites(engine_for):
    engine = engine_for([("m1", "u", 5), ("a1", "u", 1)])
    result = engine.recommend_personalized("u", limit=2)
    assert isinstance(result, PersonalizedResponse)
    assert [r.id for r in result.personalized_resources] == ["m4", "m2"]
    assert result.user_preferences.favorite_subject == "Math"
    assert result.user_preferences.favorite_type == "video"


def test_relaxation_fills_without_duplicates_or_reviewed(engine_for):
    engine = engine_for([("m1", "u", 5), ("a1", "u", 1)])
    result = engine.recommend_personalized("u", limit=6)
    ids = [r.id for r in result.personalized_resources]
    # Strict pass: Math/video/grade 3. Relaxed pass: everything else, newest first.
    assert ids == ["m4", "m2", "x1", "a2", "e1", "m3"]
    assert len(set(ids)) == len(ids)
    assert not {"m1", "a1"} & set(ids)
    assert result.count == 6


def test_result_never_exceeds_limit_or_catalog(engine_for):
    engine = engine_for([("m1", "u", 5)])
    assert engine.recommend_personalized("u", limit=3).count == 3
    everything = engine.recommend_personalized("u", limit=50)
    assert everything.count == 7


def test_explicit_filter_overrides_favorite(engine_for):
    engine = engine_for([("m1", "u", 5)])
    result = engine.recommend_personalized("u", subject="English", limit=5)
    assert [r.id for r in result.personalized_resources] == ["e1"]
    assert result.user_preferences.favorite_subject == "Math"


def test_explicit_filter_kept_during_relaxation(engine_for):
    engine = engine_for([("m1", "u", 5)])
    result = engine.recommend_personalized("u", grade=2, limit=5)
    # No grade-2 Math videos, relaxation keeps grade=2 only.
    assert [r.id for r in result.personalized_resources] == ["a2", "a1"]


def test_reviews_of_removed_resources_skip_strict_pass(engine_for):
    engine = engine_for([("gone", "u", 5)])
    result = engine.recommend_personalized("u", limit=2)
    assert isinstance(result, PersonalizedResponse)
    assert result.user_preferences.favorite_subject is None
    assert [r.id for r in result.personalized_resources] == ["x1", "a2"]


# ── HTTP binding ─────────────────────────────────────────────────────────


def _client(username):
    c = TestClient(app)
    c.post("/auth/login", json={"username": username, "password": f"{username}123"})
    return c


def test_personalized_endpoint_payload():
    c = _client("alice")
    c.post("/reviews", json={"resourceId": "res-001", "rating": 5})
    resp = c.get("/personalized", params={"limit": 2})
    assert resp.status_code == 200
    body = resp.json()
    assert body["userPreferences"] == {
        "favoriteSubject": "Math",
        "favoriteType": "video",
        "favoriteGrade": 3,
    }
    ids = [r["id"] for r in body["personalizedResources"]]
    assert "res-001" not in ids
    assert body["count"] == len(ids) == 2


def test_personalized_endpoint_without_history_returns_global_payload():
    c = _client("bob")
    personalized = c.get("/personalized", params={"subject": "Math", "limit": 5}).json()
    recommended = c.get("/recommended", params={"subject": "Math", "limit": 5}).json()
    assert "personalizedResources" not in personalized
    assert personalized == recommended


def test_personalized_requires_login():
    assert TestClient(app).get("/personalized").status_code == 401
