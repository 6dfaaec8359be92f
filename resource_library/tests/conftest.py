from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from resource_library import services
from resource_library.catalog.store import ResourceCatalog
from resource_library.config import DEFAULT_APP_CONFIG
from resource_library.models import Resource, Review

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def make_resource():
    def _make(resource_id, subject=None, grade=None, type="document", day=0):
        return Resource(
            id=resource_id,
            title=f"Resource {resource_id}",
            subject=subject,
            grade=grade,
            type=type,
            created_at=_EPOCH + timedelta(days=day),
        )

    return _make


@pytest.fixture
def make_review():
    def _make(resource_id, reviewer_id, rating, is_recommended=True):
        return Review(
            id=uuid.uuid4().hex,
            resource_id=resource_id,
            reviewer_id=reviewer_id,
            rating=rating,
            is_recommended=is_recommended,
            created_at=_EPOCH,
            updated_at=_EPOCH,
        )

    return _make


@pytest.fixture(autouse=True)
def seeded_services():
    """Fresh services over the packaged seed catalog for every test."""
    return services.configure(ResourceCatalog.from_csv(DEFAULT_APP_CONFIG.catalog_path))
