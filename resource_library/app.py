from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from .analytics.aggregator import compute_analytics
from .analytics.store import EventStore
from .auth.dependencies import require_admin, require_user
from .auth.users import authenticate
from .catalog.store import ResourceCatalog
from .config import (
    DEFAULT_APP_CONFIG,
    DEFAULT_RECOMMENDATION_CONFIG,
    GRADES,
    RESOURCE_TYPES,
    SUBJECTS,
)
from .errors import NotFoundError, UpstreamStoreError, ValidationError
from .models import (
    CollaborativeResponse,
    LoginRequest,
    MessageResponse,
    PersonalizedResponse,
    RecommendedResponse,
    Resource,
    ReviewListResponse,
    ReviewSubmit,
    ReviewSubmitResponse,
)
from .recommendations.cache import RecommendationCache
from .recommendations.engine import RecommendationEngine
from .reviews.aggregator import RatingAggregator
from .reviews.service import ReviewService
from .services import (
    get_aggregator,
    get_cache,
    get_catalog,
    get_engine,
    get_event_store,
    get_review_service,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Resource Library Recommendation API", version="1.0.0")
app.add_middleware(SessionMiddleware, secret_key=DEFAULT_APP_CONFIG.session_secret)

_DEFAULT_LIMIT = DEFAULT_RECOMMENDATION_CONFIG.default_limit
_MAX_LIMIT = DEFAULT_RECOMMENDATION_CONFIG.max_limit


# ── Error mapping ────────────────────────────────────────────────────────


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(UpstreamStoreError)
async def upstream_handler(request: Request, exc: UpstreamStoreError) -> JSONResponse:
    logger.error("Store failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def _check_subject(subject: str | None) -> None:
    if subject is not None and subject not in SUBJECTS:
        raise ValidationError(f"Unknown subject {subject!r}")


def _check_type(resource_type: str | None) -> None:
    if resource_type is not None and resource_type not in RESOURCE_TYPES:
        raise ValidationError(f"Unknown resource type {resource_type!r}")


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/metadata")
def metadata() -> dict:
    return {
        "subjects": list(SUBJECTS),
        "grades": list(GRADES),
        "types": list(RESOURCE_TYPES),
    }


# ── Auth endpoints ───────────────────────────────────────────────────────


@app.post("/auth/login")
def login(body: LoginRequest, request: Request) -> dict:
    user = authenticate(body.username, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    request.session["user"] = user
    return {"status": "ok", "user": user}


@app.post("/auth/logout")
def logout(request: Request) -> dict:
    request.session.clear()
    return {"status": "logged_out"}


@app.get("/auth/me")
def auth_me(user: dict = Depends(require_user)) -> dict:
    return user


# ── Resources & reviews ──────────────────────────────────────────────────


@app.get("/resources/{resource_id}", response_model=Resource)
def get_resource(
    resource_id: str,
    user: dict = Depends(require_user),
    catalog: ResourceCatalog = Depends(get_catalog),
) -> Resource:
    return catalog.get(resource_id)


@app.get("/reviews/{resource_id}", response_model=ReviewListResponse)
def list_reviews(
    resource_id: str,
    user: dict = Depends(require_user),
    service: ReviewService = Depends(get_review_service),
) -> ReviewListResponse:
    return service.list_for_resource(resource_id)


@app.post("/reviews", response_model=ReviewSubmitResponse)
def submit_review(
    body: ReviewSubmit,
    response: Response,
    user: dict = Depends(require_user),
    service: ReviewService = Depends(get_review_service),
) -> ReviewSubmitResponse:
    review, created = service.submit(user["id"], body)
    response.status_code = 201 if created else 200
    return ReviewSubmitResponse(message="created" if created else "updated", review=review)


@app.delete("/reviews/{review_id}", response_model=MessageResponse)
def delete_review(
    review_id: str,
    user: dict = Depends(require_user),
    service: ReviewService = Depends(get_review_service),
) -> MessageResponse:
    review = service.get(review_id)
    if review.reviewer_id != user["id"] and user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Only the reviewer may delete this review")
    service.remove(review_id)
    return MessageResponse(message="deleted")


# ── Recommendations ──────────────────────────────────────────────────────


@app.get("/recommended", response_model=RecommendedResponse)
def recommended(
    subject: str | None = None,
    grade: int | None = Query(default=None, ge=1, le=6),
    limit: int = Query(default=_DEFAULT_LIMIT, ge=1, le=_MAX_LIMIT),
    user: dict = Depends(require_user),
    engine: RecommendationEngine = Depends(get_engine),
) -> RecommendedResponse:
    _check_subject(subject)
    return engine.recommend_global(subject=subject, grade=grade, limit=limit)


@app.get("/personalized", response_model=PersonalizedResponse | RecommendedResponse)
def personalized(
    subject: str | None = None,
    grade: int | None = Query(default=None, ge=1, le=6),
    limit: int = Query(default=_DEFAULT_LIMIT, ge=1, le=_MAX_LIMIT),
    user: dict = Depends(require_user),
    engine: RecommendationEngine = Depends(get_engine),
) -> PersonalizedResponse | RecommendedResponse:
    # Callers without review history get the /recommended payload.
    _check_subject(subject)
    return engine.recommend_personalized(user["id"], subject=subject, grade=grade, limit=limit)


@app.get("/collaborative", response_model=CollaborativeResponse)
def collaborative(
    subject: str | None = None,
    grade: int | None = Query(default=None, ge=1, le=6),
    type: str | None = None,
    limit: int = Query(default=_DEFAULT_LIMIT, ge=1, le=_MAX_LIMIT),
    user: dict = Depends(require_user),
    engine: RecommendationEngine = Depends(get_engine),
) -> CollaborativeResponse:
    _check_subject(subject)
    _check_type(type)
    return engine.recommend_collaborative(
        user["id"], subject=subject, grade=grade, type=type, limit=limit,
    )


# ── Admin endpoints ──────────────────────────────────────────────────────


@app.get("/analytics")
def analytics(
    user: dict = Depends(require_admin),
    events: EventStore = Depends(get_event_store),
) -> dict:
    return compute_analytics(events.events())


@app.get("/cache/stats")
def cache_stats(
    user: dict = Depends(require_admin),
    cache: RecommendationCache = Depends(get_cache),
) -> dict:
    return cache.stats()


@app.post("/admin/reconcile")
def reconcile(
    user: dict = Depends(require_admin),
    aggregator: RatingAggregator = Depends(get_aggregator),
    cache: RecommendationCache = Depends(get_cache),
) -> dict:
    reconciled = aggregator.reconcile()
    cache.clear()
    return {"reconciled": reconciled}
