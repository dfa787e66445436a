from __future__ import annotations

import logging
from typing import Any

from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .chat.models import QueryIntent, QueryResult, ReferenceKind, StructuredQuery
from .chat.queries import handle_query
from .errors import (
    AmbiguousReference,
    ConflictError,
    CoreError,
    InvalidArgument,
    InvalidState,
    NotFound,
)
from .menu.cache import CachedDishCatalog
from .menu.catalog import get_catalog
from .recommendations.config import DEFAULT_SCORING_CONFIG
from .recommendations.group import recommend_for_group
from .recommendations.models import (
    FilterRequest,
    FilterResult,
    GroupRecommendationRequest,
    RecommendationRequest,
    RecommendationResponse,
)
from .recommendations.service import filter_by_restrictions, recommend, resolve_dishes
from .sessions.context import ContextResolver, ResolvedReference
from .sessions.models import Customer, CustomerPreferences, Session, SessionContext
from .sessions.preferences import PreferenceStore
from .sessions.registry import get_registry

logger = logging.getLogger(__name__)

app = FastAPI(title="Tableside Dining Assistant Core", version="1.0.0")

registry = get_registry()
catalog = CachedDishCatalog(get_catalog(), ttl=DEFAULT_SCORING_CONFIG.cache_ttl_seconds)
preference_store = PreferenceStore(registry)
context_resolver = ContextResolver(registry)

_STATUS_CODES: dict[type[CoreError], int] = {
    InvalidArgument: 422,
    NotFound: 404,
    ConflictError: 409,
    InvalidState: 409,
    AmbiguousReference: 409,
}


@app.exception_handler(CoreError)
def core_error_handler(request: Request, exc: CoreError) -> JSONResponse:
    logger.warning("%s rejected: %s", exc.operation, exc.message, extra={"error": exc.to_dict()})
    return JSONResponse(status_code=_STATUS_CODES.get(type(exc), 400), content=exc.to_dict())


# ── Request bodies ───────────────────────────────────────────────────────


class CreateSessionRequest(BaseModel):
    table_id: str = Field(..., min_length=1)
    customer_count: int
    request_id: str | None = None


class AddCustomerRequest(BaseModel):
    customer_id: str | None = None


class ResolveRequest(BaseModel):
    reference: ReferenceKind


class ResolveResponse(BaseModel):
    type: str
    reference: ResolvedReference | None = None
    message: str | None = None


class SessionRecommendationRequest(BaseModel):
    customer_id: str | None = Field(
        default=None, description="Recommend for one diner; omit to recommend for the whole table"
    )
    dish_ids: list[str] | None = None
    count: int = Field(default=5, ge=1, le=50)


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/cache/stats")
def cache_stats() -> dict:
    return catalog.get_cache_stats()


# ── Sessions ─────────────────────────────────────────────────────────────


@app.post("/sessions", response_model=Session, status_code=201)
def create_session(body: CreateSessionRequest) -> Session:
    return registry.create(body.table_id, body.customer_count, request_id=body.request_id)


@app.post("/sessions/{session_id}/end", response_model=Session)
def end_session(session_id: str) -> Session:
    return registry.end(session_id)


@app.get("/sessions/{session_id}/context", response_model=SessionContext)
def get_context(session_id: str) -> SessionContext:
    return registry.get_context(session_id)


@app.get("/sessions/{session_id}/archive", response_model=Session)
def get_archive(session_id: str) -> Session:
    return registry.get_archived(session_id)


@app.post("/sessions/{session_id}/customers", response_model=Customer, status_code=201)
def add_customer(session_id: str, body: AddCustomerRequest) -> Customer:
    return registry.add_customer(session_id, body.customer_id)


@app.put(
    "/sessions/{session_id}/customers/{customer_id}/preferences",
    response_model=CustomerPreferences,
)
def set_preference(
    session_id: str,
    customer_id: str,
    body: dict[str, Any] = Body(...),
) -> CustomerPreferences:
    return preference_store.set_preference(session_id, customer_id, body)


@app.patch(
    "/sessions/{session_id}/customers/{customer_id}/preferences",
    response_model=CustomerPreferences,
)
def update_preference(
    session_id: str,
    customer_id: str,
    body: dict[str, Any] = Body(...),
) -> CustomerPreferences:
    return preference_store.update_preference(session_id, customer_id, **body)


# ── Context ──────────────────────────────────────────────────────────────


@app.post("/sessions/{session_id}/resolve", response_model=ResolveResponse)
def resolve_reference(session_id: str, body: ResolveRequest) -> ResolveResponse:
    try:
        ref = context_resolver.resolve(session_id, body.reference)
    except AmbiguousReference as exc:
        return ResolveResponse(type="clarification", message=exc.message)
    return ResolveResponse(type="results", reference=ref)


@app.post("/sessions/{session_id}/queries", response_model=QueryResult)
def submit_query(session_id: str, body: StructuredQuery) -> QueryResult:
    return handle_query(registry, catalog, session_id, body)


@app.post("/sessions/{session_id}/recommendations", response_model=RecommendationResponse)
def session_recommendations(session_id: str, body: SessionRecommendationRequest) -> RecommendationResponse:
    dishes = resolve_dishes(catalog, body.dish_ids)
    if body.customer_id is not None:
        prefs = preference_store.get_preferences(session_id, body.customer_id)
        response = recommend(prefs, dishes, body.count)
        customer_ids = [body.customer_id]
    else:
        table = preference_store.list_preferences(session_id)
        response = recommend_for_group(table, dishes, body.count)
        customer_ids = [p.customer_id for p in table]

    # recommended dishes are in focus for follow-up references
    context_resolver.record(
        session_id,
        QueryIntent.recommendation,
        entities={"customer_ids": customer_ids, "dish_ids": body.dish_ids, "count": body.count},
        focus_dish_ids=[r.dish.dish_id for r in response.recommendations],
        focus_customer_ids=customer_ids,
    )
    return response


# ── Stateless ranking ────────────────────────────────────────────────────


@app.post("/recommendations", response_model=RecommendationResponse)
def recommendations(body: RecommendationRequest) -> RecommendationResponse:
    return recommend(body.preferences, resolve_dishes(catalog, body.dish_ids), body.count)


@app.post("/recommendations/group", response_model=RecommendationResponse)
def group_recommendations(body: GroupRecommendationRequest) -> RecommendationResponse:
    return recommend_for_group(body.preferences, resolve_dishes(catalog, body.dish_ids), body.count)


@app.post("/filter", response_model=FilterResult)
def filter_dishes(body: FilterRequest) -> FilterResult:
    return filter_by_restrictions(resolve_dishes(catalog, body.dish_ids), body.restrictions, body.allergens)


# ── Admin ────────────────────────────────────────────────────────────────


@app.post("/admin/reap")
def reap_idle_sessions() -> dict:
    return {"archived": registry.reap_idle()}
