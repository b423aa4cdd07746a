"""
app/routers/api.py — Public API endpoints
Endpoints: /api/assign, /api/pray, /api/cemeteries, /api/cemeteries/{id},
           /api/stats, /api/health
Assignment and prayer submission are gated by the store-backed hourly
limiters; the read-only endpoints by slowapi.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from app.clients.store import KeyValueStore
from app.core.cache_manager import CandidatePool
from app.core.exceptions import PersonNotFoundError
from app.core.rate_limiter import RATE_LIMITS, RateLimiter, limiter
from app.core.responses import error_response, success_response
from app.dependencies import (
    get_assign_limiter,
    get_candidate_pool,
    get_pray_limiter,
    get_selector,
    get_store,
)
from app.models import (
    AssignResponse,
    CemeterySummary,
    ErrorCode,
    PrayRequest,
    PrayResponse,
)
from app.services import stats as stats_service
from app.services.assignment_selector import AssignmentSelector
from app.services.prayer_recorder import cooldown_meta, record_prayer
from app.utils.identity import get_ip_hash, get_session_id
from app.utils.timezone import iso_utc

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# GET /api/assign
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/assign")
def assign(
    request: Request,
    selector: AssignmentSelector = Depends(get_selector),
    rate_limiter: RateLimiter = Depends(get_assign_limiter),
    store: KeyValueStore = Depends(get_store),
) -> JSONResponse:
    """
    Assign one deceased person to the visitor.
    429 when rate limited (with Retry-After), 503 when no candidates exist.
    """
    session_id = get_session_id(request)
    ip_hash = get_ip_hash(request)

    rate = rate_limiter.check_and_consume(session_id, ip_hash)
    if not rate.allowed:
        return error_response(
            status.HTTP_429_TOO_MANY_REQUESTS,
            ErrorCode.RATE_LIMITED,
            "Please wait before requesting another assignment.",
            retry_after_seconds=rate.retry_after_seconds,
        )

    person = selector.assign()
    if person is None:
        return error_response(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            ErrorCode.NO_CANDIDATES,
            "No prayer candidates available at this time.",
        )

    cemetery = store.get_cemetery(person.cemetery_id)
    if cemetery is None:
        logger.error(
            f"Assigned person {person.person_id} references missing cemetery {person.cemetery_id}."
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorCode.INTERNAL_ERROR,
            "Cemetery not found for assigned person.",
        )

    data = AssignResponse(
        person_id=person.person_id,
        first_name=person.first_name,
        last_initial=person.last_initial,
        year_of_death=person.year_of_death,
        role=person.role,
        cemetery=CemeterySummary(
            cemetery_id=cemetery.cemetery_id,
            name=cemetery.name,
            city=cemetery.city,
            state=cemetery.state,
        ),
    )
    return success_response(data.model_dump(mode="json"))


# ──────────────────────────────────────────────────────────────────────────────
# POST /api/pray
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/pray")
def pray(
    request: Request,
    body: PrayRequest,
    rate_limiter: RateLimiter = Depends(get_pray_limiter),
    store: KeyValueStore = Depends(get_store),
) -> JSONResponse:
    """
    Record a prayer for an assigned person.
    The prayer counters are consumed only after the prayer is stored.
    """
    session_id = get_session_id(request)
    ip_hash = get_ip_hash(request)

    rate = rate_limiter.check(session_id, ip_hash)
    if not rate.allowed:
        return error_response(
            status.HTTP_429_TOO_MANY_REQUESTS,
            ErrorCode.RATE_LIMITED,
            "You have exceeded the prayer submission limit. Please try again later.",
            retry_after_seconds=rate.retry_after_seconds,
        )

    person = store.get_person(body.person_id)
    if person is None:
        raise PersonNotFoundError(body.person_id)

    prayer = record_prayer(
        store,
        person,
        body.prayer_type,
        session_id=session_id,
        ip_hash=ip_hash,
        user_agent=request.headers.get("user-agent"),
    )
    rate_limiter.consume(session_id, ip_hash)

    data = PrayResponse(
        prayer_id=prayer.prayer_id,
        person_id=prayer.person_id,
        prayer_type=prayer.prayer_type,
        created_at=prayer.created_at,
    )
    return success_response(
        data.model_dump(mode="json"),
        meta=cooldown_meta(prayer).model_dump(mode="json"),
        status_code=status.HTTP_201_CREATED,
    )


# ──────────────────────────────────────────────────────────────────────────────
# Cemeteries and statistics
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/cemeteries")
@limiter.limit(RATE_LIMITS["cemeteries"])
def list_cemeteries(
    request: Request,
    archdiocese: Optional[str] = Query(None, min_length=1, max_length=50),
    store: KeyValueStore = Depends(get_store),
) -> JSONResponse:
    cemeteries = stats_service.list_cemeteries(store, archdiocese)
    return success_response([c.model_dump(mode="json") for c in cemeteries])


@router.get("/cemeteries/{cemetery_id}")
@limiter.limit(RATE_LIMITS["cemeteries"])
def cemetery_detail(
    request: Request,
    cemetery_id: str,
    store: KeyValueStore = Depends(get_store),
) -> JSONResponse:
    detail = stats_service.cemetery_detail(store, cemetery_id)
    return success_response(detail.model_dump(mode="json"))


@router.get("/stats")
@limiter.limit(RATE_LIMITS["stats"])
def global_stats(
    request: Request,
    store: KeyValueStore = Depends(get_store),
) -> JSONResponse:
    data = stats_service.global_stats(store)
    return success_response(data.model_dump(mode="json"), meta={"generated_at": iso_utc()})


# ──────────────────────────────────────────────────────────────────────────────
# GET /api/health — public, no auth
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/health")
@limiter.limit(RATE_LIMITS["health"])
def health_check(
    request: Request,
    store: KeyValueStore = Depends(get_store),
    pool: CandidatePool = Depends(get_candidate_pool),
) -> JSONResponse:
    """
    Store reachability and candidate cache state.
    200 when healthy, 503 when the store cannot be read.
    """
    checks: dict = {"candidate_pool_size": len(pool), "candidate_pool_stale": pool.is_stale()}
    healthy = True

    try:
        store.query_active_candidates(limit=1)
        checks["store_connected"] = True
    except Exception as exc:
        logger.warning(f"Health check: store unreachable: {exc}")
        checks["store_connected"] = False
        checks["store_error"] = str(exc)
        healthy = False

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if healthy else "degraded",
            "checks": checks,
            "timestamp": iso_utc(),
        },
    )
