"""
app/routers/admin.py — Catalog management
Endpoints: POST /api/admin/cemeteries, POST /api/admin/deceased,
           PATCH /api/admin/deceased/{person_id}, DELETE /api/admin/deceased/{person_id}
All require X-API-Key.
"""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from app.clients.store import KeyValueStore
from app.core.auth import verify_api_key
from app.core.rate_limiter import RATE_LIMITS, limiter
from app.core.responses import success_response
from app.dependencies import get_store
from app.models import CreateCemeteryRequest, CreateDeceasedRequest, UpdateDeceasedRequest
from app.services import registry

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.post("/cemeteries")
@limiter.limit(RATE_LIMITS["admin"])
def create_cemetery(
    request: Request,
    body: CreateCemeteryRequest,
    store: KeyValueStore = Depends(get_store),
) -> JSONResponse:
    cemetery = registry.register_cemetery(store, body)
    return success_response(cemetery.model_dump(mode="json"), status_code=status.HTTP_201_CREATED)


@router.post("/deceased")
@limiter.limit(RATE_LIMITS["admin"])
def create_deceased(
    request: Request,
    body: CreateDeceasedRequest,
    store: KeyValueStore = Depends(get_store),
) -> JSONResponse:
    person = registry.register_deceased(store, body)
    return success_response(person.model_dump(mode="json"), status_code=status.HTTP_201_CREATED)


@router.delete("/deceased/{person_id}")
@limiter.limit(RATE_LIMITS["admin"])
def delete_deceased(
    request: Request,
    person_id: str,
    store: KeyValueStore = Depends(get_store),
) -> JSONResponse:
    registry.remove_deceased(store, person_id)
    return success_response({"person_id": person_id, "deleted": True})


@router.patch("/deceased/{person_id}")
@limiter.limit(RATE_LIMITS["admin"])
def update_deceased(
    request: Request,
    person_id: str,
    body: UpdateDeceasedRequest,
    store: KeyValueStore = Depends(get_store),
) -> JSONResponse:
    person = registry.update_deceased(store, person_id, body)
    return success_response(person.model_dump(mode="json"))
