import logging
import threading
from typing import Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from forge.admin_auth import AdminAuthorizer, authorizer_from_env
from forge.allocation_service import AllocationService
from forge.errors import PersistenceFailure, Unauthorized
from forge.forge_status import FORGE_LOCKED_MESSAGE

logger = logging.getLogger("forge_server")

app = FastAPI(title="Demo Exclusivity Forge")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for dev
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_service: Optional[AllocationService] = None
_authorizer: Optional[AdminAuthorizer] = None
_init_lock = threading.Lock()


def get_service() -> AllocationService:
    global _service
    with _init_lock:
        if _service is None:
            _service = AllocationService.from_env()
        return _service


def get_authorizer() -> AdminAuthorizer:
    global _authorizer
    with _init_lock:
        if _authorizer is None:
            _authorizer = authorizer_from_env()
        return _authorizer


def require_admin(
    authorization: Optional[str] = Header(default=None),
    authorizer: AdminAuthorizer = Depends(get_authorizer),
) -> str:
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[len("bearer "):].strip()
    return authorizer.authorize(token)


class ConsumeSeedRequest(BaseModel):
    callerId: Optional[str] = Field(default=None, max_length=255)


class AdminStyleRequest(BaseModel):
    seed: str = Field(min_length=1, max_length=64)


@app.exception_handler(PersistenceFailure)
async def persistence_failure_handler(request: Request, exc: PersistenceFailure):
    logger.error("%s %s: persistence failure: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.exception_handler(Unauthorized)
async def unauthorized_handler(request: Request, exc: Unauthorized):
    logger.warning("%s %s: unauthorized: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=403, content={"error": "Unauthorized - admin access required"})


def _exhausted() -> JSONResponse:
    return JSONResponse(status_code=429, content={"error": FORGE_LOCKED_MESSAGE})


def _style_not_found() -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "Demo style not found for this seed"})


@app.get("/seed")
def preview_seed(service: AllocationService = Depends(get_service)):
    seed = service.preview_seed()
    if seed is None:
        return _exhausted()
    return {"seed": seed}


@app.post("/seed")
def consume_seed(
    body: Optional[ConsumeSeedRequest] = None,
    service: AllocationService = Depends(get_service),
):
    caller_id = body.callerId if body else None
    allocation = service.allocate_seed(caller_id)
    if allocation is None:
        return _exhausted()
    return {"seed": allocation.token.value}


@app.get("/seed/stats")
def seed_stats(service: AllocationService = Depends(get_service)):
    return service.pool_stats().to_dict()


@app.get("/seed/status")
def seed_status(service: AllocationService = Depends(get_service)):
    return service.forge_status().to_dict()


@app.get("/style/{seed}")
def get_style(seed: str, service: AllocationService = Depends(get_service)):
    fingerprint = service.get_style(seed)
    if fingerprint is None:
        return _style_not_found()
    return JSONResponse(
        content=fingerprint.to_dict(),
        headers={"Cache-Control": "public, max-age=86400"},  # styles never change
    )


@app.get("/style/{seed}/filters")
def get_style_filters(seed: str, service: AllocationService = Depends(get_service)):
    stack = service.get_renderable_style(seed)
    if stack is None:
        return _style_not_found()
    return {"seed": seed, "filters": stack.to_list()}


@app.post("/admin/style")
def admin_get_or_create_style(
    body: AdminStyleRequest,
    admin: str = Depends(require_admin),
    service: AllocationService = Depends(get_service),
):
    logger.info("admin '%s' requested style for seed %s...", admin, body.seed[:12])
    return service.get_or_create_style(body.seed).to_dict()


@app.get("/admin/style/stats")
def admin_style_stats(
    top: int = Query(default=10, ge=1, le=50),
    admin: str = Depends(require_admin),
    service: AllocationService = Depends(get_service),
):
    return service.styles.variant_stats(top=top)


@app.get("/admin/style/search")
def admin_style_search(
    dimension: str,
    value: str,
    limit: int = Query(default=100, ge=1, le=500),
    admin: str = Depends(require_admin),
    service: AllocationService = Depends(get_service),
):
    try:
        seeds = service.styles.find_by_variant(dimension, value, limit=limit)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    return {"dimension": dimension, "value": value, "seeds": seeds}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
