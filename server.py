"""
FastAPI server for supplier imports.

- POST /api/garments/import                          → import one product URL
- GET  /api/suppliers/{supplier}/inventory/{style_id} → live stock levels
- GET  /api/health                                   → configured collaborators
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from errors import ImportFailure, StrategyError
from models import ImportErrorBody, ImportRequest
from official_api import OfficialApiAdapter
from orchestrator import ImportOrchestrator, build_orchestrator
from settings import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

_orchestrator: ImportOrchestrator | None = None


def get_orchestrator() -> ImportOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator()
    return _orchestrator


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _orchestrator is not None and isinstance(_orchestrator.api_adapter, OfficialApiAdapter):
        await _orchestrator.api_adapter.aclose()


app = FastAPI(
    title="Supplier Import API",
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    max_age=86400,
)


@app.exception_handler(ImportFailure)
async def import_failure_handler(request: Request, exc: ImportFailure) -> ORJSONResponse:
    headers = {"Retry-After": str(exc.retry_after)} if getattr(exc, "retry_after", None) else None
    return ORJSONResponse(exc.to_body(), status_code=exc.status_code, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body') or 'body'}: {err['msg']}" for err in exc.errors()
    )
    body = ImportErrorBody(error=f"Invalid request: {problems}")
    return ORJSONResponse(body.model_dump(exclude_none=True), status_code=422)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> ORJSONResponse:
    body = ImportErrorBody(error=str(exc.detail))
    return ORJSONResponse(body.model_dump(exclude_none=True), status_code=exc.status_code, headers=exc.headers)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


_ERROR_RESPONSES = {code: {"model": ImportErrorBody} for code in (400, 422, 429)}
_INVENTORY_ERRORS = {code: {"model": ImportErrorBody} for code in (400, 404, 502)}


@app.post("/api/garments/import", responses=_ERROR_RESPONSES)
async def import_garment(request: ImportRequest, orchestrator: ImportOrchestrator = Depends(get_orchestrator)):
    """Import a supplier product URL into a catalog record."""
    logger.info(f"Import requested: {request.url} (strategy={request.strategy.value})")
    result = await orchestrator.import_url(request.url, request.strategy)
    return result.to_response()


@app.get("/api/suppliers/{supplier}/inventory/{style_id}", responses=_INVENTORY_ERRORS)
async def supplier_inventory(
    supplier: str, style_id: str, orchestrator: ImportOrchestrator = Depends(get_orchestrator)
):
    """Return {color: {size: qty}} for a style from the supplier API."""
    profile = orchestrator.classifier.get(supplier)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"Unknown supplier: {supplier}")
    adapter = orchestrator.api_adapter
    if not profile.api_configured or not isinstance(adapter, OfficialApiAdapter):
        raise HTTPException(status_code=400, detail=f"No inventory API configured for {profile.name}")
    try:
        inventory = await adapter.fetch_inventory(style_id)
    except StrategyError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    return {"supplier": profile.key, "style_id": style_id, "inventory": inventory}


@app.get("/api/health")
async def health(orchestrator: ImportOrchestrator = Depends(get_orchestrator)):
    return {
        "status": "ok",
        "extraction_model": settings.ai.configured,
        "suppliers": {p.key: {"name": p.name, "api": p.api_configured} for p in orchestrator.classifier.profiles},
    }


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
