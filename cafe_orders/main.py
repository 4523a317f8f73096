"""
FastAPI Application Entry Point

Café Ordering Gateway - action dispatch in front of the spreadsheet store.
Production forwards every allowed action to the spreadsheet script with
the API key attached; development serves the same actions from a local
workbook.

Endpoints:
    - GET  /api?action=getBairros|getPedidos
    - POST /api?action=salvarPedido|atualizarStatus|validarCupom
    - GET  /health: Store connectivity check

Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache
from typing import Any, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cafe_orders.core.config import get_settings, setup_logging
from cafe_orders.core.exceptions import TransportError
from cafe_orders.schemas import ErrorResponse, HealthResponse
from cafe_orders.services.gateway import (
    GET_ACTIONS,
    POST_ACTIONS,
    BaseGateway,
    HttpGateway,
    WorkbookGateway,
)

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


@lru_cache()
def get_store() -> BaseGateway:
    """Upstream store the gateway dispatches to."""
    if settings.use_remote_store:
        return HttpGateway(
            endpoint=settings.sheet_script_url,
            api_key=settings.sheet_api_key,
            timeout=settings.gateway_timeout_seconds,
        )
    return WorkbookGateway()


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    if settings.use_remote_store:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")
    else:
        store = get_store()
        if isinstance(store, WorkbookGateway) and not store.path.exists():
            store.seed()
            logger.info("✅ Workbook seeded with sample zones and coupons")
        logger.info(f"✅ Store: workbook ({settings.data_directory}/{settings.workbook_filename})")

    logger.info("✅ Application ready!")

    yield

    logger.info("Shutting down...")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Action gateway for the café ordering spreadsheet store.",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _error(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, **extra})


def _check_config() -> Optional[JSONResponse]:
    missing = settings.validate_production_config()
    if missing:
        logger.error(f"Gateway misconfigured, missing: {missing}")
        return _error(500, "Server configuration incomplete", missing=missing)
    return None


def _check_action(action: Optional[str], allowed: tuple[str, ...], method: str) -> Optional[JSONResponse]:
    if not action:
        return _error(
            400,
            'Parameter "action" is required',
            examples={"GET": list(GET_ACTIONS), "POST": list(POST_ACTIONS)},
        )
    if action not in allowed:
        logger.warning(f"Rejected {method} action: {action}")
        return _error(400, f"{method} action not allowed", allowed_actions=list(allowed))
    return None


async def _forward(store: BaseGateway, action: str, body: Any = None) -> Any:
    try:
        data = await store.dispatch(action, body)
    except TransportError as e:
        logger.error(f"[{action}] upstream failed: {e.message}")
        return _error(502, "Store unavailable", detail=e.message)
    return JSONResponse(status_code=200, content=jsonable_encoder(data))


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"☕ Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Store Health Check",
)
async def health_check(store: BaseGateway = Depends(get_store)) -> HealthResponse:
    """Verify the upstream store answers."""
    healthy = await store.health_check()
    if not healthy:
        logger.error(f"Store health check failed ({store.provider_name})")

    return HealthResponse(
        status="operational" if healthy else "degraded",
        store="healthy" if healthy else "unhealthy",
        provider=store.provider_name,
        environment=settings.env_mode.value,
        timestamp=datetime.now(),
    )


# =============================================================================
# ACTION ENDPOINTS
# =============================================================================

@app.get(
    "/api",
    tags=["Actions"],
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def get_action(
    action: Optional[str] = Query(default=None),
    store: BaseGateway = Depends(get_store),
):
    """Read actions: zones and the order list."""
    rejected = _check_action(action, GET_ACTIONS, "GET") or _check_config()
    if rejected is not None:
        return rejected

    logger.info(f"[GET] {action}")
    return await _forward(store, action)


@app.post(
    "/api",
    tags=["Actions"],
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def post_action(
    request: Request,
    action: Optional[str] = Query(default=None),
    store: BaseGateway = Depends(get_store),
):
    """Write actions: save an order, change its status, validate a coupon."""
    rejected = _check_action(action, POST_ACTIONS, "POST") or _check_config()
    if rejected is not None:
        return rejected

    try:
        body = await request.json()
    except ValueError:
        return _error(400, "Request body must be JSON")
    if not isinstance(body, dict):
        return _error(400, "Request body must be a JSON object")

    logger.info(f"[POST] {action}")
    return await _forward(store, action, body)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
