# backend/app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute

from .api.dependencies.services import get_offer_loop_trigger
from .core.config import is_running_tests, settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .core.exceptions import DomainException
from .core.redis import close_redis_client
from .routes import prometheus, ready
from .routes.v1 import jobs as jobs_v1, slot_offers as slot_offers_v1

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")
    if not settings.app_url or settings.secret_value("internal_secret") is None:
        logger.warning("APP_URL or INTERNAL_SECRET not set; offer-loop triggers will be skipped")

    yield

    logger.info(f"{BRAND_NAME} API shutting down...")
    get_offer_loop_trigger().close()
    close_redis_client()


def _unique_operation_id(route: APIRoute) -> str:
    methods = "_".join(sorted(m.lower() for m in route.methods or []))
    path = route.path_format.replace("/", "_").replace("{", "").replace("}", "").strip("_")
    name = (route.name or "operation").lower().replace(" ", "_")
    return f"{methods}__{path}__{name}".strip("_")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
    generate_unique_id_function=_unique_operation_id,
)


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Domain errors that escape a route keep their HTTP status and envelope."""
    http_exc = exc.to_http_exception()
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


# Versioned API
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(jobs_v1.router, prefix="/jobs")
api_v1.include_router(slot_offers_v1.router, prefix="/slot-offers")
app.include_router(api_v1)

# Infrastructure routes - fixed paths used by load balancers and Prometheus
app.include_router(ready.router)
app.include_router(prometheus.router)
