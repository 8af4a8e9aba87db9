"""
Coworking Availability API - Main Application Entry Point

Short-term reservations of shared coworking resources under concurrent
demand:
- Per-day availability from confirmed occupancy plus in-flight locks
- Atomic admission control so concurrent checkouts never over-book
- Order system callbacks (finalize, cancel, cart revalidation)
- Scheduled sweeps for expired locks, abandoned drafts and corrupt data
"""

from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from coworking.core.config import get_settings
from coworking.core.errors import BookingError
from coworking.core.logging import setup_logging, get_logger
from coworking.core.metrics import metrics_endpoint
from coworking.api.deps import get_store
from coworking.api.router import api_router
from coworking.api.middleware import RequestLoggingMiddleware
from coworking.infrastructure.scheduler import start_scheduler, stop_scheduler
from coworking.infrastructure.store import KeyValueStore
from coworking.infrastructure import store_factory
from coworking.services.container import build_services

settings = get_settings()


def _reconciliation():
    return build_services(store_factory.get_store(), store_factory.get_order_gateway(), settings).reconciliation


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        storage=settings.STORAGE_BACKEND,
    )

    store = store_factory.get_store()
    if await store.ping():
        logger.info("storage_ready", backend=settings.STORAGE_BACKEND)
    else:
        logger.warning("storage_unavailable", backend=settings.STORAGE_BACKEND)

    scheduler = start_scheduler(_reconciliation, settings) if settings.SCHEDULER_ENABLED else None

    yield

    # Cleanup
    if scheduler:
        stop_scheduler(scheduler)
    await store_factory.close_infrastructure()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Availability and reservation core for shared coworking resources",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(api_router)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    logger = get_logger(__name__)
    log = logger.error if exc.status_code >= 500 else logger.info
    log("request_rejected", error=exc.code, message=exc.message, status_code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else "Invalid request"
    return JSONResponse(
        status_code=422,
        content={"success": False, "error": "invalid_input", "message": message, "date": None},
    )


@app.get("/health", tags=["Health"])
async def health_check(store: KeyValueStore = Depends(get_store)):
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "storage": await store.stats(),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
