from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.core.config import settings
from app.core import scheduler
from app.core.documents import SqlDocumentStore
from app.core.exceptions import DocumentStoreError
from app.core.maintenance import MaintenanceService
from app.database import Base, SessionLocal, engine
from app.middleware.maintenance import maintenance_mode_middleware
from .routers import maintenance

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT_DEFAULT])


def log_global_status_change(is_active: bool):
    logger.info(f"Global maintenance document changed: enabled={is_active}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    documents = getattr(app.state, "document_store", None)
    if documents is None:
        Base.metadata.create_all(bind=engine)
        documents = SqlDocumentStore(SessionLocal)

    service = MaintenanceService(documents)
    app.state.maintenance = service

    try:
        await service.context.initialize()
    except DocumentStoreError as e:
        #stay Unknown => requests are not gated until an admin sets the mode
        logger.error(f"Could not load maintenance mode at startup: {e}")

    unsubscribe = service.on_status_change(log_global_status_change)
    scheduler.init_scheduler(service)
    scheduler.start_scheduler()
    yield
    scheduler.shutdown_scheduler()
    unsubscribe()
    service.context.teardown()

app = FastAPI(
    lifespan=lifespan,
    title="TruthBeacon Maintenance API",
    version="1.0.0",
    docs_url=None,
    redoc_url=None
)

#rate limiting
app.state.limiter = limiter

@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests"}
    )

app.add_middleware(SlowAPIMiddleware)

#maintenance gate
app.middleware("http")(maintenance_mode_middleware)

#security headers
@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response

api_router = APIRouter(prefix=settings.API_V1_STR)

api_router.include_router(maintenance.router)

app.include_router(api_router)

@app.get("/", include_in_schema=False)
def read_root():
    return {"message": "OK"}

@app.get("/health", tags=["health"])
def health_check():
    return {
        "status": "healthy",
        "project_name": settings.PROJECT_NAME,
        "version": "1.0.0",
    }
