import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.gzip import GZipMiddleware

# .env must be loaded before settings are built
load_dotenv()

from .config import settings
from .database import create_db_and_tables, database_ok
from .exceptions import SchedulingError, http_exception_handler, request_validation_handler, scheduling_exception_handler
from .middleware import ErrorHandlingMiddleware, LoggingMiddleware, RateLimitMiddleware, RequestSizeLimitMiddleware, SecurityMiddleware
from .routers import appointment_links_router, appointments_router
from .utils import utcnow

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL), format=settings.LOG_FORMAT)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} ({settings.CLINIC_NAME})")
    app.state.startup_error = None
    try:
        create_db_and_tables()
    except Exception as e:
        # Keep serving so /health can report the failure
        app.state.startup_error = str(e)
        logger.exception("Could not create database tables")
    yield
    logger.info(f"{settings.APP_NAME} stopped")


docs = settings.DOCS_ENABLED
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    docs_url="/docs" if docs else None,
    redoc_url="/redoc" if docs else None,
    openapi_url="/openapi.json" if docs else None,
)

app.add_exception_handler(SchedulingError, scheduling_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)

# Registered innermost first; CORS ends up outermost
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(SecurityMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=settings.GZIP_MIN_SIZE)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["GET", "POST", "PUT", "PATCH", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(appointments_router.router)
app.include_router(appointment_links_router.router)


@app.get("/health")
def health_check():
    startup_error = getattr(app.state, "startup_error", None)
    try:
        db_ok = database_ok()
        db_error = startup_error
    except Exception as e:
        logger.error(f"Health check database probe failed: {e}")
        db_ok, db_error = False, str(e)
    return {
        "status": "healthy" if db_ok and not startup_error else "degraded",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": utcnow().isoformat(),
        "database": {"ok": db_ok, "error": db_error},
        "scheduling": {
            "opening_hour": settings.CLINIC_OPENING_HOUR,
            "closing_hour": settings.CLINIC_CLOSING_HOUR,
            "slot_minutes": settings.SLOT_MINUTES,
            "locks": "redis" if settings.REDIS_URL else "memory",
        },
        "notifications": {"email": settings.email_enabled, "sms": settings.sms_enabled},
    }


if __name__ == "__main__":
    import uvicorn
    # In-memory locks only serialise within one process; run several workers with REDIS_URL set
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        workers=1,
        log_level=settings.LOG_LEVEL.lower(),
    )
