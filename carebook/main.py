import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from carebook.config.database import engine, Base, settings
from carebook.config.redis_config import redis_config
from carebook.routes import booking, doctor, order, payment, report, users
from carebook.services.expiry_service import run_expiry_sweep
from carebook.utils.errors import CareBookError
from carebook.utils.response import APIResponse
import carebook.models  # noqa: F401  registers tables on Base.metadata

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)

    sweep = None
    if settings.payment_expiry_sweep_seconds > 0:
        sweep = asyncio.create_task(run_expiry_sweep(settings.payment_expiry_sweep_seconds))

    yield

    if sweep:
        sweep.cancel()
        try:
            await sweep
        except asyncio.CancelledError:
            pass
    redis_config.close()


app = FastAPI(
    title=settings.api_title,
    description="""
    Doctor booking and payment reconciliation API

    ### Features:
    * **Schedules**: Weekly doctor slots (day of week + HH:MM + duration)
    * **Bookings**: One live booking per slot per date, enforced by the database
    * **Payments**: Midtrans Snap checkout with signature-verified webhooks
    * **Marketplace**: Orders that reserve stock until payment settles or fails
    * **Reports**: Income and patient rollups per doctor
    """,
    version=settings.api_version,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
    return response


@app.exception_handler(CareBookError)
async def carebook_exception_handler(request: Request, exc: CareBookError):
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path}: {exc.message}")
    return APIResponse.error(
        message=exc.message,
        error_type=exc.error_type,
        status_code=exc.status_code,
        details=exc.details
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return APIResponse.error(message=str(exc.detail), error_type="HTTPException", status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        errors.append({
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })

    return APIResponse.error(
        message="Validation Error",
        error_type="ValidationError",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details=errors
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return APIResponse.error(
        message="Internal server error",
        error_type="InternalError",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


system_router = APIRouter(prefix="/api", tags=["System"])

@system_router.get("/health")
def health_check():
    """Health check endpoint for monitoring"""
    return {
        "success": True,
        "data": {
            "status": "healthy",
            "service": "carebook-api",
            "version": settings.api_version
        }
    }

app.include_router(system_router)

app.include_router(users.router, prefix="/api/v1")
app.include_router(doctor.router, prefix="/api/v1")
app.include_router(booking.router, prefix="/api/v1")
app.include_router(payment.router, prefix="/api/v1")
app.include_router(order.router, prefix="/api/v1")
app.include_router(report.router, prefix="/api/v1")
app.include_router(payment.redirect_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "carebook.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level
    )
