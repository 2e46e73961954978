# app/main.py
from fastapi import FastAPI, Request, status as fastapi_status, HTTPException
from pymongo.errors import PyMongoError
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager

from app.core.config import setup_logging, SCHEDULER_TIMEZONE, SCHEDULER_ENABLED, OVERDUE_CHECK_MINUTES
from loguru import logger
from fastapi.middleware.gzip import GZipMiddleware
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.authentication import AuthMiddleware
from app.core.rate_limiter import get_rate_limiter, rate_limit_exception_handler
from app.core.exceptions import LifecycleError
from slowapi.errors import RateLimitExceeded

from app.db.database import init_db, close_db, get_client
from app.api.v1.api import api_router_v1
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from app.scheduler.jobs import flag_overdue_transactions

setup_logging()

scheduler = AsyncIOScheduler(timezone=SCHEDULER_TIMEZONE)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup...")
    await init_db()

    if SCHEDULER_ENABLED:
        scheduler.add_job(
            flag_overdue_transactions,
            trigger=IntervalTrigger(minutes=OVERDUE_CHECK_MINUTES),
            id="flag_overdue_job",
            name="Flag Overdue Borrow Transactions",
            replace_existing=True,
            misfire_grace_time=60 * OVERDUE_CHECK_MINUTES,
        )
        scheduler.start()
        logger.info(f"Scheduler started with timezone: {scheduler.timezone}, overdue check every {OVERDUE_CHECK_MINUTES} min.")
    yield
    logger.info("Application shutdown...")
    if scheduler.running: scheduler.shutdown()
    close_db()


async def lifecycle_exception_handler(request: Request, exc: LifecycleError):
    logger.warning(f"Lifecycle rejected {request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

async def validation_exception_handler(request: Request, exc: ValidationError):
    logger.error(f"Validation Error: {exc.errors()}")
    return JSONResponse(
        status_code=fastapi_status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Validation Error", "errors": jsonable_encoder(exc.errors())},
    )

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP Exception: Status={exc.status_code}, Detail={exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))

async def generic_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"Unhandled Exception: {exc}")
    return JSONResponse(status_code=fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "An internal server error occurred."})

def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(LifecycleError, lifecycle_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)


app = FastAPI(
    title="Inventory Borrow & Return API",
    description="Borrow requests, approvals, returns, verification and inspection for departmental inventory.",
    version="1.0.0",
    lifespan=lifespan
)

register_exception_handlers(app)

# Last added runs first: request ids are assigned before auth logs
app.add_middleware(AuthMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.state.limiter = get_rate_limiter()
app.add_middleware(GZipMiddleware, minimum_size=500)

app.include_router(api_router_v1)

@app.get("/")
async def read_root():
    return {"message": "Inventory Borrow & Return API"}

@app.get("/health/db")
async def health_db():
    try:
        await get_client().admin.command("ping")
    except PyMongoError:
        logger.exception("MongoDB ping failed.")
        raise HTTPException(status_code=503, detail="MongoDB connection failed.")
    return {"status": "success", "message": "MongoDB connection is healthy."}
