import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import models
from .database import engine
from .routers import booking_router, availability_router, coupon_router, listing_router
from .outbox_poller import run_outbox_poller
from .booking_scheduler import run_booking_scheduler

import redis.asyncio as redis
from fastapi_limiter import FastAPILimiter
from .config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=settings.LOG_LEVEL,
)
logger = logging.getLogger("booking_service")

# Create database tables on startup
# Alembic migrations are the source of truth outside local development
models.Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages application startup and shutdown events.
    """
    logger.info("Starting background tasks...")

    redis_client = None
    try:
        redis_client = redis.from_url(settings.REDIS_URL, encoding="utf-8")
        await FastAPILimiter.init(redis_client)
        logger.info("FastAPILimiter initialized with Redis.")
    except Exception as e:
        logger.error(f"Failed to initialize FastAPILimiter: {e}")

    # Publishes booking events written to the outbox
    poller_task = asyncio.create_task(run_outbox_poller())

    # Completes confirmed bookings once their dates have passed
    scheduler_task = asyncio.create_task(run_booking_scheduler())

    yield  # The application is now running

    logger.info("Shutting down background tasks...")

    if redis_client is not None:
        await redis_client.aclose()

    poller_task.cancel()
    scheduler_task.cancel()

    try:
        await poller_task
    except asyncio.CancelledError:
        logger.info("Outbox poller task successfully cancelled.")
    except Exception as e:
        logger.error(f"Error during outbox poller shutdown: {e}")

    try:
        await scheduler_task
    except asyncio.CancelledError:
        logger.info("Booking scheduler task successfully cancelled.")
    except Exception as e:
        logger.error(f"Error during booking scheduler shutdown: {e}")


app = FastAPI(
    title="SafarHub Booking Service API",
    description="Bookings for stays, tours, adventures and vehicle rentals.",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Malformed input is a plain 400 for every endpoint.
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


app.include_router(booking_router.router)
app.include_router(availability_router.router)
app.include_router(coupon_router.router)
app.include_router(listing_router.router)


@app.get("/")
def read_root():
    return {"message": "Welcome to the SafarHub Booking Service"}
