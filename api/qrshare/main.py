import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.requests import Request

from qrshare.config import settings
from qrshare.middleware import SecurityHeadersMiddleware
from qrshare.rate_limit import limiter
from qrshare.routers import health, sessions, stream
from qrshare.services.expiry_reaper import expiry_reaper
from qrshare.services.session_id import generate_session_id
from qrshare.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_production()

    registry = SessionRegistry(
        id_generator=lambda: generate_session_id(settings.session_id_length)
    )
    app.state.registry = registry

    reaper_task = asyncio.create_task(
        expiry_reaper(
            registry,
            interval_seconds=settings.sweep_interval_seconds,
            max_age_seconds=settings.session_max_age_seconds,
        )
    )

    yield

    reaper_task.cancel()
    try:
        await reaper_task
    except asyncio.CancelledError:
        pass
    # Ends every open stream
    registry.close()


app = FastAPI(
    title="QR Text Share API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if settings.environment == "production" else "/docs",
    redoc_url=None if settings.environment == "production" else "/redoc",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Middleware order (Starlette LIFO): CORSMiddleware → SecurityHeaders → SlowAPI
# Added in reverse order so CORS runs outermost
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type", "Accept"],
)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(health.router)
app.include_router(sessions.router)
app.include_router(stream.router)
