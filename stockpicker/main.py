"""StockPicker FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stockpicker.api import recommendations
from stockpicker.api.auth import is_admin
from stockpicker.config import settings
from stockpicker.database import engine, get_db
from stockpicker.services.domain import (
    Conflict,
    DataIntegrityError,
    NotFound,
    PersistenceFailure,
    RecommendationError,
    ValidationError,
)

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: verify DB connection and load the stores. Shutdown: dispose engine."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connected successfully")
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        raise
    for store in recommendations.stores.values():
        await store.load()
    yield
    await engine.dispose()
    logger.info("Database engine disposed")


app = FastAPI(
    title="StockPicker",
    description="Intraday and swing stock recommendation tracking",
    version=VERSION,
    lifespan=lifespan,
)

# CORS: restrict in production, allow localhost in development
_allowed_origins = (
    ["http://localhost:8000", "http://localhost:3000", "http://localhost:5173"]
    if settings.app_env == "development"
    else settings.allowed_hosts.split(",")
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "X-API-Key"],
)

app.include_router(recommendations.router)

_ERROR_STATUS = {
    ValidationError: 422,
    NotFound: 404,
    Conflict: 409,
    PersistenceFailure: 503,
    DataIntegrityError: 500,
}


@app.exception_handler(RecommendationError)
async def recommendation_error_handler(request: Request, exc: RecommendationError):
    status_code = next(
        (code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)), 400
    )
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.get("/api")
async def api_root():
    return {
        "name": "StockPicker",
        "version": VERSION,
        "status": "running",
        "kinds": [kind.value for kind in recommendations.stores],
    }


@app.get("/api/session")
async def session_info(admin: bool = Depends(is_admin)):
    """Whether the caller's API key grants admin writes."""
    return {"is_admin": admin}


@app.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check failed: %s", e)
        return JSONResponse(status_code=503, content={"status": "unhealthy"})
    return {"status": "ok"}
