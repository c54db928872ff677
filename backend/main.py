"""
Tomorrow's Pollen API

Read-only HTTP surface over the samples the collector writes: observed and
predicted pollen counts per day, pollen type and location.

Usage:
    uvicorn main:app --port 8001
"""

# .env must be loaded before Config is read
from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pollen import __version__
from pollen.config import Config
from pollen.db import ensure_schema

logging.basicConfig(
    level=getattr(logging, Config.log_level(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

from pollen.routes import locations_router, pollen_router

# Flipped once the schema has been brought to head
_schema_ready = False

ALWAYS_SERVED = ("/", "/health", "/docs", "/openapi.json")


def is_ready() -> bool:
    return _schema_ready


def set_ready(ready: bool = True):
    """Mark the store usable (tests set this directly)."""
    global _schema_ready
    _schema_ready = ready


@asynccontextmanager
async def lifespan(app: FastAPI):
    db_path = Config.database_path()
    logger.info(f"Preparing pollen store at {db_path} (LOG_LEVEL={Config.log_level()})")
    ensure_schema(db_path)
    set_ready(True)
    yield
    set_ready(False)


app = FastAPI(
    title="Tomorrow's Pollen API",
    description="Observed and predicted pollen counts per day, pollen type and location",
    version=__version__,
    lifespan=lifespan,
)

# The website reads the API straight from the browser, deprecation headers included
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
    expose_headers=["X-Obsolete-pollentype", "X-Obsolete-location"],
)


@app.middleware("http")
async def strip_trailing_slash(request: Request, call_next):
    """Route "/api/pollentype/" like "/api/pollentype"."""
    path = request.scope["path"]
    if path != "/" and path.endswith("/"):
        request.scope["path"] = path.rstrip("/")
    return await call_next(request)


@app.middleware("http")
async def require_schema(request: Request, call_next):
    """Answer 503 until the lifespan has prepared the database."""
    # Registered last, so it runs before strip_trailing_slash
    path = request.scope["path"]
    if path != "/":
        path = path.rstrip("/")
    if is_ready() or path in ALWAYS_SERVED:
        return await call_next(request)

    return JSONResponse(
        status_code=503,
        content={"detail": "Pollen store is not ready yet, retry shortly"},
        headers={"Retry-After": "5"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Answer 400 for malformed or missing parameters."""
    logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors())},
    )


app.include_router(pollen_router, prefix="/api", tags=["pollen"])
app.include_router(locations_router, prefix="/api", tags=["location"])


@app.get("/")
async def root():
    return {
        "name": "Tomorrow's Pollen API",
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "healthy"}
