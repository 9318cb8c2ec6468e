"""Fundraiser payments - FastAPI main application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fundraiser.api.v1.router import router as v1_router
from fundraiser.config import get_settings
from fundraiser.core.errors import PaymentServiceError
from fundraiser.core.rate_limit import close_rate_limit_client
from fundraiser.database import Base, engine
from fundraiser.services.providers import build_provider_registry

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and build the provider registry once on startup."""
    logger.info("Starting fundraiser payments API")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    app.state.provider_registry = build_provider_registry(settings)
    yield
    await close_rate_limit_client()
    await engine.dispose()
    logger.info("Fundraiser payments API shutdown complete")


app = FastAPI(
    title="Fundraiser Payments",
    description="Mobile-money donation intake and reconciliation API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions and return stable 500 response."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again."},
    )


@app.exception_handler(PaymentServiceError)
async def payment_exception_handler(_: Request, exc: PaymentServiceError):
    """Map domain errors onto the status code they carry."""
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.__class__.__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(HTTPException)
async def http_exception_handler(_: Request, exc: HTTPException):
    """Preserve explicit HTTP exceptions with their original status/detail."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_: Request, exc: RequestValidationError):
    """Return consistent 422 payload."""
    errors = exc.errors()
    first_error = errors[0] if errors else {}
    loc = first_error.get("loc", [])
    loc_path = ".".join(str(p) for p in loc if p not in {"body", "query", "path"})
    msg = first_error.get("msg", "Validation failed")
    detail = f"{loc_path}: {msg}" if loc_path else msg
    return JSONResponse(
        status_code=422,
        content={
            "detail": detail,
            "errors": _jsonable_errors(errors),
        },
    )


def _jsonable_errors(errors):
    return [{k: v for k, v in e.items() if k in {"loc", "msg", "type"}} for e in errors]


app.include_router(v1_router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": "Fundraiser Payments API", "status": "ok"}
