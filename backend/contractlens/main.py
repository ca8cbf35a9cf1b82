"""
Main FastAPI application module for ContractLens.

This module initializes the FastAPI application, configures middleware,
sets up the database and includes all route handlers.

Author: ContractLens Team
Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from contractlens.config import settings
from contractlens.database import check_db_connection, init_db
from contractlens.routes import analyses, auth, chat, documents

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format=settings.log_format
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

# (path segment, route module, OpenAPI tag)
ROUTERS = [
    ("auth", auth, "Authentication"),
    ("documents", documents, "Documents"),
    ("analyses", analyses, "Analyses"),
    ("chat", chat, "Chat"),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables and verify the database before serving."""
    logger.info(f"Starting {settings.app_name} {settings.app_version} ({settings.environment})")

    init_db()
    if not check_db_connection():
        raise RuntimeError("Database connection failed")
    if not settings.llm_api_key:
        logger.warning("LLM_API_KEY is not set; analysis and chat requests will fail")

    yield

    logger.info(f"Shutting down {settings.app_name}")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Contract review with AI risk highlights, annotations and chat",
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
    lifespan=lifespan
)

if settings.environment == "production":
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Turn anything a route did not handle into a 500 response.

    The exception text is only exposed outside production.
    """
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)

    detail = "Internal server error" if settings.environment == "production" else str(exc)
    return JSONResponse(status_code=500, content={"detail": detail})


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Report whether the database answers and the model endpoint is configured.

    Returns 503 when the database is unreachable. A missing LLM key is
    reported without failing the check.
    """
    db_ok = check_db_connection()
    payload = {
        "status": "healthy" if db_ok else "unhealthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "database": "connected" if db_ok else "disconnected",
        "llm": "configured" if settings.llm_api_key else "missing api key",
        "relocation_strategy": settings.relocation_strategy,
    }
    if not db_ok:
        return JSONResponse(status_code=503, content=payload)
    return payload


@app.get("/", tags=["Root"])
async def read_root():
    """Service banner with links to the API resources."""
    return {
        "message": f"Welcome to {settings.app_name}!",
        "version": settings.app_version,
        "docs": "/docs" if settings.environment != "production" else None,
        "health": "/health",
        "resources": {name: f"{API_PREFIX}/{name}" for name, _, _ in ROUTERS},
    }


for name, module, tag in ROUTERS:
    app.include_router(module.router, prefix=f"{API_PREFIX}/{name}", tags=[tag])


# Development server
if __name__ == "__main__":
    uvicorn.run(
        "contractlens.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower()
    )
