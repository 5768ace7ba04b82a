"""
Main FastAPI Application
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from ledger_engine.core.config import settings
from ledger_engine.core.database import init_db
from ledger_engine.core.exceptions import (
    AuthzError, ConflictError, EmptySourceError, LedgerError,
    ReferenceNotFoundError, ValidationError
)
from ledger_engine.api.v1 import accounting, inventory, invoices, reports

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Most specific first; UnbalancedEntryError is a ValidationError
ERROR_STATUS = [
    (AuthzError, 403),
    (ReferenceNotFoundError, 404),
    (ConflictError, 409),
    (EmptySourceError, 422),
    (ValidationError, 422),
]


def status_for(exc: LedgerError) -> int:
    for error_class, status_code in ERROR_STATUS:
        if isinstance(exc, error_class):
            return status_code
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting up...")
    init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down...")


# Create app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    status_code = status_for(exc)
    logger.warning(f"{request.method} {request.url.path} -> {status_code} {exc.kind}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred", "error": str(exc)}
    )


# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.APP_VERSION}


# Include routers
app.include_router(accounting.router, prefix="/api/v1")
app.include_router(inventory.router, prefix="/api/v1")
app.include_router(invoices.router, prefix="/api/v1")
app.include_router(reports.router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
