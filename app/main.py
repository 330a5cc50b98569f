"""
Order Service - Main FastAPI Application

Exposes the order-creation endpoint and its admin companions.
All order endpoints follow the {success, message, ...} response envelope.
"""

from contextlib import asynccontextmanager
import logging
import os
import traceback

import uvicorn

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

import shopcore
from app.database import Base, engine, get_session_factory
from app.metrics import metrics_collector
from app.orders_api import admin_router, router as orders_router
from shopcore.core.config import get_config
from shopcore.utils.logger import setup_logging

logger = logging.getLogger("shop.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Configure logging and create database tables if they don't exist.
    In production, use migrations instead.
    """
    setup_logging(get_config().log_level)
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as _e:
        logger.warning("Could not run Base.metadata.create_all: %s. Tables should already exist.", _e)
    yield


app = FastAPI(
    title="Order Service",
    description="Order creation with stock, price, tax and delivery validation",
    version=shopcore.__version__,
    lifespan=lifespan,
)

# In production, configure this more strictly
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(orders_router)
app.include_router(admin_router)


def format_error_location(loc) -> str:
    """('body', 'items', 0, 'quantity') -> 'items[0].quantity'"""
    parts = [p for p in loc if p != "body"]
    out = ""
    for part in parts:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else str(part)
    return out or "body"


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Schema errors use the same 400 envelope as business validation errors."""
    errors = [
        {"field": format_error_location(err.get("loc", ())), "message": err.get("msg", "Invalid value")}
        for err in exc.errors()
    ]
    logger.info("Validation error on %s: %s", request.url.path, [e["field"] for e in errors])
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Invalid input data", "errors": errors},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unhandled exceptions and return a 500 envelope without internals."""
    logger.error("Unhandled exception: %s\n%s", exc, traceback.format_exc())
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"},
    )


#
# Health Check Endpoints
#

@app.get("/")
def root():
    """
    Root endpoint - basic health check.
    """
    return {
        "service": "Order Service",
        "version": shopcore.__version__,
        "status": "operational",
    }


@app.get("/health")
def health_check(session_factory: sessionmaker = Depends(get_session_factory)):
    """
    Detailed health check including database connectivity.
    """
    health_status = {
        "service": "healthy",
        "database": "unknown",
        "env": get_config().env,
    }

    try:
        db: Session = session_factory()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        health_status["database"] = "healthy"
    except Exception as e:
        health_status["database"] = f"unhealthy: {e.__class__.__name__}"
        health_status["service"] = "degraded"

    return health_status


@app.get("/metrics")
def get_metrics():
    """
    Observability metrics endpoint.

    Returns:
    - Order outcomes and transaction retries
    - Side-effect results per task kind
    - Latency percentiles (p50, p95, p99) per endpoint
    - Uptime
    """
    return metrics_collector.get_summary()


#
# Development Server
#

if __name__ == "__main__":
    # Run server with auto-reload for development
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=not get_config().is_production,
    )
